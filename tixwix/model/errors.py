"""Domain errors raised by the model layer.

Each carries the HTTP status the API answers with; `server.py` installs a
single handler that turns them into `{"detail": ...}` responses.
"""


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(BookingError):
    status_code = 404


class Forbidden(BookingError):
    status_code = 403


class Conflict(BookingError):
    status_code = 409


class SeatsUnavailable(Conflict):
    pass


class SoldOut(Conflict):
    pass


class InvalidPromo(BookingError):
    pass


class LimitExceeded(BookingError):
    pass
