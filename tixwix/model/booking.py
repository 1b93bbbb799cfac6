# model/booking.py
"""
Booking flows: capacity bookkeeping plus the pricing in `pricing.py`.

Movies book individual seats; concerts and football book a quantity of
tickets from a section. Every flow runs in ONE transaction:

  movie    : UPDATE seats SET status='sold'
               WHERE id IN (...) AND status='available'
             -> row count short of the selection => SeatsUnavailable
  section  : UPDATE <sections> SET available_capacity = available_capacity - n
               WHERE id=:id AND available_capacity >= n
             -> no row updated => SoldOut

followed by the booking insert. Any error inside the transaction rolls
back the capacity change as well.

The monthly booking count (free-show benefit) is read before the
transaction and bumped after commit. A failed bump is logged, never
raised: the committed booking row stays the record.
"""

from __future__ import annotations
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import bindparam, func, select, text

from ..helpers import new_id, now_ts, to_iso
from ..infra.sql import GatedAsyncSession
from ..infra.timings import timeit
from . import pricing
from .errors import (
    BookingError, Conflict, Forbidden, LimitExceeded, NotFound,
    SeatsUnavailable, SoldOut,
)
from .orm import (
    Booking, BookingSeat, Concert, ConcertSection, FootballMatch,
    FootballSection, Hall, Movie, Profile, Seat, Showtime, CANCELLED,
    CONFIRMED, CURRENCY, SEAT_AVAILABLE, USED,
)
from .promo import resolve_promo

MAX_SEATS_PER_BOOKING = 10
MAX_TICKETS_PER_BOOKING = 10

SECTION_KINDS = {
    # kind -> (section model, section table, show column)
    "concert": (ConcertSection, "concert_sections", "concert_id"),
    "football": (FootballSection, "football_sections", "match_id"),
}

SQL_SELL_SEATS = text("""
    UPDATE seats SET status = 'sold'
    WHERE id IN :ids AND showtime_id = :st AND status = 'available'
""").bindparams(bindparam("ids", expanding=True))

SQL_RELEASE_SEATS = text("""
    UPDATE seats SET status = 'available'
    WHERE id IN :ids AND status = 'sold'
""").bindparams(bindparam("ids", expanding=True))


def new_ticket_code() -> str:
    return f"TIX-{uuid.uuid4().hex[:10].upper()}"


def qr_payload(booking: Booking) -> str:
    return f"TIXWIX|{booking.ticket_code}|{booking.id}"


def _check_seat_selection(seat_ids: Sequence[str]) -> List[str]:
    ids = list(dict.fromkeys(seat_ids or []))
    if not ids:
        raise BookingError("select at least one seat")
    if len(ids) > MAX_SEATS_PER_BOOKING:
        raise LimitExceeded(
            f"Maximum {MAX_SEATS_PER_BOOKING} seats per booking"
        )
    return ids


def _check_quantity(quantity: int, available: int) -> None:
    if quantity < 1:
        raise BookingError("quantity must be at least 1")
    if quantity > MAX_TICKETS_PER_BOOKING:
        raise LimitExceeded(
            f"Maximum {MAX_TICKETS_PER_BOOKING} tickets per booking"
        )
    if quantity > available:
        raise SoldOut(f"only {available} tickets left in this section")


async def _monthly_state(counter, user_id: str) -> Tuple[int, bool]:
    count = await counter.count_this_month(user_id)
    return count, pricing.is_free_show(count)


async def _update_counter(counter, op: str, user_id: str,
                          booked_at: float) -> None:
    # the booking row is already committed and stays the record
    try:
        await getattr(counter, op)(user_id, booked_at)
    except Exception:
        logger.exception(f"booking counter {op} failed for user {user_id}")


# ----------------------------
# Movies
# ----------------------------
async def _load_selected_seats(
    db: GatedAsyncSession, showtime_id: str, ids: List[str]
) -> Tuple[Showtime, List[Seat]]:
    st = await db.session.get(Showtime, showtime_id)
    if st is None:
        raise NotFound("showtime not found")
    rows = (await db.session.execute(
        select(Seat)
        .where(Seat.id.in_(ids), Seat.showtime_id == showtime_id)
        .execution_options(populate_existing=True)
    )).scalars().all()
    by_id = {s.id: s for s in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFound(f"seat(s) not found in this showtime: {missing}")
    # keep the caller's selection order, it decides the free seats
    return st, [by_id[i] for i in ids]


async def quote_movie(db: GatedAsyncSession, counter, user_id: Optional[str],
                      showtime_id: str, seat_ids: Sequence[str],
                      promo_code: Optional[str]) -> pricing.Quote:
    ids = _check_seat_selection(seat_ids)
    promo = await resolve_promo(db, promo_code)
    free_show = False
    if user_id:
        _, free_show = await _monthly_state(counter, user_id)
    async with db.gated():
        async with db.session.begin():
            st, seats = await _load_selected_seats(db, showtime_id, ids)
    return pricing.quote_movie([s.type for s in seats], st.prices(), promo,
                               free_show)


async def book_movie(db: GatedAsyncSession, counter, user: Profile,
                     showtime_id: str, seat_ids: Sequence[str],
                     promo_code: Optional[str] = None) -> Booking:
    ids = _check_seat_selection(seat_ids)
    promo = await resolve_promo(db, promo_code)
    _, free_show = await _monthly_state(counter, user.id)

    async with timeit("booking.movie"):
        async with db.gated():
            async with db.session.begin():
                st, seats = await _load_selected_seats(db, showtime_id, ids)
                taken = [f"{s.row_letter}{s.seat_number}" for s in seats
                         if s.status != SEAT_AVAILABLE]
                if taken:
                    raise SeatsUnavailable(
                        f"seats already sold: {', '.join(taken)}"
                    )
                quote = pricing.quote_movie([s.type for s in seats],
                                            st.prices(), promo, free_show)

                res = await db.session.execute(
                    SQL_SELL_SEATS, {"ids": ids, "st": showtime_id}
                )
                if res.rowcount != len(ids):
                    # lost a race against a concurrent booking
                    raise SeatsUnavailable(
                        "some seats were just booked by someone else"
                    )

                booking = Booking(
                    id=new_id(),
                    user_id=user.id,
                    type="movie",
                    show_id=showtime_id,
                    quantity=len(ids),
                    total_price=quote.subtotal,
                    discount=quote.discount,
                    final_price=quote.final_price,
                    currency=CURRENCY,
                    promo_code=promo.code if promo else None,
                    free_show=quote.free_show,
                    status=CONFIRMED,
                    ticket_code=new_ticket_code(),
                    booking_date=now_ts(),
                )
                db.session.add(booking)
                await db.session.flush()
                db.session.add_all([
                    BookingSeat(id=new_id(), booking_id=booking.id,
                                seat_id=seat_id)
                    for seat_id in ids
                ])

    await _update_counter(counter, "incr", user.id, booking.booking_date)
    logger.info(
        f"movie booking {booking.id} user={user.id} seats={len(ids)} "
        f"final={booking.final_price} free_show={booking.free_show}"
    )
    return booking


# ----------------------------
# Concerts & football
# ----------------------------
def _section_kind(kind: str):
    if kind not in SECTION_KINDS:
        raise BookingError(f"kind must be one of {tuple(SECTION_KINDS)}")
    return SECTION_KINDS[kind]


def _quote_section(kind: str, section, quantity: int,
                   promo: Optional[pricing.Promo],
                   free_show: bool) -> pricing.Quote:
    if kind == "football":
        return pricing.quote_football(section.price, quantity, promo)
    return pricing.quote_concert(section.price, quantity, promo, free_show)


async def quote_section(db: GatedAsyncSession, counter,
                        user_id: Optional[str], kind: str, section_id: str,
                        quantity: int,
                        promo_code: Optional[str]) -> pricing.Quote:
    model, _, _ = _section_kind(kind)
    promo = await resolve_promo(db, promo_code)
    free_show = False
    if user_id and kind == "concert":
        _, free_show = await _monthly_state(counter, user_id)
    async with db.gated():
        async with db.session.begin():
            section = await db.session.get(model, section_id,
                                           populate_existing=True)
    if section is None:
        raise NotFound("section not found")
    _check_quantity(quantity, section.available_capacity)
    return _quote_section(kind, section, quantity, promo, free_show)


async def book_section(db: GatedAsyncSession, counter, user: Profile,
                       kind: str, section_id: str, quantity: int,
                       promo_code: Optional[str] = None) -> Booking:
    model, table, show_col = _section_kind(kind)
    promo = await resolve_promo(db, promo_code)
    free_show = False
    if kind == "concert":
        _, free_show = await _monthly_state(counter, user.id)

    async with timeit(f"booking.{kind}"):
        async with db.gated():
            async with db.session.begin():
                section = await db.session.get(model, section_id,
                                               populate_existing=True)
                if section is None:
                    raise NotFound("section not found")
                _check_quantity(quantity, section.available_capacity)
                quote = _quote_section(kind, section, quantity, promo,
                                       free_show)

                res = await db.session.execute(text(f"""
                    UPDATE {table}
                    SET available_capacity = available_capacity - :n
                    WHERE id = :id AND available_capacity >= :n
                """), {"n": quantity, "id": section_id})
                if res.rowcount != 1:
                    raise SoldOut("not enough tickets left in this section")

                booking = Booking(
                    id=new_id(),
                    user_id=user.id,
                    type=kind,
                    show_id=getattr(section, show_col),
                    section_id=section.id,
                    section_name=section.name,
                    quantity=quantity,
                    total_price=quote.subtotal,
                    discount=quote.discount,
                    final_price=quote.final_price,
                    currency=CURRENCY,
                    promo_code=(promo.code if promo and not quote.free_show
                                else None),
                    free_show=quote.free_show,
                    status=CONFIRMED,
                    ticket_code=new_ticket_code(),
                    booking_date=now_ts(),
                )
                db.session.add(booking)

    await _update_counter(counter, "incr", user.id, booking.booking_date)
    logger.info(
        f"{kind} booking {booking.id} user={user.id} "
        f"section={booking.section_name} qty={quantity} "
        f"final={booking.final_price} free_show={booking.free_show}"
    )
    return booking


# ----------------------------
# Lifecycle
# ----------------------------
async def cancel_booking(db: GatedAsyncSession, counter, user: Profile,
                         booking_id: str) -> Booking:
    async with db.gated():
        async with db.session.begin():
            booking = await db.session.get(Booking, booking_id,
                                           populate_existing=True)
            if booking is None:
                raise NotFound("booking not found")
            if booking.user_id != user.id and user.role != "admin":
                raise Forbidden("not your booking")
            if booking.status != CONFIRMED:
                raise Conflict(
                    f"only confirmed bookings can be cancelled "
                    f"(status: {booking.status})"
                )

            if booking.type == "movie":
                seat_ids = (await db.session.execute(
                    select(BookingSeat.seat_id)
                    .where(BookingSeat.booking_id == booking.id)
                )).scalars().all()
                if seat_ids:
                    await db.session.execute(
                        SQL_RELEASE_SEATS, {"ids": list(seat_ids)}
                    )
            else:
                _, table, _ = _section_kind(booking.type)
                # never above the section's total capacity
                await db.session.execute(text(f"""
                    UPDATE {table}
                    SET available_capacity = CASE
                        WHEN available_capacity + :n > total_capacity
                        THEN total_capacity
                        ELSE available_capacity + :n END
                    WHERE id = :id
                """), {"n": booking.quantity, "id": booking.section_id})

            booking.status = CANCELLED
            booking.cancelled_at = now_ts()

    await _update_counter(counter, "decr", booking.user_id,
                          booking.booking_date)
    logger.info(f"booking {booking.id} cancelled by {user.id}")
    return booking


async def mark_used(db: GatedAsyncSession, booking_id: str) -> Booking:
    async with db.gated():
        async with db.session.begin():
            booking = await db.session.get(Booking, booking_id,
                                           populate_existing=True)
            if booking is None:
                raise NotFound("booking not found")
            if booking.status != CONFIRMED:
                raise Conflict(
                    f"booking is {booking.status}, cannot check in"
                )
            booking.status = USED
    logger.info(f"booking {booking.id} checked in")
    return booking


# ----------------------------
# Queries
# ----------------------------
async def list_user_bookings(db: GatedAsyncSession,
                             user_id: str) -> List[Booking]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(Booking)
                .where(Booking.user_id == user_id)
                .execution_options(populate_existing=True)
                .order_by(Booking.booking_date.desc())
            )).scalars().all())


async def list_recent_bookings(db: GatedAsyncSession,
                               limit: int = 200) -> List[Booking]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(Booking)
                .execution_options(populate_existing=True)
                .order_by(Booking.booking_date.desc())
                .limit(max(1, min(limit, 500)))
            )).scalars().all())


async def get_booking(db: GatedAsyncSession, user: Profile,
                      booking_id: str) -> Booking:
    async with db.gated():
        async with db.session.begin():
            booking = await db.session.get(Booking, booking_id,
                                           populate_existing=True)
    if booking is None:
        raise NotFound("booking not found")
    if booking.user_id != user.id and user.role != "admin":
        raise Forbidden("not your booking")
    return booking


async def receipt(db: GatedAsyncSession, user: Profile,
                  booking_id: str) -> Dict[str, Any]:
    """Everything a printed ticket shows."""
    booking = await get_booking(db, user, booking_id)
    async with db.gated():
        async with db.session.begin():
            owner = await db.session.get(Profile, booking.user_id)
            seats: List[str] = []
            if booking.type == "movie":
                st = await db.session.get(Showtime, booking.show_id)
                movie = await db.session.get(Movie, st.movie_id)
                hall = await db.session.get(Hall, st.hall_id)
                title, venue, date, time = (movie.title, hall.name, st.date,
                                            st.time)
                rows = (await db.session.execute(
                    select(Seat.row_letter, Seat.seat_number)
                    .join(BookingSeat, BookingSeat.seat_id == Seat.id)
                    .where(BookingSeat.booking_id == booking.id)
                    .order_by(Seat.row_letter, Seat.seat_number)
                )).all()
                seats = [f"{r}{n}" for r, n in rows]
            elif booking.type == "concert":
                concert = await db.session.get(Concert, booking.show_id)
                title, venue, date, time = (
                    f"{concert.title} - {concert.artist}", "Convention Hall",
                    concert.date, concert.time,
                )
            else:
                match = await db.session.get(FootballMatch, booking.show_id)
                title, venue, date, time = (
                    f"{match.home_team} vs {match.away_team}", match.stadium,
                    match.date, match.time,
                )

    return {
        "booking_id": booking.id,
        "ticket_code": booking.ticket_code,
        "type": booking.type,
        "title": title,
        "venue": venue,
        "date": date,
        "time": time,
        "seats": seats,
        "section": booking.section_name,
        "quantity": booking.quantity,
        "user_name": owner.name if owner else "",
        "total_price": booking.total_price,
        "discount": booking.discount,
        "final_price": booking.final_price,
        "currency": booking.currency,
        "is_free": booking.free_show,
        "status": booking.status,
        "booked_at": to_iso(booking.booking_date),
        "qr": qr_payload(booking),
    }


async def dashboard_stats(db: GatedAsyncSession) -> Dict[str, int]:
    async with db.gated():
        async with db.session.begin():
            s = db.session
            movies = (await s.execute(
                select(func.count()).select_from(Movie))).scalar_one()
            concerts = (await s.execute(
                select(func.count()).select_from(Concert))).scalar_one()
            matches = (await s.execute(
                select(func.count()).select_from(FootballMatch))).scalar_one()
            bookings = (await s.execute(
                select(func.count()).select_from(Booking)
                .where(Booking.status != CANCELLED))).scalar_one()
            revenue = (await s.execute(
                select(func.coalesce(func.sum(Booking.final_price), 0))
                .where(Booking.status != CANCELLED))).scalar_one()
            users = (await s.execute(
                select(func.count()).select_from(Profile))).scalar_one()
    return {
        "movies": int(movies),
        "concerts": int(concerts),
        "matches": int(matches),
        "bookings": int(bookings),
        "revenue": int(revenue),
        "users": int(users),
    }
