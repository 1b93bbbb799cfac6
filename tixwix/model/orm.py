from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)


Base = declarative_base()

CURRENCY = "bdt"

ROLES = ("user", "moderator", "admin")

# seat status
SEAT_AVAILABLE = "available"

# booking status
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
USED = "used"


# ----------------------------
# ORM models
# ----------------------------
class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False, default="")
    phone = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    # user | moderator | admin
    role = Column(String, nullable=False, default="user")
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=True)


class Movie(Base):
    __tablename__ = "movies"
    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    poster = Column(String, nullable=False)
    backdrop = Column(String, nullable=True)
    genre = Column(JSON, nullable=False, default=list)
    duration = Column(Integer, nullable=False)  # minutes
    rating = Column(Float, nullable=True)  # out of 10
    release_date = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    director = Column(String, nullable=False)
    cast_members = Column(JSON, nullable=False, default=list)
    language = Column(String, nullable=False, default="English")
    trailer_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=True)


class Hall(Base):
    __tablename__ = "halls"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    # movie | concert
    type = Column(String, nullable=False)
    rows = Column(Integer, nullable=False)
    seats_per_row = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)


class Showtime(Base):
    __tablename__ = "showtimes"
    id = Column(String, primary_key=True)
    movie_id = Column(String, ForeignKey("movies.id"), nullable=False)
    hall_id = Column(String, ForeignKey("halls.id"), nullable=False)
    date = Column(String, nullable=False)  # YYYY-MM-DD
    time = Column(String, nullable=False)  # HH:MM
    price_normal = Column(Integer, nullable=False)
    price_deluxe = Column(Integer, nullable=False)
    price_super = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)

    def prices(self) -> dict:
        return {
            "normal": self.price_normal,
            "deluxe": self.price_deluxe,
            "super": self.price_super,
        }


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint("showtime_id", "row_letter", "seat_number"),
    )
    id = Column(String, primary_key=True)
    showtime_id = Column(String, ForeignKey("showtimes.id"), nullable=False,
                         index=True)
    row_letter = Column(String(1), nullable=False)
    seat_number = Column(Integer, nullable=False)
    # normal | deluxe | super
    type = Column(String, nullable=False)
    # available | sold
    status = Column(String, nullable=False, default=SEAT_AVAILABLE)


class Concert(Base):
    __tablename__ = "concerts"
    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    artist = Column(String, nullable=False)
    poster = Column(String, nullable=False)
    backdrop = Column(String, nullable=True)
    genre = Column(String, nullable=False)
    date = Column(String, nullable=False)
    time = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=True)


class ConcertSection(Base):
    __tablename__ = "concert_sections"
    id = Column(String, primary_key=True)
    concert_id = Column(String, ForeignKey("concerts.id"), nullable=False,
                        index=True)
    # vip | front | middle | back
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    total_capacity = Column(Integer, nullable=False)
    available_capacity = Column(Integer, nullable=False)


class FootballMatch(Base):
    __tablename__ = "football_matches"
    id = Column(String, primary_key=True)
    home_team = Column(String, nullable=False)
    away_team = Column(String, nullable=False)
    home_logo = Column(String, nullable=True)
    away_logo = Column(String, nullable=True)
    stadium = Column(String, nullable=False)
    league = Column(String, nullable=False)
    date = Column(String, nullable=False)
    time = Column(String, nullable=False)
    poster = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)


class FootballSection(Base):
    __tablename__ = "football_sections"
    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("football_matches.id"),
                      nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    total_capacity = Column(Integer, nullable=False)
    available_capacity = Column(Integer, nullable=False)
    color = Column(String, nullable=False, default="#888888")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False,
                     index=True)
    # movie | concert | football
    type = Column(String, nullable=False)
    # showtime id for movies, concert/match id otherwise
    show_id = Column(String, nullable=False)
    section_id = Column(String, nullable=True)
    section_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)
    discount = Column(Integer, nullable=False, default=0)
    final_price = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default=CURRENCY)
    promo_code = Column(String, nullable=True)
    free_show = Column(Boolean, nullable=False, default=False)

    # confirmed | cancelled | used
    status = Column(String, nullable=False, default=CONFIRMED)
    ticket_code = Column(String, nullable=False, unique=True)
    booking_date = Column(Float, nullable=False, index=True)
    cancelled_at = Column(Float, nullable=True)


class BookingSeat(Base):
    __tablename__ = "booking_seats"
    id = Column(String, primary_key=True)
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=False,
                        index=True)
    seat_id = Column(String, ForeignKey("seats.id"), nullable=False)


class PromoCode(Base):
    __tablename__ = "promo_codes"
    id = Column(String, primary_key=True)
    code = Column(String, nullable=False, unique=True)
    # percent for 'percentage', taka for 'fixed'
    discount = Column(Integer, nullable=False)
    # percentage | fixed
    type = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    movie_id = Column(String, ForeignKey("movies.id"), nullable=False,
                      index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=True)
