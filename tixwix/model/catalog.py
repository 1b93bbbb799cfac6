# model/catalog.py
"""
Shows and venues: movies, halls, showtimes with their seat grids,
concerts with their four sections, football matches with named sections,
and movie reviews.

Public functions open their own (gated) transaction. The `_`-prefixed
helpers run inside a transaction the caller already holds.
"""

from __future__ import annotations
import string
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..helpers import new_id, now_ts
from ..infra.sql import GatedAsyncSession
from .errors import BookingError, NotFound
from .orm import (
    Concert, ConcertSection, FootballMatch, FootballSection, Hall, Movie,
    Review, Seat, Showtime, SEAT_AVAILABLE,
)

ROW_LETTERS = string.ascii_uppercase
CONCERT_SECTIONS = ("vip", "front", "middle", "back")
HALL_TYPES = ("movie", "concert")

REVIEW_MIN = 1
REVIEW_MAX = 10


def _require_text(data: Dict[str, Any], keys: Sequence[str]) -> None:
    for key in keys:
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise BookingError(f"{key} is required")


def _as_number(value: Any, what: str, cast=int):
    if isinstance(value, bool):
        raise BookingError(f"{what} must be a number")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise BookingError(f"{what} must be a number") from None


# ----------------------------
# Movies
# ----------------------------
def matches_movie(movie: Movie, search: Optional[str],
                  genres: Optional[Sequence[str]]) -> bool:
    if search:
        q = search.lower()
        if q not in movie.title.lower() and q not in movie.director.lower():
            return False
    if genres:
        if not any(g in genres for g in (movie.genre or [])):
            return False
    return True


def movie_genres(movies: Iterable[Movie]) -> List[str]:
    return sorted({g for m in movies for g in (m.genre or [])})


async def list_movies(
    db: GatedAsyncSession,
    search: Optional[str] = None,
    genres: Optional[Sequence[str]] = None,
) -> List[Movie]:
    async with db.gated():
        async with db.session.begin():
            rows = (await db.session.execute(
                select(Movie).order_by(Movie.release_date.desc(), Movie.title)
            )).scalars().all()
    # genre lists live in a JSON column: filter here, not in SQL
    return [m for m in rows if matches_movie(m, search, genres)]


async def _get_or_404(session: AsyncSession, model, obj_id: str, what: str):
    obj = await session.get(model, obj_id)
    if obj is None:
        raise NotFound(f"{what} not found")
    return obj


async def get_movie(db: GatedAsyncSession, movie_id: str) -> Movie:
    async with db.gated():
        async with db.session.begin():
            return await _get_or_404(db.session, Movie, movie_id, "movie")


async def create_movie(db: GatedAsyncSession, data: Dict[str, Any]) -> Movie:
    _require_text(data, ("title", "poster", "description", "director",
                         "release_date"))
    duration = _as_number(data.get("duration") or 0, "duration")
    if duration <= 0:
        raise BookingError("duration must be positive")
    rating = data.get("rating")
    if rating is not None:
        rating = _as_number(rating, "rating", float)
        if not 0 <= rating <= 10:
            raise BookingError("rating must be between 0 and 10")

    movie = Movie(
        id=new_id(),
        title=data["title"].strip(),
        poster=data["poster"],
        backdrop=data.get("backdrop"),
        genre=list(data.get("genre") or []),
        duration=duration,
        rating=rating,
        release_date=data["release_date"],
        description=data["description"],
        director=data["director"],
        cast_members=list(data.get("cast_members") or []),
        language=data.get("language") or "English",
        trailer_url=data.get("trailer_url"),
        created_at=now_ts(),
    )
    async with db.gated():
        async with db.session.begin():
            db.session.add(movie)
    return movie


# ----------------------------
# Halls
# ----------------------------
async def list_halls(db: GatedAsyncSession,
                     type_: Optional[str] = None) -> List[Hall]:
    stmt = select(Hall).order_by(Hall.name)
    if type_:
        stmt = stmt.where(Hall.type == type_)
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(stmt)).scalars().all())


def new_hall(name: str, type_: str, rows: int, seats_per_row: int) -> Hall:
    if type_ not in HALL_TYPES:
        raise BookingError(f"hall type must be one of {HALL_TYPES}")
    if type_ == "movie":
        if not 1 <= rows <= len(ROW_LETTERS):
            raise BookingError(
                f"a movie hall has 1 to {len(ROW_LETTERS)} rows"
            )
        if seats_per_row < 1:
            raise BookingError("seats_per_row must be positive")
    return Hall(id=new_id(), name=name, type=type_, rows=rows,
                seats_per_row=seats_per_row,
                total_seats=rows * seats_per_row)


async def create_hall(db: GatedAsyncSession, name: str, type_: str,
                      rows: int, seats_per_row: int) -> Hall:
    hall = new_hall(name, type_, rows, seats_per_row)
    async with db.gated():
        async with db.session.begin():
            db.session.add(hall)
    return hall


# ----------------------------
# Showtimes & seats
# ----------------------------
def seat_type_for_row(row_index: int) -> str:
    if row_index < 2:
        return "super"
    if row_index < 4:
        return "deluxe"
    return "normal"


def seat_grid(rows: int, seats_per_row: int) -> List[Tuple[str, int, str]]:
    """(row_letter, seat_number, type) for every seat of a hall."""
    grid = []
    for r, letter in enumerate(ROW_LETTERS[:rows]):
        for n in range(1, seats_per_row + 1):
            grid.append((letter, n, seat_type_for_row(r)))
    return grid


async def create_showtime(
    db: GatedAsyncSession,
    movie_id: str,
    hall_id: str,
    date: str,
    time: str,
    prices: Dict[str, int],
) -> Tuple[Showtime, int]:
    checked = {}
    for seat_type in ("normal", "deluxe", "super"):
        price = prices.get(seat_type)
        if price is not None:
            price = _as_number(price, f"{seat_type} price")
        if price is None or price < 0:
            raise BookingError(f"price for {seat_type} seats is required")
        checked[seat_type] = price

    async with db.gated():
        async with db.session.begin():
            await _get_or_404(db.session, Movie, movie_id, "movie")
            hall = await _get_or_404(db.session, Hall, hall_id, "hall")
            if hall.type != "movie":
                raise BookingError("showtimes need a movie hall")

            showtime = Showtime(
                id=new_id(),
                movie_id=movie_id,
                hall_id=hall_id,
                date=date,
                time=time,
                price_normal=checked["normal"],
                price_deluxe=checked["deluxe"],
                price_super=checked["super"],
                created_at=now_ts(),
            )
            db.session.add(showtime)
            grid = seat_grid(hall.rows, hall.seats_per_row)
            db.session.add_all([
                Seat(id=new_id(), showtime_id=showtime.id, row_letter=row,
                     seat_number=num, type=seat_type, status=SEAT_AVAILABLE)
                for row, num, seat_type in grid
            ])
    return showtime, len(grid)


async def list_showtimes(db: GatedAsyncSession,
                         movie_id: str) -> List[Showtime]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(Showtime)
                .where(Showtime.movie_id == movie_id)
                .order_by(Showtime.date, Showtime.time)
            )).scalars().all())


async def get_showtime(db: GatedAsyncSession,
                       showtime_id: str) -> Tuple[Showtime, Hall]:
    async with db.gated():
        async with db.session.begin():
            st = await _get_or_404(db.session, Showtime, showtime_id,
                                   "showtime")
            hall = await _get_or_404(db.session, Hall, st.hall_id, "hall")
    return st, hall


async def list_seats(db: GatedAsyncSession, showtime_id: str) -> List[Seat]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(Seat)
                .where(Seat.showtime_id == showtime_id)
                .execution_options(populate_existing=True)
                .order_by(Seat.row_letter, Seat.seat_number)
            )).scalars().all())


# ----------------------------
# Concerts
# ----------------------------
async def create_concert(
    db: GatedAsyncSession,
    data: Dict[str, Any],
    sections: Dict[str, Dict[str, int]],
) -> Tuple[Concert, List[ConcertSection]]:
    """`sections` maps vip/front/middle/back to {"price", "capacity"}."""
    _require_text(data, ("title", "artist", "poster", "genre", "date", "time",
                         "description"))
    missing = [name for name in CONCERT_SECTIONS if name not in sections]
    if missing:
        raise BookingError(f"missing sections: {', '.join(missing)}")

    concert = Concert(
        id=new_id(),
        title=data["title"].strip(),
        artist=data["artist"],
        poster=data["poster"],
        backdrop=data.get("backdrop"),
        genre=data["genre"],
        date=data["date"],
        time=data["time"],
        description=data["description"],
        created_at=now_ts(),
    )
    rows = []
    for name in CONCERT_SECTIONS:
        price, capacity = _section_numbers(name, sections[name])
        rows.append(ConcertSection(
            id=new_id(), concert_id=concert.id, name=name, price=price,
            total_capacity=capacity, available_capacity=capacity,
        ))

    async with db.gated():
        async with db.session.begin():
            db.session.add(concert)
            db.session.add_all(rows)
    return concert, rows


def _section_numbers(name: str, sec: Any) -> Tuple[int, int]:
    if not isinstance(sec, dict):
        raise BookingError(f"section {name} must be an object")
    price = _as_number(sec.get("price", -1), f"section {name} price")
    capacity = _as_number(sec.get("capacity", -1),
                          f"section {name} capacity")
    if price < 0 or capacity < 0:
        raise BookingError(f"section {name} needs a price and a capacity")
    return price, capacity


async def list_concerts(db: GatedAsyncSession) -> List[Concert]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(Concert).order_by(Concert.date, Concert.time)
            )).scalars().all())


async def get_concert(
    db: GatedAsyncSession, concert_id: str
) -> Tuple[Concert, List[ConcertSection]]:
    async with db.gated():
        async with db.session.begin():
            concert = await _get_or_404(db.session, Concert, concert_id,
                                        "concert")
            sections = (await db.session.execute(
                select(ConcertSection)
                .where(ConcertSection.concert_id == concert_id)
                .execution_options(populate_existing=True)
            )).scalars().all()
    order = {name: i for i, name in enumerate(CONCERT_SECTIONS)}
    return concert, sorted(sections, key=lambda s: order.get(s.name, 99))


# ----------------------------
# Football
# ----------------------------
async def create_match(
    db: GatedAsyncSession,
    data: Dict[str, Any],
    sections: Sequence[Dict[str, Any]],
) -> Tuple[FootballMatch, List[FootballSection]]:
    _require_text(data, ("home_team", "away_team", "stadium", "league",
                         "date", "time"))
    if not sections:
        raise BookingError("a match needs at least one section")
    if not all(isinstance(s, dict) for s in sections):
        raise BookingError("each section must be an object")
    names = [s.get("name") for s in sections]
    if not all(isinstance(n, str) and n for n in names) \
            or len(set(names)) != len(names):
        raise BookingError("section names must be present and unique")

    match = FootballMatch(
        id=new_id(),
        home_team=data["home_team"],
        away_team=data["away_team"],
        home_logo=data.get("home_logo"),
        away_logo=data.get("away_logo"),
        stadium=data["stadium"],
        league=data["league"],
        date=data["date"],
        time=data["time"],
        poster=data.get("poster"),
        description=data.get("description"),
        created_at=now_ts(),
    )
    rows = []
    for sec in sections:
        price, capacity = _section_numbers(sec["name"], sec)
        rows.append(FootballSection(
            id=new_id(), match_id=match.id, name=sec["name"], price=price,
            total_capacity=capacity, available_capacity=capacity,
            color=sec.get("color") or "#888888",
        ))

    async with db.gated():
        async with db.session.begin():
            db.session.add(match)
            db.session.add_all(rows)
    return match, rows


async def list_matches(db: GatedAsyncSession) -> List[FootballMatch]:
    async with db.gated():
        async with db.session.begin():
            return list((await db.session.execute(
                select(FootballMatch)
                .order_by(FootballMatch.date, FootballMatch.time)
            )).scalars().all())


async def get_match(
    db: GatedAsyncSession, match_id: str
) -> Tuple[FootballMatch, List[FootballSection]]:
    async with db.gated():
        async with db.session.begin():
            match = await _get_or_404(db.session, FootballMatch, match_id,
                                      "match")
            sections = (await db.session.execute(
                select(FootballSection)
                .where(FootballSection.match_id == match_id)
                .execution_options(populate_existing=True)
                .order_by(FootballSection.price.desc())
            )).scalars().all()
    return match, list(sections)


# ----------------------------
# Reviews
# ----------------------------
async def add_review(db: GatedAsyncSession, user_id: str, movie_id: str,
                     rating: int, comment: Optional[str]) -> Review:
    if not REVIEW_MIN <= rating <= REVIEW_MAX:
        raise BookingError(
            f"rating must be between {REVIEW_MIN} and {REVIEW_MAX}"
        )
    review = Review(id=new_id(), user_id=user_id, movie_id=movie_id,
                    rating=rating, comment=(comment or "").strip() or None,
                    created_at=now_ts())
    async with db.gated():
        async with db.session.begin():
            await _get_or_404(db.session, Movie, movie_id, "movie")
            db.session.add(review)
    return review


async def list_reviews(
    db: GatedAsyncSession, movie_id: str
) -> Tuple[List[Review], Optional[float]]:
    async with db.gated():
        async with db.session.begin():
            rows = (await db.session.execute(
                select(Review)
                .where(Review.movie_id == movie_id)
                .order_by(Review.created_at.desc())
            )).scalars().all()
            avg = (await db.session.execute(
                select(func.avg(Review.rating))
                .where(Review.movie_id == movie_id)
            )).scalar_one()
    return list(rows), (round(float(avg), 1) if avg is not None else None)
