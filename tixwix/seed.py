import asyncio
import os

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .helpers import new_id, now_ts
from .infra.log import configure_logging
from .infra.sql import make_async_engine
from .model.catalog import CONCERT_SECTIONS, new_hall, seat_grid
from .model.orm import (
    Base, Concert, ConcertSection, FootballMatch, FootballSection, Hall,
    Movie, Seat, Showtime,
)
from .model.promo import seed_promo_codes
from .model.users import ensure_admin

# Halls
HALLS = [
    ("Hall 1 - IMAX", "movie", 10, 20),
    ("Hall 2 - 4DX", "movie", 10, 15),
    ("Hall 3 - Premium", "movie", 9, 20),
    ("Hall 4 - Standard", "movie", 10, 20),
    ("Hall 5 - Standard", "movie", 10, 20),
    ("Hall 6 - Dolby", "movie", 8, 20),
    ("Convention Hall", "concert", 0, 0),
]

DEMO_MOVIES = [
    {
        "title": "Pushpa 2: The Rule",
        "genre": ["Action", "Drama"],
        "duration": 179,
        "rating": 8.5,
        "release_date": "2024-12-05",
        "description": "Pushpa Raj continues his rise in the smuggling "
                       "business while facing new challenges.",
        "director": "Sukumar",
        "cast_members": ["Allu Arjun", "Rashmika Mandanna",
                         "Fahadh Faasil"],
        "language": "Telugu/Hindi",
        "showtimes": [("2024-12-20", "10:00", 350, 500, 700),
                      ("2024-12-20", "14:00", 400, 550, 750)],
    },
    {
        "title": "Mufasa: The Lion King",
        "genre": ["Animation", "Adventure"],
        "duration": 118,
        "rating": 7.8,
        "release_date": "2024-12-20",
        "description": "The origin story of Mufasa, the legendary lion "
                       "king.",
        "director": "Barry Jenkins",
        "cast_members": ["Aaron Pierre", "Kelvin Harrison Jr."],
        "language": "English",
        "showtimes": [("2024-12-20", "11:00", 350, 500, 700)],
    },
]

DEMO_CONCERTS = [
    {
        "title": "Coke Studio Night",
        "artist": "Various Artists",
        "genre": "Mixed",
        "date": "2024-12-28",
        "time": "18:00",
        "description": "A night of magical music from Coke Studio artists.",
        # vip, front, middle, back: (price, capacity)
        "sections": [(4500, 100), (2500, 200), (1500, 300), (800, 400)],
    },
    {
        "title": "Rock Night Bangladesh",
        "artist": "Artcell & Warfaze",
        "genre": "Rock",
        "date": "2025-01-05",
        "time": "17:00",
        "description": "The biggest rock bands of Bangladesh on one stage!",
        "sections": [(3500, 100), (2000, 200), (1200, 300), (600, 400)],
    },
]

DEMO_MATCHES = [
    {
        "home_team": "Abahani Limited",
        "away_team": "Mohammedan SC",
        "stadium": "Bangabandhu National Stadium",
        "league": "Bangladesh Premier League",
        "date": "2025-01-10",
        "time": "16:00",
        "description": "The Dhaka derby.",
        "sections": [("VIP Box", 2500, 200, "#f59e0b"),
                     ("East Stand", 800, 5000, "#3b82f6"),
                     ("West Stand", 800, 5000, "#10b981"),
                     ("North Gallery", 300, 8000, "#ef4444")],
    },
]


async def seed_reference_data(session: AsyncSession) -> None:
    """Halls + promo codes. Idempotent; caller owns the tx."""
    n_halls = (await session.execute(
        select(func.count()).select_from(Hall)
    )).scalar_one()
    if n_halls == 0:
        session.add_all([new_hall(*h) for h in HALLS])
        logger.info(f"seeded {len(HALLS)} halls")
    added = await seed_promo_codes(session)
    if added:
        logger.info(f"seeded {added} promo codes")


async def seed_demo_data(session: AsyncSession) -> None:
    """Sample shows for a fresh database; skipped once any movie exists."""
    n_movies = (await session.execute(
        select(func.count()).select_from(Movie)
    )).scalar_one()
    if n_movies:
        return

    halls = (await session.execute(
        select(Hall).where(Hall.type == "movie").order_by(Hall.name)
    )).scalars().all()

    ts = now_ts()
    for i, item in enumerate(DEMO_MOVIES):
        item = dict(item)
        showtimes = item.pop("showtimes")
        movie = Movie(id=new_id(), poster="/media/placeholder.jpg",
                      created_at=ts, **item)
        session.add(movie)
        for date, time, normal, deluxe, super_ in showtimes:
            hall = halls[i % len(halls)]
            st = Showtime(id=new_id(), movie_id=movie.id, hall_id=hall.id,
                          date=date, time=time, price_normal=normal,
                          price_deluxe=deluxe, price_super=super_,
                          created_at=ts)
            session.add(st)
            session.add_all([
                Seat(id=new_id(), showtime_id=st.id, row_letter=row,
                     seat_number=num, type=seat_type)
                for row, num, seat_type in seat_grid(hall.rows,
                                                     hall.seats_per_row)
            ])

    for item in DEMO_CONCERTS:
        item = dict(item)
        sections = item.pop("sections")
        concert = Concert(id=new_id(), poster="/media/placeholder.jpg",
                          created_at=ts, **item)
        session.add(concert)
        for name, (price, capacity) in zip(CONCERT_SECTIONS, sections):
            session.add(ConcertSection(
                id=new_id(), concert_id=concert.id, name=name, price=price,
                total_capacity=capacity, available_capacity=capacity,
            ))

    for item in DEMO_MATCHES:
        item = dict(item)
        sections = item.pop("sections")
        match = FootballMatch(id=new_id(), created_at=ts, **item)
        session.add(match)
        for name, price, capacity, color in sections:
            session.add(FootballSection(
                id=new_id(), match_id=match.id, name=name, price=price,
                total_capacity=capacity, available_capacity=capacity,
                color=color,
            ))
    logger.info(
        f"seeded demo data: {len(DEMO_MOVIES)} movies, "
        f"{len(DEMO_CONCERTS)} concerts, {len(DEMO_MATCHES)} matches"
    )


async def main():
    configure_logging()
    engine, SessionAsync, _, _ = make_async_engine(
        os.environ.get("DATABASE_URL", "sqlite:///./tixwix.db")
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionAsync() as session:
        async with session.begin():
            await seed_reference_data(session)
            await ensure_admin(
                session,
                os.environ.get("ADMIN_EMAIL", "admin@tixwix.com"),
                os.environ.get("ADMIN_PASSWORD", "admin123"),
            )
        async with session.begin():
            await seed_demo_data(session)
    await engine.dispose()
    logger.info("✅ database seeded")


if __name__ == '__main__':
    asyncio.run(main())
