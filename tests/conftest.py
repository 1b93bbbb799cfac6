import os
import tempfile

# The app reads its configuration at import time
_tmp_dir = tempfile.mkdtemp(prefix="tixwix-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/tixwix_api.db"
os.environ["MEDIA_DIR"] = os.path.join(_tmp_dir, "media")
os.environ["COUNTER_BACKEND"] = "sql"
os.environ["SEED_DEMO_DATA"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from tixwix.infra.sql import GatedAsyncSession, make_async_engine  # noqa: E402
from tixwix.model import catalog, users  # noqa: E402
from tixwix.model.bookingcount import new_counter  # noqa: E402
from tixwix.model.orm import Base  # noqa: E402
from tixwix.seed import seed_reference_data  # noqa: E402

from tests.data import (  # noqa: E402
    CONCERT_DATA, CONCERT_SECTIONS, DEFAULT_PASSWORD, MATCH_DATA,
    MATCH_SECTIONS, MOVIE_DATA, SHOWTIME_PRICES,
)


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path):
    """A fresh sqlite database with halls and promo codes."""
    engine, SessionAsync, _, gated = make_async_engine(
        f"sqlite:///{tmp_path}/tixwix.db"
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionAsync() as session:
        async with session.begin():
            await seed_reference_data(session)
    yield SessionAsync, gated
    await engine.dispose()


@pytest_asyncio.fixture
async def db(database):
    SessionAsync, gated = database
    async with SessionAsync() as session:
        yield GatedAsyncSession(session=session, gated=gated)


@pytest_asyncio.fixture
async def other_db(database):
    """A second session on the same database, e.g. a competing request."""
    SessionAsync, gated = database
    async with SessionAsync() as session:
        yield GatedAsyncSession(session=session, gated=gated)


@pytest.fixture
def counter(db):
    return new_counter(db=db)


@pytest_asyncio.fixture
async def user(db):
    return await users.register(db, "Rahim", "rahim@example.com",
                                DEFAULT_PASSWORD)


@pytest_asyncio.fixture
async def admin(db):
    return await users.register(db, "Boss", "boss@example.com",
                                DEFAULT_PASSWORD, role="admin")


@pytest_asyncio.fixture
async def showtime_id(db):
    movie = await catalog.create_movie(db, dict(MOVIE_DATA))
    hall = await catalog.create_hall(db, "Test Hall", "movie", 3, 4)
    st, _ = await catalog.create_showtime(db, movie.id, hall.id,
                                          "2025-01-01", "18:00",
                                          SHOWTIME_PRICES)
    return st.id


@pytest_asyncio.fixture
async def seats(db, showtime_id):
    """Seat ids by label, e.g. seats["A1"]."""
    rows = await catalog.list_seats(db, showtime_id)
    return {f"{s.row_letter}{s.seat_number}": s.id for s in rows}


@pytest_asyncio.fixture
async def concert_sections(db):
    _, sections = await catalog.create_concert(db, dict(CONCERT_DATA),
                                               CONCERT_SECTIONS)
    return {s.name: s.id for s in sections}


@pytest_asyncio.fixture
async def match_sections(db):
    _, sections = await catalog.create_match(db, dict(MATCH_DATA),
                                             MATCH_SECTIONS)
    return {s.name: s.id for s in sections}
