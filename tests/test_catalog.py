import pytest

from tixwix.helpers import month_bounds, month_key
from tixwix.model import catalog, promo, users
from tixwix.model.errors import BookingError, Conflict, InvalidPromo, NotFound
from tests.data import (
    CONCERT_DATA, CONCERT_SECTIONS, MATCH_DATA, MOVIE_DATA, SHOWTIME_PRICES,
)


def test_seat_grid_assigns_types_by_row():
    grid = catalog.seat_grid(5, 2)
    assert len(grid) == 10
    assert grid[0] == ("A", 1, "super")
    assert grid[3] == ("B", 2, "super")
    assert grid[4] == ("C", 1, "deluxe")
    assert grid[7] == ("D", 2, "deluxe")
    assert grid[9] == ("E", 2, "normal")


def test_new_hall_validates_rows():
    hall = catalog.new_hall("Hall X", "movie", 4, 10)
    assert hall.total_seats == 40
    with pytest.raises(BookingError):
        catalog.new_hall("Hall X", "movie", 27, 10)
    with pytest.raises(BookingError):
        catalog.new_hall("Hall X", "drive-in", 4, 10)


def test_month_helpers_cross_year_boundary():
    # 2024-12-31T12:00:00Z
    ts = 1735646400.0
    assert month_key(ts) == "2024-12"
    start, end = month_bounds(ts)
    assert start <= ts < end
    assert month_key(end) == "2025-01"


@pytest.mark.asyncio
async def test_reference_data_is_seeded(db):
    halls = await catalog.list_halls(db)
    assert len(halls) == 7
    movie_halls = await catalog.list_halls(db, "movie")
    assert len(movie_halls) == 6
    codes = {p.code for p in await promo.list_promos(db)}
    assert codes == {"FIRSTORDER", "PRIYORCHOTOBHAI", "TIXWIX50"}


@pytest.mark.asyncio
async def test_movie_search_and_genres(db):
    await catalog.create_movie(db, dict(MOVIE_DATA))
    await catalog.create_movie(db, dict(
        MOVIE_DATA, title="Hawa", genre=["Mystery"], director="Mejbaur Rahman"
    ))

    assert [m.title for m in await catalog.list_movies(db, search="toof")] \
        == ["Toofan"]
    assert [m.title for m in await catalog.list_movies(db, search="mejbaur")] \
        == ["Hawa"]
    assert [m.title for m in await catalog.list_movies(
        db, genres=["Mystery", "Comedy"])] == ["Hawa"]
    assert catalog.movie_genres(await catalog.list_movies(db)) == [
        "Action", "Mystery", "Thriller"
    ]


@pytest.mark.asyncio
async def test_create_movie_validation(db):
    with pytest.raises(BookingError):
        await catalog.create_movie(db, dict(MOVIE_DATA, title=""))
    with pytest.raises(BookingError):
        await catalog.create_movie(db, dict(MOVIE_DATA, duration=0))
    with pytest.raises(BookingError):
        await catalog.create_movie(db, dict(MOVIE_DATA, rating=11))


@pytest.mark.asyncio
async def test_create_showtime_generates_seats(db):
    movie = await catalog.create_movie(db, dict(MOVIE_DATA))
    hall = await catalog.create_hall(db, "Mini", "movie", 2, 3)
    st, n = await catalog.create_showtime(db, movie.id, hall.id,
                                          "2025-02-01", "20:00",
                                          SHOWTIME_PRICES)
    assert n == 6
    assert st.prices() == SHOWTIME_PRICES

    seats = await catalog.list_seats(db, st.id)
    assert [f"{s.row_letter}{s.seat_number}" for s in seats] == [
        "A1", "A2", "A3", "B1", "B2", "B3"
    ]
    assert {s.status for s in seats} == {"available"}
    assert [s.id for s in await catalog.list_showtimes(db, movie.id)] \
        == [st.id]


@pytest.mark.asyncio
async def test_showtime_needs_movie_hall(db):
    movie = await catalog.create_movie(db, dict(MOVIE_DATA))
    movie_id = movie.id
    concert_hall_id = (await catalog.list_halls(db, "concert"))[0].id
    with pytest.raises(BookingError):
        await catalog.create_showtime(db, movie_id, concert_hall_id,
                                      "2025-02-01", "20:00", SHOWTIME_PRICES)
    with pytest.raises(NotFound):
        await catalog.create_showtime(db, "missing", "missing",
                                      "2025-02-01", "20:00", SHOWTIME_PRICES)


@pytest.mark.asyncio
async def test_concert_sections_are_ordered_and_required(db):
    concert, _ = await catalog.create_concert(db, dict(CONCERT_DATA), {
        "back": {"price": 500, "capacity": 10},
        "vip": {"price": 3000, "capacity": 5},
        "middle": {"price": 1000, "capacity": 10},
        "front": {"price": 2000, "capacity": 10},
    })
    _, sections = await catalog.get_concert(db, concert.id)
    assert [s.name for s in sections] == ["vip", "front", "middle", "back"]
    assert all(s.available_capacity == s.total_capacity for s in sections)

    with pytest.raises(BookingError):
        await catalog.create_concert(db, dict(CONCERT_DATA), {
            "vip": {"price": 3000, "capacity": 5},
        })


@pytest.mark.asyncio
async def test_match_section_names_must_be_unique(db):
    with pytest.raises(BookingError):
        await catalog.create_match(db, {
            "home_team": "A", "away_team": "B", "stadium": "S",
            "league": "L", "date": "2025-01-01", "time": "15:00",
        }, [
            {"name": "East", "price": 100, "capacity": 10},
            {"name": "East", "price": 200, "capacity": 10},
        ])


@pytest.mark.asyncio
async def test_create_rejects_wrongly_typed_input(db):
    with pytest.raises(BookingError, match="duration must be a number"):
        await catalog.create_movie(db, dict(MOVIE_DATA, duration="abc"))
    with pytest.raises(BookingError, match="rating must be a number"):
        await catalog.create_movie(db, dict(MOVIE_DATA, rating=[8]))
    with pytest.raises(BookingError, match="title is required"):
        await catalog.create_movie(db, dict(MOVIE_DATA, title=42))

    sections = dict(CONCERT_SECTIONS, vip={"price": "x", "capacity": 2})
    with pytest.raises(BookingError, match="section vip price"):
        await catalog.create_concert(db, dict(CONCERT_DATA), sections)
    sections = dict(CONCERT_SECTIONS, back=800)
    with pytest.raises(BookingError, match="section back must be an object"):
        await catalog.create_concert(db, dict(CONCERT_DATA), sections)

    with pytest.raises(BookingError, match="each section must be an object"):
        await catalog.create_match(db, dict(MATCH_DATA), ["VIP"])
    with pytest.raises(BookingError, match="section names"):
        await catalog.create_match(db, dict(MATCH_DATA), [
            {"name": ["VIP"], "price": 100, "capacity": 10},
        ])
    with pytest.raises(BookingError, match="normal price"):
        await catalog.create_showtime(db, "m", "h", "2025-01-01", "18:00",
                                      dict(SHOWTIME_PRICES, normal="cheap"))

    assert await catalog.list_movies(db) == []
    assert await catalog.list_concerts(db) == []
    assert await catalog.list_matches(db) == []


@pytest.mark.asyncio
async def test_reviews_average(db, user):
    movie = await catalog.create_movie(db, dict(MOVIE_DATA))
    await catalog.add_review(db, user.id, movie.id, 8, "great")
    await catalog.add_review(db, user.id, movie.id, 7, "  ")

    rows, avg = await catalog.list_reviews(db, movie.id)
    assert avg == 7.5
    assert sorted(r.rating for r in rows) == [7, 8]
    assert {r.comment for r in rows} == {"great", None}

    with pytest.raises(BookingError):
        await catalog.add_review(db, user.id, movie.id, 11, None)


@pytest.mark.asyncio
async def test_promo_admin(db):
    row = await promo.create_promo(db, " eid25 ", 25, "percentage")
    assert row.code == "EID25"
    with pytest.raises(Conflict):
        await promo.create_promo(db, "EID25", 30, "percentage")
    with pytest.raises(InvalidPromo):
        await promo.create_promo(db, "BIG", 150, "percentage")

    found = await promo.resolve_promo(db, "eid25")
    assert (found.discount, found.type) == (25, "percentage")

    await promo.set_promo_active(db, "EID25", False)
    assert await promo.find_active_promo(db, "EID25") is None
    with pytest.raises(InvalidPromo):
        await promo.resolve_promo(db, "EID25")
    assert await promo.resolve_promo(db, "  ") is None

    with pytest.raises(NotFound):
        await promo.set_promo_active(db, "NOPE", True)


@pytest.mark.asyncio
async def test_register_and_authenticate(db):
    profile = await users.register(db, "", "Nadia@Example.com", "hunter22")
    assert profile.email == "nadia@example.com"
    assert profile.name == "nadia"
    assert profile.role == "user"
    assert profile.password_hash != "hunter22"

    assert (await users.authenticate(db, "NADIA@example.com",
                                     "hunter22")).id == profile.id
    assert await users.authenticate(db, "nadia@example.com", "wrong") is None

    with pytest.raises(Conflict):
        await users.register(db, "Nadia", "nadia@example.com", "hunter22")
    with pytest.raises(BookingError):
        await users.register(db, "Short", "short@example.com", "123")
