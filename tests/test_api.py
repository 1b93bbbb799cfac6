"""HTTP API tests through the FastAPI test client."""

import uuid

import pytest
from fastapi.testclient import TestClient

from tixwix.server import ADMIN_EMAIL, ADMIN_PASSWORD, app
from tests.data import (
    CONCERT_DATA, CONCERT_SECTIONS, DEFAULT_PASSWORD, MATCH_DATA,
    MATCH_SECTIONS, MOVIE_DATA,
)


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def _login_admin(client):
    res = client.post("/api/auth/login",
                      json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    assert res.json()["role"] == "admin"


def _register(client, name="Sadia"):
    email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com"
    res = client.post("/api/auth/register", json={
        "name": name, "email": email, "password": DEFAULT_PASSWORD,
    })
    assert res.status_code == 201
    return res.json()


@pytest.fixture(scope="module")
def shows(client):
    """A movie with a 3x4 showtime, a concert and a match."""
    _login_admin(client)

    movie = client.post("/api/admin/movies", json=MOVIE_DATA)
    assert movie.status_code == 201
    hall = client.post("/api/admin/halls", json={
        "name": "API Hall", "type": "movie", "rows": 3, "seats_per_row": 4,
    })
    assert hall.status_code == 201
    showtime = client.post("/api/admin/showtimes", json={
        "movie_id": movie.json()["id"],
        "hall_id": hall.json()["id"],
        "date": "2025-01-01",
        "time": "18:00",
        "price_normal": 300,
        "price_deluxe": 500,
        "price_super": 700,
    })
    assert showtime.status_code == 201
    assert showtime.json()["seats"] == 12

    concert = client.post("/api/admin/concerts",
                          json=dict(CONCERT_DATA, sections=CONCERT_SECTIONS))
    assert concert.status_code == 201
    match = client.post("/api/admin/football",
                        json=dict(MATCH_DATA, sections=MATCH_SECTIONS))
    assert match.status_code == 201

    client.post("/api/auth/logout")
    return {
        "movie_id": movie.json()["id"],
        "showtime_id": showtime.json()["id"],
        "concert": {s["name"]: s["id"] for s in concert.json()["sections"]},
        "concert_id": concert.json()["id"],
        "match": {s["name"]: s["id"] for s in match.json()["sections"]},
        "match_id": match.json()["id"],
    }


def _seat_ids(client, showtime_id):
    res = client.get(f"/api/showtimes/{showtime_id}/seats")
    assert res.status_code == 200
    return {
        f"{seat['row']}{seat['number']}": seat["id"]
        for row in res.json()["seat_map"]["rows"]
        for seat in row["seats"]
    }


def test_pages_render(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "TixWix" in res.text

    res = client.get("/login")
    assert res.status_code == 200
    assert 'name="password"' in res.text


def test_html_login_redirects_to_next(client):
    res = client.post("/login", data={
        "email": ADMIN_EMAIL, "password": ADMIN_PASSWORD, "next": "/admin",
    }, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/admin"

    res = client.post("/login", data={
        "email": ADMIN_EMAIL, "password": "wrong", "next": "/",
    })
    assert res.status_code == 401
    assert "Invalid credentials" in res.text
    client.get("/logout")


def test_auth_is_required(client, shows):
    client.post("/api/auth/logout")
    assert client.get("/api/me").status_code == 401
    res = client.post("/api/bookings/movie", json={
        "showtime_id": shows["showtime_id"], "seat_ids": ["x"],
    })
    assert res.status_code == 401
    assert res.json()["detail"] == "Please login to book tickets"

    _register(client)
    assert client.get("/api/admin/stats").status_code == 403
    res = client.get("/admin", follow_redirects=False)
    assert res.status_code == 307
    assert res.headers["location"] == "/login?next=/admin"


def test_register_rejects_duplicates_and_bad_input(client):
    me = _register(client)
    res = client.post("/api/auth/register", json={
        "name": "Again", "email": me["email"], "password": DEFAULT_PASSWORD,
    })
    assert res.status_code == 409
    res = client.post("/api/auth/register", json={
        "email": "not-an-email", "password": DEFAULT_PASSWORD,
    })
    assert res.status_code == 400


def test_profile_update(client):
    _register(client, "Tanvir")
    res = client.patch("/api/me", json={"name": "Tanvir H", "phone": "017"})
    assert res.status_code == 200
    assert res.json()["name"] == "Tanvir H"
    assert res.json()["phone"] == "017"

    me = client.get("/api/me").json()
    assert me["monthly_booking_count"] == 0
    assert me["remaining_for_free_show"] == 4
    assert me["next_is_free"] is False


def test_catalog_endpoints(client, shows):
    res = client.get("/api/movies", params={"genre": ["Thriller"]})
    assert res.status_code == 200
    assert "Toofan" in [m["title"] for m in res.json()["items"]]
    assert "Thriller" in res.json()["genres"]
    res = client.get("/api/movies", params={"search": "no such film"})
    assert res.json()["items"] == []

    movie = client.get(f"/api/movies/{shows['movie_id']}").json()
    assert [st["id"] for st in movie["showtimes"]] == [shows["showtime_id"]]
    assert movie["showtimes"][0]["price"] == {
        "normal": 300, "deluxe": 500, "super": 700,
    }

    concert = client.get(f"/api/concerts/{shows['concert_id']}").json()
    assert [s["name"] for s in concert["sections"]] == [
        "vip", "front", "middle", "back"
    ]
    match = client.get(f"/api/football/{shows['match_id']}").json()
    assert match["sections"][0]["name"] == "VIP Box"
    assert match["sections"][0]["color"] == "#f59e0b"

    assert client.get("/api/movies/missing").status_code == 404
    assert len(client.get("/api/halls").json()["items"]) >= 7


def test_reviews(client, shows):
    _register(client, "Critic")
    url = f"/api/movies/{shows['movie_id']}/reviews"
    res = client.post(url, json={"rating": 9, "comment": "Loved it"})
    assert res.status_code == 201
    assert client.post(url, json={"rating": 0}).status_code == 400

    body = client.get(url).json()
    assert body["average"] == 9.0
    assert body["items"][0]["comment"] == "Loved it"


def test_promo_validate(client):
    res = client.post("/api/promo/validate",
                      json={"code": "firstorder", "subtotal": 1000})
    assert res.status_code == 200
    assert res.json() == {
        "code": "FIRSTORDER", "type": "percentage", "discount": 10,
        "amount": 100,
    }
    res = client.post("/api/promo/validate", json={"code": "NOPE"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid promo code"


def test_movie_booking_flow(client, shows):
    _register(client)
    seats = _seat_ids(client, shows["showtime_id"])
    picked = [seats["A1"], seats["C1"]]

    quote = client.post("/api/quote/movie", json={
        "showtime_id": shows["showtime_id"], "seat_ids": picked,
        "promo_code": "FIRSTORDER",
    })
    assert quote.status_code == 200
    assert quote.json()["subtotal"] == 1200
    assert quote.json()["final_price"] == 1080

    res = client.post("/api/bookings/movie", json={
        "showtime_id": shows["showtime_id"], "seat_ids": picked,
        "promo_code": "FIRSTORDER",
    })
    assert res.status_code == 201
    booking = res.json()
    assert booking["final_price"] == 1080
    assert booking["discount"] == 120

    again = client.post("/api/bookings/movie", json={
        "showtime_id": shows["showtime_id"], "seat_ids": [seats["A1"]],
    })
    assert again.status_code == 409

    ticket = client.get(f"/api/bookings/{booking['id']}/receipt").json()
    assert ticket["seats"] == ["A1", "C1"]
    assert ticket["qr"].startswith("TIXWIX|TIX-")
    page = client.get(f"/bookings/{booking['id']}/receipt")
    assert page.status_code == 200
    assert booking["ticket_code"] in page.text

    assert client.get("/api/me").json()["monthly_booking_count"] == 1

    res = client.post(f"/api/bookings/{booking['id']}/cancel")
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert client.post(
        f"/api/bookings/{booking['id']}/cancel"
    ).status_code == 409

    seats_after = client.get(
        f"/api/showtimes/{shows['showtime_id']}/seats"
    ).json()["seat_map"]
    assert seats_after["available"] == seats_after["total"]

    mine = client.get("/api/me/bookings").json()["items"]
    assert [b["status"] for b in mine] == ["cancelled"]
    assert client.get("/api/me").json()["monthly_booking_count"] == 0


def test_bookings_are_private(client, shows):
    _register(client, "Owner")
    res = client.post("/api/bookings/football", json={
        "section_id": shows["match"]["North Gallery"], "quantity": 1,
    })
    booking_id = res.json()["id"]

    _register(client, "Snoop")
    assert client.get(f"/api/bookings/{booking_id}").status_code == 403
    assert client.post(
        f"/api/bookings/{booking_id}/cancel"
    ).status_code == 403


def test_section_bookings(client, shows):
    _register(client)
    res = client.post("/api/bookings/concert", json={
        "section_id": shows["concert"]["back"], "quantity": 2,
    })
    assert res.status_code == 201
    assert res.json()["final_price"] == 1600
    assert res.json()["section_name"] == "back"

    res = client.post("/api/bookings/concert", json={
        "section_id": shows["concert"]["vip"], "quantity": 5,
    })
    assert res.status_code == 409

    res = client.post("/api/bookings/concert", json={
        "section_id": shows["concert"]["back"], "quantity": 11,
    })
    assert res.status_code == 400

    res = client.post("/api/bookings/concert", json={
        "section_id": shows["concert"]["back"], "quantity": 1,
        "promo_code": "BOGUS",
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid promo code"

    res = client.post("/api/bookings/football", json={
        "section_id": shows["match"]["North Gallery"], "quantity": 2,
        "promo_code": "TIXWIX50",
    })
    assert res.status_code == 201
    assert res.json()["final_price"] == 550

    quote = client.post("/api/quote/section", json={
        "kind": "football", "section_id": shows["match"]["VIP Box"],
        "quantity": 2,
    })
    assert quote.json()["final_price"] == 5000


def test_fifth_booking_of_the_month_is_free(client, shows):
    _register(client, "Regular")
    for _ in range(4):
        res = client.post("/api/bookings/concert", json={
            "section_id": shows["concert"]["back"], "quantity": 1,
        })
        assert res.json()["free_show"] is False

    me = client.get("/api/me").json()
    assert me["monthly_booking_count"] == 4
    assert me["next_is_free"] is True

    res = client.post("/api/bookings/concert", json={
        "section_id": shows["concert"]["front"], "quantity": 2,
    })
    assert res.status_code == 201
    assert res.json()["free_show"] is True
    assert res.json()["total_price"] == 5000
    assert res.json()["final_price"] == 0


def test_admin_create_rejects_wrongly_typed_fields(client):
    _login_admin(client)

    res = client.post("/api/admin/movies",
                      json=dict(MOVIE_DATA, duration="abc"))
    assert res.status_code == 400
    assert res.json()["detail"] == "duration must be a number"

    sections = dict(CONCERT_SECTIONS, vip={"price": "x", "capacity": 2})
    res = client.post("/api/admin/concerts",
                      json=dict(CONCERT_DATA, sections=sections))
    assert res.status_code == 400
    assert "vip" in res.json()["detail"]

    res = client.post("/api/admin/football",
                      json=dict(MATCH_DATA, sections=["VIP"]))
    assert res.status_code == 400
    client.post("/api/auth/logout")


def test_admin_endpoints(client, shows):
    user = _register(client, "Member")
    _login_admin(client)

    res = client.post("/api/admin/promos", json={
        "code": "eid25", "discount": 25, "type": "percentage",
    })
    assert res.status_code == 201
    assert res.json()["code"] == "EID25"
    assert client.post("/api/admin/promos", json={
        "code": "EID25", "discount": 25, "type": "percentage",
    }).status_code == 409

    assert client.post(
        "/api/admin/promos/EID25/deactivate"
    ).json()["is_active"] is False
    assert client.post("/api/promo/validate",
                       json={"code": "EID25"}).status_code == 400
    codes = {p["code"]: p["is_active"]
             for p in client.get("/api/admin/promos").json()["items"]}
    assert codes["EID25"] is False

    res = client.post("/api/bookings/football", json={
        "section_id": shows["match"]["North Gallery"], "quantity": 1,
    })
    booking_id = res.json()["id"]
    res = client.post(f"/api/admin/bookings/{booking_id}/checkin")
    assert res.json()["status"] == "used"
    assert client.post(
        f"/api/admin/bookings/{booking_id}/checkin"
    ).status_code == 409

    stats = client.get("/api/admin/stats").json()
    assert stats["movies"] >= 1 and stats["bookings"] >= 1
    assert client.get("/api/admin/bookings",
                      params={"limit": 5}).json()["items"]
    kinds = {t["kind"] for t in client.get("/api/admin/timings").json()["items"]}
    assert "booking.football" in kinds

    res = client.post(f"/api/admin/users/{user['id']}/role",
                      json={"role": "moderator"})
    assert res.json()["role"] == "moderator"
    assert client.post(f"/api/admin/users/{user['id']}/role",
                       json={"role": "king"}).status_code == 400

    res = client.post("/api/admin/uploads", data={"folder": "movies"},
                      files={"file": ("poster.png", b"\x89PNG", "image/png")})
    assert res.status_code == 201
    assert res.json()["url"].startswith("/media/movies/")
    assert client.get(res.json()["url"]).content == b"\x89PNG"

    page = client.get("/admin")
    assert page.status_code == 200
    assert "Recent bookings" in page.text
    client.post("/api/auth/logout")
