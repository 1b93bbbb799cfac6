from __future__ import annotations
import os
import sys
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query
from fastapi import Request, UploadFile
from fastapi.responses import HTMLResponse, ORJSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware
from starlette.status import HTTP_303_SEE_OTHER

import redis.asyncio as redis

from .infra.log import configure_logging
from .infra.sql import GatedAsyncSession, make_async_engine
from .infra import timings
from .media import MEDIA_DIR, MEDIA_URL, save_poster
from .model import booking as bookings
from .model import catalog, promo, users
from .model import views as v
from .model.bookingcount import BACKEND as COUNTER_BACKEND, new_counter
from .model.errors import BookingError, NotFound
from .model.orm import Base, Profile
from .model.pricing import Promo, promo_discount
from .seed import seed_demo_data, seed_reference_data

configure_logging()

# ----------------------------
# Config & Constants
# ----------------------------
DATABASE_URL = os.environ.get("DATABASE_URL", None)

if DATABASE_URL is None:
    logger.error("NEED DATABASE_URL! e.g. sqlite:///./tixwix.db")
    sys.exit(1)

SITE_NAME = "TixWix"
SESSION_SECRET = os.environ.get("SESSION_SECRET", "dev-secret-change-me")
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@tixwix.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")
SEED_DEMO_DATA = os.environ.get("SEED_DEMO_DATA", "0") == "1"

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
templates = Jinja2Templates(directory=TEMPLATE_DIR)

engine, SessionAsync, _, gated = make_async_engine(DATABASE_URL)


async def get_db() -> GatedAsyncSession:
    async with SessionAsync() as session:
        yield GatedAsyncSession(session=session, gated=gated)


app = FastAPI(
    title=SITE_NAME,
    default_response_class=ORJSONResponse,
)
app.mount(MEDIA_URL, StaticFiles(directory=MEDIA_DIR, check_dir=False),
          name="media")
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)


async def booking_counter(db: GatedAsyncSession = Depends(get_db)):
    if COUNTER_BACKEND == "redis":
        yield new_counter(r=app.state.redis)
    else:
        yield new_counter(db=db)


# ---
# startup / shutdown
# ---
@app.on_event("startup")
async def _say_hello():
    C = 'Redis' if COUNTER_BACKEND == 'redis' else 'SQL'
    logger.info(f"{SITE_NAME} is starting up...")
    logger.info(f"   - Database: {engine.url.get_backend_name()}")
    logger.info(f"   - Monthly booking counter backend: {C}")


@app.on_event("startup")
async def _db_init():
    os.makedirs(MEDIA_DIR, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with SessionAsync() as session:
        async with session.begin():
            await seed_reference_data(session)
            if await users.ensure_admin(session, ADMIN_EMAIL,
                                        ADMIN_PASSWORD):
                logger.info(f"created admin account {ADMIN_EMAIL}")
        if SEED_DEMO_DATA:
            async with session.begin():
                await seed_demo_data(session)


@app.on_event("startup")
async def _redis_start():
    if COUNTER_BACKEND == 'redis':
        REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379")
        app.state.redis = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            max_connections=int(os.getenv("REDIS_MAX_CONN", "64")),
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )


@app.on_event("shutdown")
async def _redis_stop():
    r = getattr(app.state, "redis", None)
    if r is not None:
        await r.close()
        app.state.redis = None


@app.on_event("shutdown")
async def _db_stop():
    await engine.dispose()


@app.exception_handler(BookingError)
async def _booking_error(request: Request, exc: BookingError):
    logger.warning(
        f"{request.method} {request.url.path} -> {exc.status_code}: "
        f"{exc.message}"
    )
    return ORJSONResponse({"detail": exc.message},
                          status_code=exc.status_code)


# ----------------------------
# Helpers
# ----------------------------
async def optional_user(
    request: Request, db: GatedAsyncSession = Depends(get_db)
) -> Optional[Profile]:
    uid = request.session.get("user_id")
    if not uid:
        return None
    try:
        return await users.get_user(db, uid)
    except NotFound:
        # account is gone, forget the stale cookie
        request.session.clear()
        return None


async def current_user(
    user: Optional[Profile] = Depends(optional_user),
) -> Profile:
    if user is None:
        raise HTTPException(401, detail="Please login to book tickets")
    return user


async def admin_user(user: Profile = Depends(current_user)) -> Profile:
    if user.role != "admin":
        raise HTTPException(403, detail="admin only")
    return user


def _str(payload: dict, key: str, required: bool = True) -> Optional[str]:
    val = payload.get(key)
    if val is None or (isinstance(val, str) and not val.strip()):
        if required:
            raise HTTPException(400, detail=f"{key} is required")
        return None
    if not isinstance(val, str):
        raise HTTPException(400, detail=f"{key} must be a string")
    return val.strip()


def _int(payload: dict, key: str, default: Optional[int] = None) -> int:
    val = payload.get(key, default)
    if val is None:
        raise HTTPException(400, detail=f"{key} is required")
    try:
        return int(val)
    except (TypeError, ValueError):
        raise HTTPException(400, detail=f"{key} must be an integer")


def _str_list(payload: dict, key: str) -> List[str]:
    val = payload.get(key) or []
    if not isinstance(val, list) or not all(isinstance(x, str) for x in val):
        raise HTTPException(400, detail=f"{key} must be a list of strings")
    return val


def _login(request: Request, user: Profile) -> None:
    request.session["user_id"] = user.id
    request.session["role"] = user.role


# ----------------------------
# Pages
# ----------------------------
@app.get("/", response_class=HTMLResponse)
async def landing_page(request: Request,
                       db: GatedAsyncSession = Depends(get_db),
                       user: Optional[Profile] = Depends(optional_user)):
    movies = await catalog.list_movies(db)
    concerts = await catalog.list_concerts(db)
    matches = await catalog.list_matches(db)
    return templates.TemplateResponse(
        request,
        "landing.html",
        {
            "site_name": SITE_NAME,
            "user": user,
            "movies": movies[:8],
            "concerts": concerts[:4],
            "matches": matches[:4],
        },
    )


@app.get("/login", response_class=HTMLResponse)
async def login_get(request: Request, next: str | None = "/"):
    return templates.TemplateResponse(
        request, "login.html",
        {"site_name": SITE_NAME, "next": next, "error": None},
    )


@app.post("/login", response_class=HTMLResponse)
async def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/"),
    db: GatedAsyncSession = Depends(get_db),
):
    user = await users.authenticate(db, email, password)
    if user is not None:
        _login(request, user)
        # only local redirects
        dest = next if (next or "").startswith("/") else "/"
        return RedirectResponse(url=dest, status_code=HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(
        request, "login.html",
        {"site_name": SITE_NAME, "next": next,
         "error": "Invalid credentials."},
        status_code=401,
    )


@app.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse(url="/", status_code=HTTP_303_SEE_OTHER)


@app.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request,
                     db: GatedAsyncSession = Depends(get_db),
                     user: Optional[Profile] = Depends(optional_user)):
    if user is None or user.role != "admin":
        dest = request.url.path
        return RedirectResponse(
            url=f"/login?next={dest}",
            status_code=307
        )
    stats = await bookings.dashboard_stats(db)
    recent = await bookings.list_recent_bookings(db, limit=20)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "site_name": SITE_NAME,
            "user": user,
            "stats": stats,
            "bookings": [v.booking_view(b) for b in recent],
        },
    )


@app.get("/bookings/{booking_id}/receipt", response_class=HTMLResponse)
async def receipt_page(request: Request, booking_id: str,
                       db: GatedAsyncSession = Depends(get_db),
                       user: Profile = Depends(current_user)):
    ticket = await bookings.receipt(db, user, booking_id)
    return templates.TemplateResponse(
        request, "receipt.html",
        {"site_name": SITE_NAME, "user": user, "ticket": ticket},
    )


# ----------------------------
# API: auth & profile
# ----------------------------
@app.post("/api/auth/register", status_code=201)
async def api_register(payload: dict, request: Request,
                       db: GatedAsyncSession = Depends(get_db)):
    user = await users.register(
        db,
        name=_str(payload, "name", required=False) or "",
        email=_str(payload, "email"),
        password=payload.get("password") or "",
        phone=_str(payload, "phone", required=False),
    )
    _login(request, user)
    return v.user_view(user, monthly_count=0)


@app.post("/api/auth/login")
async def api_login(payload: dict, request: Request,
                    db: GatedAsyncSession = Depends(get_db),
                    counter=Depends(booking_counter)):
    user = await users.authenticate(db, _str(payload, "email"),
                                    payload.get("password") or "")
    if user is None:
        raise HTTPException(401, detail="Invalid credentials.")
    _login(request, user)
    return v.user_view(user, await counter.count_this_month(user.id))


@app.post("/api/auth/logout")
async def api_logout(request: Request):
    request.session.clear()
    return {"ok": True}


@app.get("/api/me")
async def api_me(user: Profile = Depends(current_user),
                 counter=Depends(booking_counter)):
    return v.user_view(user, await counter.count_this_month(user.id))


@app.patch("/api/me")
async def api_update_me(payload: dict,
                        db: GatedAsyncSession = Depends(get_db),
                        user: Profile = Depends(current_user)):
    user = await users.update_profile(
        db, user.id,
        name=_str(payload, "name", required=False),
        phone=_str(payload, "phone", required=False),
    )
    return v.user_view(user)


@app.get("/api/me/bookings")
async def api_my_bookings(db: GatedAsyncSession = Depends(get_db),
                          user: Profile = Depends(current_user)):
    items = await bookings.list_user_bookings(db, user.id)
    return {"items": [v.booking_view(b) for b in items]}


# ----------------------------
# API: catalog
# ----------------------------
@app.get("/api/movies")
async def api_movies(search: Optional[str] = None,
                     genre: List[str] = Query(default=[]),
                     db: GatedAsyncSession = Depends(get_db)):
    everything = await catalog.list_movies(db)
    items = [m for m in everything
             if catalog.matches_movie(m, search, genre)]
    return {
        "items": [v.movie_view(m) for m in items],
        "genres": catalog.movie_genres(everything),
    }


@app.get("/api/movies/{movie_id}")
async def api_movie(movie_id: str, db: GatedAsyncSession = Depends(get_db)):
    movie = await catalog.get_movie(db, movie_id)
    showtimes = await catalog.list_showtimes(db, movie_id)
    out = v.movie_view(movie)
    out["showtimes"] = [v.showtime_view(st) for st in showtimes]
    out["dates"] = sorted({st.date for st in showtimes})
    return out


@app.get("/api/movies/{movie_id}/reviews")
async def api_reviews(movie_id: str,
                      db: GatedAsyncSession = Depends(get_db)):
    await catalog.get_movie(db, movie_id)
    items, avg = await catalog.list_reviews(db, movie_id)
    return {"items": [v.review_view(r) for r in items], "average": avg}


@app.post("/api/movies/{movie_id}/reviews", status_code=201)
async def api_add_review(movie_id: str, payload: dict,
                         db: GatedAsyncSession = Depends(get_db),
                         user: Profile = Depends(current_user)):
    review = await catalog.add_review(
        db, user.id, movie_id, _int(payload, "rating"),
        payload.get("comment"),
    )
    return v.review_view(review)


@app.get("/api/showtimes/{showtime_id}/seats")
async def api_seats(showtime_id: str,
                    db: GatedAsyncSession = Depends(get_db)):
    st, hall = await catalog.get_showtime(db, showtime_id)
    seats = await catalog.list_seats(db, showtime_id)
    return {
        "showtime": v.showtime_view(st),
        "hall": v.hall_view(hall),
        "seat_map": v.seat_map_view(seats),
    }


@app.get("/api/halls")
async def api_halls(type: Optional[str] = None,
                    db: GatedAsyncSession = Depends(get_db)):
    halls = await catalog.list_halls(db, type)
    return {"items": [v.hall_view(h) for h in halls]}


@app.get("/api/concerts")
async def api_concerts(db: GatedAsyncSession = Depends(get_db)):
    items = await catalog.list_concerts(db)
    return {"items": [v.concert_view(c) for c in items]}


@app.get("/api/concerts/{concert_id}")
async def api_concert(concert_id: str,
                      db: GatedAsyncSession = Depends(get_db)):
    concert, sections = await catalog.get_concert(db, concert_id)
    return v.concert_view(concert, sections)


@app.get("/api/football")
async def api_matches(db: GatedAsyncSession = Depends(get_db)):
    items = await catalog.list_matches(db)
    return {"items": [v.match_view(m) for m in items]}


@app.get("/api/football/{match_id}")
async def api_match(match_id: str, db: GatedAsyncSession = Depends(get_db)):
    match, sections = await catalog.get_match(db, match_id)
    return v.match_view(match, sections)


# ----------------------------
# API: pricing
# ----------------------------
@app.post("/api/promo/validate")
async def api_validate_promo(payload: dict,
                             db: GatedAsyncSession = Depends(get_db)):
    p: Optional[Promo] = await promo.resolve_promo(
        db, _str(payload, "code")
    )
    subtotal = _int(payload, "subtotal", default=0)
    return {
        "code": p.code,
        "type": p.type,
        "discount": p.discount,
        "amount": promo_discount(p, subtotal),
    }


@app.post("/api/quote/movie")
async def api_quote_movie(payload: dict,
                          db: GatedAsyncSession = Depends(get_db),
                          user: Optional[Profile] = Depends(optional_user),
                          counter=Depends(booking_counter)):
    quote = await bookings.quote_movie(
        db, counter, user.id if user else None,
        _str(payload, "showtime_id"), _str_list(payload, "seat_ids"),
        _str(payload, "promo_code", required=False),
    )
    return quote.as_dict()


@app.post("/api/quote/section")
async def api_quote_section(payload: dict,
                            db: GatedAsyncSession = Depends(get_db),
                            user: Optional[Profile] = Depends(optional_user),
                            counter=Depends(booking_counter)):
    quote = await bookings.quote_section(
        db, counter, user.id if user else None,
        _str(payload, "kind"), _str(payload, "section_id"),
        _int(payload, "quantity", default=1),
        _str(payload, "promo_code", required=False),
    )
    return quote.as_dict()


# ----------------------------
# API: bookings
# ----------------------------
@app.post("/api/bookings/movie", status_code=201)
async def api_book_movie(payload: dict,
                         db: GatedAsyncSession = Depends(get_db),
                         user: Profile = Depends(current_user),
                         counter=Depends(booking_counter)):
    booking = await bookings.book_movie(
        db, counter, user,
        _str(payload, "showtime_id"), _str_list(payload, "seat_ids"),
        _str(payload, "promo_code", required=False),
    )
    return v.booking_view(booking)


async def _book_section(kind: str, payload: dict, db, user, counter):
    booking = await bookings.book_section(
        db, counter, user, kind,
        _str(payload, "section_id"),
        _int(payload, "quantity", default=1),
        _str(payload, "promo_code", required=False),
    )
    return v.booking_view(booking)


@app.post("/api/bookings/concert", status_code=201)
async def api_book_concert(payload: dict,
                           db: GatedAsyncSession = Depends(get_db),
                           user: Profile = Depends(current_user),
                           counter=Depends(booking_counter)):
    return await _book_section("concert", payload, db, user, counter)


@app.post("/api/bookings/football", status_code=201)
async def api_book_football(payload: dict,
                            db: GatedAsyncSession = Depends(get_db),
                            user: Profile = Depends(current_user),
                            counter=Depends(booking_counter)):
    return await _book_section("football", payload, db, user, counter)


@app.get("/api/bookings/{booking_id}")
async def api_booking(booking_id: str,
                      db: GatedAsyncSession = Depends(get_db),
                      user: Profile = Depends(current_user)):
    return v.booking_view(await bookings.get_booking(db, user, booking_id))


@app.get("/api/bookings/{booking_id}/receipt")
async def api_receipt(booking_id: str,
                      db: GatedAsyncSession = Depends(get_db),
                      user: Profile = Depends(current_user)):
    return await bookings.receipt(db, user, booking_id)


@app.post("/api/bookings/{booking_id}/cancel")
async def api_cancel(booking_id: str,
                     db: GatedAsyncSession = Depends(get_db),
                     user: Profile = Depends(current_user),
                     counter=Depends(booking_counter)):
    booking = await bookings.cancel_booking(db, counter, user, booking_id)
    return v.booking_view(booking)


# ----------------------------
# API: admin
# ----------------------------
@app.get("/api/admin/stats")
async def api_admin_stats(db: GatedAsyncSession = Depends(get_db),
                          _: Profile = Depends(admin_user)):
    return await bookings.dashboard_stats(db)


@app.get("/api/admin/bookings")
async def api_admin_bookings(limit: int = 200,
                             db: GatedAsyncSession = Depends(get_db),
                             _: Profile = Depends(admin_user)):
    items = await bookings.list_recent_bookings(db, limit=limit)
    return {"items": [v.booking_view(b) for b in items], "limit": limit}


@app.post("/api/admin/bookings/{booking_id}/checkin")
async def api_admin_checkin(booking_id: str,
                            db: GatedAsyncSession = Depends(get_db),
                            _: Profile = Depends(admin_user)):
    return v.booking_view(await bookings.mark_used(db, booking_id))


@app.post("/api/admin/uploads", status_code=201)
async def api_admin_upload(folder: str = Form(...),
                           file: UploadFile = File(...),
                           _: Profile = Depends(admin_user)):
    return {"url": await save_poster(file, folder)}


@app.post("/api/admin/movies", status_code=201)
async def api_admin_create_movie(payload: dict,
                                 db: GatedAsyncSession = Depends(get_db),
                                 _: Profile = Depends(admin_user)):
    data: dict[str, Any] = dict(payload)
    data["genre"] = _str_list(payload, "genre")
    data["cast_members"] = _str_list(payload, "cast_members")
    movie = await catalog.create_movie(db, data)
    return v.movie_view(movie)


@app.post("/api/admin/halls", status_code=201)
async def api_admin_create_hall(payload: dict,
                                db: GatedAsyncSession = Depends(get_db),
                                _: Profile = Depends(admin_user)):
    hall = await catalog.create_hall(
        db, _str(payload, "name"), _str(payload, "type"),
        _int(payload, "rows", default=0),
        _int(payload, "seats_per_row", default=0),
    )
    return v.hall_view(hall)


@app.post("/api/admin/showtimes", status_code=201)
async def api_admin_create_showtime(payload: dict,
                                    db: GatedAsyncSession = Depends(get_db),
                                    _: Profile = Depends(admin_user)):
    showtime, n_seats = await catalog.create_showtime(
        db,
        movie_id=_str(payload, "movie_id"),
        hall_id=_str(payload, "hall_id"),
        date=_str(payload, "date"),
        time=_str(payload, "time"),
        prices={
            "normal": _int(payload, "price_normal"),
            "deluxe": _int(payload, "price_deluxe"),
            "super": _int(payload, "price_super"),
        },
    )
    out = v.showtime_view(showtime)
    out["seats"] = n_seats
    return out


@app.post("/api/admin/concerts", status_code=201)
async def api_admin_create_concert(payload: dict,
                                   db: GatedAsyncSession = Depends(get_db),
                                   _: Profile = Depends(admin_user)):
    sections = payload.get("sections")
    if not isinstance(sections, dict):
        raise HTTPException(400, detail="sections must be an object")
    concert, rows = await catalog.create_concert(db, payload, sections)
    return v.concert_view(concert, rows)


@app.post("/api/admin/football", status_code=201)
async def api_admin_create_match(payload: dict,
                                 db: GatedAsyncSession = Depends(get_db),
                                 _: Profile = Depends(admin_user)):
    sections = payload.get("sections")
    if not isinstance(sections, list):
        raise HTTPException(400, detail="sections must be a list")
    match, rows = await catalog.create_match(db, payload, sections)
    return v.match_view(match, rows)


@app.get("/api/admin/promos")
async def api_admin_promos(db: GatedAsyncSession = Depends(get_db),
                           _: Profile = Depends(admin_user)):
    return {"items": [v.promo_view(p) for p in await promo.list_promos(db)]}


@app.post("/api/admin/promos", status_code=201)
async def api_admin_create_promo(payload: dict,
                                 db: GatedAsyncSession = Depends(get_db),
                                 _: Profile = Depends(admin_user)):
    row = await promo.create_promo(db, _str(payload, "code"),
                                   _int(payload, "discount"),
                                   _str(payload, "type"))
    return v.promo_view(row)


@app.post("/api/admin/promos/{code}/{action}")
async def api_admin_toggle_promo(code: str, action: str,
                                 db: GatedAsyncSession = Depends(get_db),
                                 _: Profile = Depends(admin_user)):
    if action not in ("activate", "deactivate"):
        raise HTTPException(404, detail="unknown action")
    await promo.set_promo_active(db, code, action == "activate")
    return {"ok": True, "code": promo.normalize_code(code),
            "is_active": action == "activate"}


@app.post("/api/admin/users/{user_id}/role")
async def api_admin_set_role(user_id: str, payload: dict,
                             db: GatedAsyncSession = Depends(get_db),
                             _: Profile = Depends(admin_user)):
    user = await users.set_role(db, user_id, _str(payload, "role"))
    return v.user_view(user)


@app.get("/api/admin/timings")
async def api_admin_timings(_: Profile = Depends(admin_user)):
    return {"items": timings.aggregates()}
