# JSON shapes returned by the API
from __future__ import annotations
from typing import Any, Dict, List, Optional

from ..helpers import to_iso
from . import pricing
from .orm import (
    Booking, Concert, ConcertSection, FootballMatch, FootballSection, Hall,
    Movie, Profile, PromoCode, Review, Seat, Showtime,
)


def movie_view(m: Movie) -> Dict[str, Any]:
    return {
        "id": m.id,
        "title": m.title,
        "poster": m.poster,
        "backdrop": m.backdrop,
        "genre": list(m.genre or []),
        "duration": m.duration,
        "rating": m.rating,
        "release_date": m.release_date,
        "description": m.description,
        "director": m.director,
        "cast_members": list(m.cast_members or []),
        "language": m.language,
        "trailer_url": m.trailer_url,
    }


def hall_view(h: Hall) -> Dict[str, Any]:
    return {
        "id": h.id,
        "name": h.name,
        "type": h.type,
        "rows": h.rows,
        "seats_per_row": h.seats_per_row,
        "total_seats": h.total_seats,
    }


def showtime_view(st: Showtime) -> Dict[str, Any]:
    return {
        "id": st.id,
        "movie_id": st.movie_id,
        "hall_id": st.hall_id,
        "date": st.date,
        "time": st.time,
        "price": st.prices(),
    }


def seat_view(s: Seat) -> Dict[str, Any]:
    return {
        "id": s.id,
        "row": s.row_letter,
        "number": s.seat_number,
        "type": s.type,
        "status": s.status,
    }


def seat_map_view(seats: List[Seat]) -> Dict[str, Any]:
    rows: Dict[str, List[Dict[str, Any]]] = {}
    for s in seats:
        rows.setdefault(s.row_letter, []).append(seat_view(s))
    available = sum(1 for s in seats if s.status == "available")
    return {
        "rows": [{"row": r, "seats": v} for r, v in rows.items()],
        "available": available,
        "total": len(seats),
    }


def section_view(s: ConcertSection | FootballSection) -> Dict[str, Any]:
    out = {
        "id": s.id,
        "name": s.name,
        "price": s.price,
        "total_capacity": s.total_capacity,
        "available_capacity": s.available_capacity,
        "sold_out": s.available_capacity <= 0,
    }
    if isinstance(s, FootballSection):
        out["color"] = s.color
    return out


def concert_view(c: Concert,
                 sections: Optional[List[ConcertSection]] = None):
    out = {
        "id": c.id,
        "title": c.title,
        "artist": c.artist,
        "poster": c.poster,
        "backdrop": c.backdrop,
        "genre": c.genre,
        "date": c.date,
        "time": c.time,
        "description": c.description,
    }
    if sections is not None:
        out["sections"] = [section_view(s) for s in sections]
    return out


def match_view(m: FootballMatch,
               sections: Optional[List[FootballSection]] = None):
    out = {
        "id": m.id,
        "home_team": m.home_team,
        "away_team": m.away_team,
        "home_logo": m.home_logo,
        "away_logo": m.away_logo,
        "stadium": m.stadium,
        "league": m.league,
        "date": m.date,
        "time": m.time,
        "poster": m.poster,
        "description": m.description,
    }
    if sections is not None:
        out["sections"] = [section_view(s) for s in sections]
    return out


def booking_view(b: Booking) -> Dict[str, Any]:
    return {
        "id": b.id,
        "user_id": b.user_id,
        "type": b.type,
        "show_id": b.show_id,
        "section_name": b.section_name,
        "quantity": b.quantity,
        "total_price": b.total_price,
        "discount": b.discount,
        "final_price": b.final_price,
        "currency": b.currency,
        "promo_code": b.promo_code,
        "free_show": bool(b.free_show),
        "status": b.status,
        "ticket_code": b.ticket_code,
        "booking_date": to_iso(b.booking_date),
    }


def user_view(p: Profile, monthly_count: Optional[int] = None):
    out = {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "role": p.role,
    }
    if monthly_count is not None:
        out["monthly_booking_count"] = monthly_count
        out["free_show_progress"] = monthly_count % pricing.FREE_SHOW_EVERY
        out["remaining_for_free_show"] = pricing.bookings_until_free_show(
            monthly_count
        )
        out["next_is_free"] = pricing.is_free_show(monthly_count)
    return out


def promo_view(p: PromoCode) -> Dict[str, Any]:
    return {
        "code": p.code,
        "discount": p.discount,
        "type": p.type,
        "is_active": bool(p.is_active),
    }


def review_view(r: Review) -> Dict[str, Any]:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "movie_id": r.movie_id,
        "rating": r.rating,
        "comment": r.comment,
        "date": to_iso(r.created_at),
    }
