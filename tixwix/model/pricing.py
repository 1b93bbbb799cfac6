# model/pricing.py
"""
Booking arithmetic. No I/O here: the booking flows load prices, promo
codes and the monthly booking count, then ask this module for a `Quote`.

- subtotal     : seat-type prices (movies) or section price * quantity
- discount     : promo code, percentage of the subtotal or a fixed amount
- free show    : every 5th booking in a calendar month
                   movies   -> the first FREE_SEATS_LIMIT seats are free
                   concerts -> the whole booking is free
                   football -> no free show
- final price  : never below zero
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Mapping, Optional, Sequence

SEAT_TYPES = ("normal", "deluxe", "super")

PROMO_PERCENTAGE = "percentage"
PROMO_FIXED = "fixed"
PROMO_TYPES = (PROMO_PERCENTAGE, PROMO_FIXED)

FREE_SHOW_EVERY = 5
FREE_SEATS_LIMIT = 2


@dataclass(frozen=True)
class Promo:
    code: str
    discount: int
    type: str
    is_active: bool = True


@dataclass(frozen=True)
class Quote:
    subtotal: int
    discount: int
    final_price: int
    free_show: bool
    free_amount: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def seat_subtotal(seat_types: Sequence[str], prices: Mapping[str, int]) -> int:
    total = 0
    for seat_type in seat_types:
        if seat_type not in prices:
            raise ValueError(f"no price for seat type {seat_type!r}")
        total += prices[seat_type]
    return total


def section_subtotal(price: int, quantity: int) -> int:
    return price * quantity


def promo_discount(promo: Optional[Promo], subtotal: int) -> int:
    if promo is None or not promo.is_active:
        return 0
    if promo.type == PROMO_PERCENTAGE:
        return subtotal * promo.discount // 100
    if promo.type == PROMO_FIXED:
        return promo.discount
    raise ValueError(f"unknown promo type {promo.type!r}")


def is_free_show(monthly_count: int) -> bool:
    """True if the *next* booking is the 5th, 10th, ... of the month."""
    return monthly_count % FREE_SHOW_EVERY == FREE_SHOW_EVERY - 1


def bookings_until_free_show(monthly_count: int) -> int:
    return FREE_SHOW_EVERY - 1 - monthly_count % FREE_SHOW_EVERY


def free_seats_amount(seat_types: Sequence[str],
                      prices: Mapping[str, int]) -> int:
    # selection order decides which seats are free
    return seat_subtotal(seat_types[:FREE_SEATS_LIMIT], prices)


def movie_final_price(seat_types: Sequence[str], prices: Mapping[str, int],
                      discount: int, free_show: bool) -> int:
    subtotal = seat_subtotal(seat_types, prices)
    if free_show:
        free_amount = free_seats_amount(seat_types, prices)
        return max(0, subtotal - free_amount - discount)
    return max(0, subtotal - discount)


def concert_final_price(subtotal: int, discount: int, free_show: bool) -> int:
    if free_show:
        return 0
    return max(0, subtotal - discount)


def football_final_price(subtotal: int, discount: int) -> int:
    return max(0, subtotal - discount)


# ----------------------------
# Quotes
# ----------------------------
def quote_movie(seat_types: Sequence[str], prices: Mapping[str, int],
                promo: Optional[Promo], free_show: bool) -> Quote:
    subtotal = seat_subtotal(seat_types, prices)
    # the promo applies to the full subtotal, free seats included
    discount = promo_discount(promo, subtotal)
    free_amount = free_seats_amount(seat_types, prices) if free_show else 0
    return Quote(
        subtotal=subtotal,
        discount=discount,
        final_price=movie_final_price(seat_types, prices, discount,
                                      free_show),
        free_show=free_show,
        free_amount=free_amount,
    )


def quote_concert(price: int, quantity: int, promo: Optional[Promo],
                  free_show: bool) -> Quote:
    subtotal = section_subtotal(price, quantity)
    # a free show is free outright, no promo applies
    discount = 0 if free_show else promo_discount(promo, subtotal)
    return Quote(
        subtotal=subtotal,
        discount=discount,
        final_price=concert_final_price(subtotal, discount, free_show),
        free_show=free_show,
        free_amount=subtotal if free_show else 0,
    )


def quote_football(price: int, quantity: int,
                   promo: Optional[Promo]) -> Quote:
    subtotal = section_subtotal(price, quantity)
    discount = promo_discount(promo, subtotal)
    return Quote(
        subtotal=subtotal,
        discount=discount,
        final_price=football_final_price(subtotal, discount),
        free_show=False,
    )
