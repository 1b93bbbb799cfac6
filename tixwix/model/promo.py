from __future__ import annotations
from typing import List, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..helpers import new_id, now_ts
from ..infra.sql import GatedAsyncSession
from .errors import Conflict, InvalidPromo, NotFound
from .orm import PromoCode
from .pricing import Promo, PROMO_FIXED, PROMO_PERCENTAGE, PROMO_TYPES

SEED_PROMO_CODES = [
    ("FIRSTORDER", 10, PROMO_PERCENTAGE),
    ("PRIYORCHOTOBHAI", 90, PROMO_PERCENTAGE),
    ("TIXWIX50", 50, PROMO_FIXED),
]


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def to_promo(row: PromoCode) -> Promo:
    return Promo(code=row.code, discount=int(row.discount), type=row.type,
                 is_active=bool(row.is_active))


# UN-GATED internal function
async def _find_active(session: AsyncSession, code: str) -> Optional[Promo]:
    row = (await session.execute(
        select(PromoCode).where(
            PromoCode.code == code, PromoCode.is_active.is_(True)
        )
    )).scalar_one_or_none()
    return to_promo(row) if row is not None else None


async def find_active_promo(
    db: GatedAsyncSession, code: Optional[str]
) -> Optional[Promo]:
    code = normalize_code(code)
    if not code:
        return None
    async with db.gated():
        async with db.session.begin():
            return await _find_active(db.session, code)


async def resolve_promo(
    db: GatedAsyncSession, code: Optional[str]
) -> Optional[Promo]:
    """Like find_active_promo, but a non-empty unknown code is an error."""
    promo = await find_active_promo(db, code)
    if normalize_code(code) and promo is None:
        raise InvalidPromo("Invalid promo code")
    return promo


async def create_promo(
    db: GatedAsyncSession, code: str, discount: int, type_: str,
) -> PromoCode:
    code = normalize_code(code)
    if not code:
        raise InvalidPromo("promo code must not be empty")
    if type_ not in PROMO_TYPES:
        raise InvalidPromo(f"promo type must be one of {PROMO_TYPES}")
    if discount <= 0 or (type_ == PROMO_PERCENTAGE and discount > 100):
        raise InvalidPromo("invalid promo discount")

    async with db.gated():
        async with db.session.begin():
            exists = (await db.session.execute(
                select(PromoCode.id).where(PromoCode.code == code)
            )).first()
            if exists:
                raise Conflict(f"promo code {code} already exists")
            row = PromoCode(id=new_id(), code=code, discount=discount,
                            type=type_, is_active=True, created_at=now_ts())
            db.session.add(row)
    return row


async def set_promo_active(
    db: GatedAsyncSession, code: str, active: bool
) -> None:
    async with db.gated():
        async with db.session.begin():
            res = await db.session.execute(
                text("UPDATE promo_codes SET is_active=:a WHERE code=:c"),
                {"a": active, "c": normalize_code(code)},
            )
            if res.rowcount == 0:
                raise NotFound("promo code not found")


async def list_promos(db: GatedAsyncSession) -> List[PromoCode]:
    async with db.gated():
        async with db.session.begin():
            rows = (await db.session.execute(
                select(PromoCode).order_by(PromoCode.created_at)
            )).scalars().all()
    return list(rows)


async def seed_promo_codes(session: AsyncSession) -> int:
    """Insert the stock promo codes that are missing. Caller owns the tx."""
    existing = set((await session.execute(
        select(PromoCode.code)
    )).scalars().all())
    added = 0
    for code, discount, type_ in SEED_PROMO_CODES:
        if code in existing:
            continue
        session.add(PromoCode(id=new_id(), code=code, discount=discount,
                              type=type_, is_active=True,
                              created_at=now_ts()))
        added += 1
    return added
