from __future__ import annotations
from typing import Optional

import bcrypt
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..helpers import is_valid_email, new_id, now_ts
from ..infra.sql import GatedAsyncSession
from .errors import BookingError, Conflict, NotFound
from .orm import Profile, ROLES

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode())
    except ValueError:
        # malformed hash in the row
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# UN-GATED internal function
async def _by_email(session: AsyncSession, email: str) -> Optional[Profile]:
    return (await session.execute(
        select(Profile).where(Profile.email == email)
    )).scalar_one_or_none()


async def register(db: GatedAsyncSession, name: str, email: str,
                   password: str, phone: Optional[str] = None,
                   role: str = "user") -> Profile:
    email = normalize_email(email)
    if not is_valid_email(email):
        raise BookingError("a valid email address is required")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise BookingError(
            f"password must have at least {MIN_PASSWORD_LENGTH} characters"
        )
    if role not in ROLES:
        raise BookingError(f"role must be one of {ROLES}")

    profile = Profile(
        id=new_id(),
        email=email,
        # default display name is the mailbox part
        name=(name or "").strip() or email.split("@")[0],
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        created_at=now_ts(),
    )
    async with db.gated():
        async with db.session.begin():
            if await _by_email(db.session, email) is not None:
                raise Conflict("an account with this email already exists")
            db.session.add(profile)
    logger.info(f"registered {profile.role} {profile.id}")
    return profile


async def authenticate(db: GatedAsyncSession, email: str,
                       password: str) -> Optional[Profile]:
    async with db.gated():
        async with db.session.begin():
            profile = await _by_email(db.session, normalize_email(email))
    if profile is None or not verify_password(password or "",
                                              profile.password_hash):
        return None
    return profile


async def get_user(db: GatedAsyncSession, user_id: str) -> Profile:
    async with db.gated():
        async with db.session.begin():
            profile = await db.session.get(Profile, user_id)
    if profile is None:
        raise NotFound("user not found")
    return profile


async def update_profile(db: GatedAsyncSession, user_id: str,
                         name: Optional[str] = None,
                         phone: Optional[str] = None) -> Profile:
    async with db.gated():
        async with db.session.begin():
            profile = await db.session.get(Profile, user_id)
            if profile is None:
                raise NotFound("user not found")
            if name is not None and name.strip():
                profile.name = name.strip()
            if phone is not None:
                profile.phone = phone.strip() or None
            profile.updated_at = now_ts()
    return profile


async def set_role(db: GatedAsyncSession, user_id: str,
                   role: str) -> Profile:
    if role not in ROLES:
        raise BookingError(f"role must be one of {ROLES}")
    async with db.gated():
        async with db.session.begin():
            profile = await db.session.get(Profile, user_id)
            if profile is None:
                raise NotFound("user not found")
            profile.role = role
            profile.updated_at = now_ts()
    return profile


async def ensure_admin(session: AsyncSession, email: str,
                       password: str) -> bool:
    """Create the bootstrap admin if missing. Caller owns the tx."""
    email = normalize_email(email)
    profile = await _by_email(session, email)
    if profile is not None:
        if profile.role != "admin":
            profile.role = "admin"
            profile.updated_at = now_ts()
        return False
    session.add(Profile(
        id=new_id(), email=email, name="Admin",
        password_hash=hash_password(password), role="admin",
        created_at=now_ts(),
    ))
    return True
