# src/SKMS/services/identity.py
from __future__ import annotations

from typing import List

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.config import settings
from SKMS.exceptions import Forbidden
from SKMS.models import Role, User
from SKMS.schemas.user import ProfileUpdate

from .lookups import load_user

log = get_logger("identity")


async def upsert_google_user(db: AsyncSession, *, google_id: str, email: str, name: str) -> User:
    """
    Find or create the user behind a Google login.

    Only institutional addresses are accepted. Existing users are matched by
    email and keep their role; new users start as students.
    """
    email = (email or "").strip().lower()
    suffix = settings.email_suffix
    if not email.endswith(suffix):
        raise Forbidden(
            f"Invalid email domain. Only {suffix} emails are allowed.",
            context={"email": email},
        )

    user = await db.scalar(sa.select(User).where(User.email == email))
    if user is not None:
        if user.google_id != google_id:
            user.google_id = google_id
            await db.commit()
        return user

    user = User(google_id=google_id, email=email, name=name or email, role=Role.STUDENT)
    db.add(user)
    await db.commit()
    await db.refresh(user, ["enrollments"])
    log.info("identity: created user=%s email=%s", user.id, email)
    return user


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    if data.name is not None:
        user.name = data.name
    # student type only applies to students
    if data.student_type is not None and user.role == Role.STUDENT:
        user.student_type = data.student_type
    await db.commit()
    return user


async def update_role(db: AsyncSession, user_id: str, role: Role) -> User:
    user = await load_user(db, user_id)
    user.role = role
    # student type only applies to students
    if role != Role.STUDENT:
        user.student_type = None
    await db.commit()
    log.info("identity: user=%s role -> %s", user.id, role.value)
    return user


async def list_users(db: AsyncSession) -> List[User]:
    return list((await db.execute(sa.select(User).order_by(User.created_at))).scalars())
