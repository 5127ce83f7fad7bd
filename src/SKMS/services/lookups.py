# src/SKMS/services/lookups.py
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.exceptions import NotFound
from SKMS.models import Assessment, Skill, User


async def load_skill(db: AsyncSession, skill_id: str, *, for_update: bool = False) -> Skill:
    """
    Fetch a skill with fresh state, raising NotFound.

    ``for_update`` locks the skill row (``FOR UPDATE OF skills``) until the
    transaction ends; SQLite ignores the clause.
    """
    stmt = (
        sa.select(Skill)
        .where(Skill.id == skill_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update(of=Skill)
    skill = (await db.execute(stmt)).unique().scalar_one_or_none()
    if skill is None:
        raise NotFound("Skill not found", context={"skill_id": skill_id})
    return skill


async def load_assessment(db: AsyncSession, assessment_id: str) -> Assessment:
    stmt = (
        sa.select(Assessment)
        .where(Assessment.id == assessment_id)
        .execution_options(populate_existing=True)
    )
    assessment = (await db.execute(stmt)).unique().scalar_one_or_none()
    if assessment is None:
        raise NotFound("Assessment not found", context={"assessment_id": assessment_id})
    return assessment


async def load_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("No user found with that ID", context={"user_id": user_id})
    return user
