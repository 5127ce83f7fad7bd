# src/SKMS/services/budget.py
"""
Budget submission and review.

A faculty member proposes a skill together with its budget; the skill team
approves or rejects it exactly once. Approval activates the skill, arms the
enrollment reminder and, like rejection, queues a decision email for every
assigned faculty member in the same commit.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.clock import as_utc, utcnow
from SKMS.exceptions import Forbidden, InvalidState, ValidationError
from SKMS.models import (
    Budget,
    BudgetStatus,
    Role,
    Skill,
    SkillFaculty,
    SkillStatus,
    User,
)
from SKMS.schemas.skill import BudgetSubmit, SkillUpdate

from . import notifications
from .lookups import load_skill
from .reminders import schedule_skill_reminder

log = get_logger("budget")


def _check_window(start: datetime, end: datetime) -> None:
    if as_utc(end) < as_utc(start):
        raise ValidationError("End date cannot be before start date")


async def _co_faculty_ids(db: AsyncSession, owner: User, requested: List[str]) -> List[str]:
    ids = [i for i in dict.fromkeys(requested) if i != owner.id]
    if not ids:
        return []
    found = set(
        (
            await db.execute(
                sa.select(User.id).where(User.id.in_(ids), User.role == Role.FACULTY)
            )
        ).scalars()
    )
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(
            "Co-faculty must be existing faculty members", context={"user_ids": missing}
        )
    return ids


async def submit_budget(db: AsyncSession, faculty: User, data: BudgetSubmit) -> Skill:
    _check_window(data.start_date, data.end_date)
    co_ids = await _co_faculty_ids(db, faculty, data.co_faculties)

    skill = Skill(
        name=data.name,
        type=data.type,
        status=SkillStatus.PENDING,
        start_date=data.start_date,
        end_date=data.end_date,
        venue=data.venue,
    )
    skill.budget = Budget(
        number_of_venues=data.number_of_venues,
        number_of_students=data.number_of_students,
        amount=data.amount,
        status=BudgetStatus.PENDING,
    )
    skill.faculty_links = [
        SkillFaculty(user_id=uid, position=pos)
        for pos, uid in enumerate([faculty.id, *co_ids])
    ]
    db.add(skill)
    await db.commit()

    log.info("budget: submitted skill=%s by=%s co_faculty=%d", skill.id, faculty.id, len(co_ids))
    return await load_skill(db, skill.id)


async def list_pending_budgets(db: AsyncSession) -> List[Skill]:
    stmt = (
        sa.select(Skill)
        .join(Budget, Budget.skill_id == Skill.id)
        .where(Budget.status == BudgetStatus.PENDING)
        .order_by(Budget.submitted_at)
    )
    return list((await db.execute(stmt)).unique().scalars())


async def review_budget(
    db: AsyncSession,
    skill_id: str,
    decision: str,
    rejection_reason: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Skill:
    try:
        status = BudgetStatus(decision)
    except ValueError:
        status = None
    if status not in (BudgetStatus.APPROVED, BudgetStatus.REJECTED):
        raise ValidationError(
            "Decision must be 'approved' or 'rejected'", context={"status": decision}
        )

    reason = (rejection_reason or "").strip()
    if status == BudgetStatus.REJECTED and not reason:
        raise ValidationError("Rejection reason is required when rejecting a budget")

    now = as_utc(now) if now else utcnow()
    skill = await load_skill(db, skill_id, for_update=True)
    budget = skill.budget
    if budget.status != BudgetStatus.PENDING:
        raise InvalidState(
            "This budget has already been reviewed",
            context={"skill_id": skill_id, "status": budget.status.value},
        )

    budget.status = status
    budget.rejection_reason = reason if status == BudgetStatus.REJECTED else None
    budget.reviewed_at = now

    if status == BudgetStatus.APPROVED:
        skill.status = SkillStatus.ACTIVE
        await schedule_skill_reminder(db, skill, now=now)

    subject, html = notifications.budget_decision_email(skill)
    for member in skill.faculty:
        notifications.enqueue(
            db, member.email, subject, html, notifications.CATEGORY_BUDGET_DECISION
        )

    await db.commit()
    log.info("budget: skill=%s reviewed -> %s", skill.id, status.value)
    return await load_skill(db, skill.id)


async def update_skill(db: AsyncSession, faculty: User, skill_id: str, data: SkillUpdate) -> Skill:
    """Assigned faculty may rename a skill or move its schedule; nothing else."""
    skill = await load_skill(db, skill_id)
    if not skill.is_faculty(faculty.id):
        raise Forbidden("Not authorized to update this skill", context={"skill_id": skill_id})

    if data.name is not None:
        skill.name = data.name

    start_moved = False
    if data.schedule is not None:
        patch = data.schedule
        start = patch.start_date or skill.start_date
        end = patch.end_date or skill.end_date
        _check_window(start, end)
        if patch.start_date is not None and as_utc(patch.start_date) != as_utc(skill.start_date):
            skill.start_date = patch.start_date
            start_moved = True
        if patch.end_date is not None:
            skill.end_date = patch.end_date
        if patch.venue is not None:
            skill.venue = patch.venue

    if start_moved and skill.status == SkillStatus.ACTIVE:
        await schedule_skill_reminder(db, skill)

    await db.commit()
    log.info("skill: updated skill=%s by=%s start_moved=%s", skill.id, faculty.id, start_moved)
    return await load_skill(db, skill.id)


async def my_skills(db: AsyncSession, faculty: User) -> List[Skill]:
    stmt = (
        sa.select(Skill)
        .join(SkillFaculty, SkillFaculty.skill_id == Skill.id)
        .where(SkillFaculty.user_id == faculty.id)
        .order_by(Skill.created_at.desc())
    )
    return list((await db.execute(stmt)).unique().scalars())
