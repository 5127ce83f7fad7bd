# src/SKMS/services/enrollment.py
from __future__ import annotations

from typing import List

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.config import settings
from SKMS.exceptions import (
    AlreadyEnrolled,
    CapacityExceeded,
    LimitReached,
    NotAvailable,
    TypeMismatch,
)
from SKMS.models import (
    Budget,
    BudgetStatus,
    Enrollment,
    Skill,
    SkillStatus,
    SkillType,
    StudentType,
    User,
)

from .lookups import load_skill

log = get_logger("enrollment")


def _check_type(student: User, skill: Skill) -> None:
    if student.student_type is None:
        raise TypeMismatch("Set your student type before registering for a skill")
    if student.student_type == StudentType.DAY_SCHOLAR and skill.type != SkillType.DAY:
        raise TypeMismatch("Day scholars can only register for day skills")


async def register_student(db: AsyncSession, student: User, skill_id: str) -> Enrollment:
    """
    Enroll ``student`` in a skill.

    Checks run in a fixed order and the first failure is reported: existence,
    availability, duplicate enrollment, student type, per-type limit, capacity.
    The skill row stays locked until commit so concurrent registrations
    cannot overrun capacity.
    """
    skill = await load_skill(db, skill_id, for_update=True)

    if not skill.is_open_for_enrollment():
        raise NotAvailable(
            "This skill is not available for registration", context={"skill_id": skill_id}
        )

    if skill.is_student_enrolled(student.id):
        raise AlreadyEnrolled("You are already enrolled in this skill", context={"skill_id": skill_id})

    _check_type(student, skill)

    same_type = await db.scalar(
        sa.select(sa.func.count(Enrollment.id))
        .join(Skill, Skill.id == Enrollment.skill_id)
        .where(Enrollment.student_id == student.id, Skill.type == skill.type)
    )
    if same_type >= settings.SKILL_TYPE_LIMIT:
        raise LimitReached(
            f"You have reached the maximum limit for {skill.type.value} skills",
            context={"limit": settings.SKILL_TYPE_LIMIT},
        )

    enrolled = await db.scalar(
        sa.select(sa.func.count(Enrollment.id)).where(Enrollment.skill_id == skill.id)
    )
    if enrolled >= skill.budget.number_of_students:
        raise CapacityExceeded(
            "No available slots in this skill",
            context={"capacity": skill.budget.number_of_students},
        )

    enrollment = Enrollment(skill_id=skill.id, student_id=student.id)
    db.add(enrollment)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise AlreadyEnrolled("You are already enrolled in this skill", cause=exc) from exc

    log.info("enrollment: student=%s skill=%s (%d/%d)",
             student.id, skill.id, enrolled + 1, skill.budget.number_of_students)
    return enrollment


async def available_skills(db: AsyncSession, student: User) -> List[Skill]:
    stmt = (
        sa.select(Skill)
        .join(Budget, Budget.skill_id == Skill.id)
        .where(Budget.status == BudgetStatus.APPROVED, Skill.status == SkillStatus.ACTIVE)
        .order_by(Skill.start_date)
    )
    # hostellers see every type
    if student.student_type == StudentType.DAY_SCHOLAR:
        stmt = stmt.where(Skill.type == SkillType.DAY)
    return list((await db.execute(stmt)).unique().scalars())


async def my_enrolled_skills(db: AsyncSession, student: User) -> List[Skill]:
    stmt = (
        sa.select(Skill)
        .join(Enrollment, Enrollment.skill_id == Skill.id)
        .where(Enrollment.student_id == student.id)
        .order_by(Enrollment.enrolled_at)
    )
    return list((await db.execute(stmt)).unique().scalars())
