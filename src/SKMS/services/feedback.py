# src/SKMS/services/feedback.py
from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.exceptions import DuplicateFeedback, Forbidden, NotEnrolled
from SKMS.models import (
    Budget,
    Enrollment,
    Feedback,
    Role,
    Skill,
    SkillStatus,
    User,
)

from . import notifications
from .lookups import load_skill

log = get_logger("feedback")

THEME_KEYWORDS: Dict[str, frozenset] = {
    "positive": frozenset({"excellent", "good", "great", "helpful", "informative", "engaging"}),
    "negative": frozenset({"poor", "bad", "difficult", "confusing", "boring", "unhelpful"}),
    "improvement": frozenset({"suggest", "improve", "could", "should", "better", "more"}),
}

_WORD_SPLIT = re.compile(r"\W+")


async def submit_feedback(
    db: AsyncSession, student: User, skill_id: str, rating: int, comment: Optional[str] = None
) -> Feedback:
    skill = await load_skill(db, skill_id)
    if not skill.is_student_enrolled(student.id):
        raise NotEnrolled("You are not enrolled in this skill", context={"skill_id": skill_id})
    if any(f.student_id == student.id for f in skill.feedback):
        raise DuplicateFeedback("You have already submitted feedback for this skill")

    feedback = Feedback(skill_id=skill.id, student_id=student.id, rating=rating, comment=comment)
    feedback.student = student
    db.add(feedback)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateFeedback("You have already submitted feedback for this skill", cause=exc) from exc

    log.info("feedback: student=%s skill=%s rating=%d", student.id, skill.id, rating)
    return feedback


async def skill_feedback(db: AsyncSession, faculty: User, skill_id: str) -> List[Feedback]:
    skill = await load_skill(db, skill_id)
    if not skill.is_faculty(faculty.id):
        raise Forbidden("Not authorized to view feedback for this skill", context={"skill_id": skill_id})
    return list(skill.feedback)


def analyze_comments(comments: Iterable[Optional[str]]) -> Dict[str, Dict[str, int]]:
    """Tally theme keywords across comments (lower-cased, split on non-word characters)."""
    themes: Dict[str, Counter] = {theme: Counter() for theme in THEME_KEYWORDS}
    for comment in comments:
        if not comment:
            continue
        for word in _WORD_SPLIT.split(comment.lower()):
            for theme, words in THEME_KEYWORDS.items():
                if word in words:
                    themes[theme][word] += 1
    return {theme: dict(counts) for theme, counts in themes.items()}


def feedback_stats(feedback: Sequence[Feedback]) -> dict:
    total = len(feedback)
    if not total:
        return {"average_rating": 0.0, "total_responses": 0, "rating_distribution": {}}
    return {
        "average_rating": sum(f.rating for f in feedback) / total,
        "total_responses": total,
        "rating_distribution": dict(sorted(Counter(f.rating for f in feedback).items())),
    }


async def feedback_analysis(db: AsyncSession) -> List[dict]:
    stmt = (
        sa.select(Skill)
        .where(sa.exists().where(Feedback.skill_id == Skill.id))
        .order_by(Skill.name)
    )
    skills = (await db.execute(stmt)).unique().scalars()

    analysis = []
    for skill in skills:
        stats = feedback_stats(skill.feedback)
        analysis.append(
            {
                "skill_id": skill.id,
                "skill_name": skill.name,
                "faculty": skill.faculty,
                "total_feedback": stats["total_responses"],
                "average_rating": stats["average_rating"],
                "rating_distribution": stats["rating_distribution"],
                "common_themes": analyze_comments(f.comment for f in skill.feedback),
            }
        )
    return analysis


async def send_feedback_summary(db: AsyncSession, skill_id: str) -> int:
    """Queue one summary email per faculty member; returns how many were queued."""
    skill = await load_skill(db, skill_id)
    stats = feedback_stats(skill.feedback)
    for member in skill.faculty:
        subject, html = notifications.feedback_summary_email(skill, member, stats)
        notifications.enqueue(db, member.email, subject, html, notifications.CATEGORY_FEEDBACK_SUMMARY)
    await db.commit()
    log.info("feedback: summary for skill=%s queued to %d faculty", skill.id, len(skill.faculty))
    return len(skill.faculty)


async def skill_statistics(db: AsyncSession) -> dict:
    skill_rows = await db.execute(
        sa.select(
            Skill.type,
            sa.func.count(Skill.id),
            sa.func.avg(Budget.number_of_students),
            sa.func.coalesce(sa.func.sum(Budget.amount), 0),
            sa.func.sum(sa.case((Skill.status == SkillStatus.ACTIVE, 1), else_=0)),
        )
        .outerjoin(Budget, Budget.skill_id == Skill.id)
        .group_by(Skill.type)
        .order_by(Skill.type)
    )
    skill_stats = [
        {
            "type": kind,
            "total_skills": total,
            "average_students": float(avg or 0),
            "total_budget": float(amount or 0),
            "active_skills": int(active or 0),
        }
        for kind, total, avg, amount, active in skill_rows
    ]

    per_student = (
        sa.select(
            User.id.label("user_id"),
            User.student_type.label("student_type"),
            sa.func.count(Enrollment.id).label("enrolled"),
        )
        .outerjoin(Enrollment, Enrollment.student_id == User.id)
        .where(User.role == Role.STUDENT)
        .group_by(User.id, User.student_type)
        .subquery()
    )
    enrollment_rows = await db.execute(
        sa.select(
            per_student.c.student_type,
            sa.func.count(per_student.c.user_id),
            sa.func.avg(per_student.c.enrolled),
        ).group_by(per_student.c.student_type)
    )
    enrollment_stats = [
        {
            "student_type": student_type,
            "total_students": total,
            "avg_enrolled_skills": float(avg or 0),
        }
        for student_type, total, avg in enrollment_rows
    ]
    return {"skill_stats": skill_stats, "enrollment_stats": enrollment_stats}
