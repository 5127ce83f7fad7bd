# src/SKMS/services/assessments.py
"""
Assessment lifecycle: draft -> published -> completed.

Faculty author drafts for skills they teach, edit them while they are drafts
and publish them once. Students submit exactly once while the time window is
open; the window alone gates submission; the stored status does not.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.clock import as_utc, utcnow
from SKMS.core.config import settings
from SKMS.exceptions import (
    AlreadySubmitted,
    Forbidden,
    InvalidState,
    NotActive,
    NotFound,
    ValidationError,
)
from SKMS.models import (
    Assessment,
    AssessmentStatus,
    Enrollment,
    Option,
    Question,
    ResponseAnswer,
    StudentResponse,
    User,
)
from SKMS.schemas.assessment import AssessmentCreate, AssessmentUpdate, QuestionIn

from . import notifications
from .lookups import load_assessment, load_skill
from .scoring import calculate_score, get_statistics, normalize_answers

log = get_logger("assessments")


def _build_questions(items: Iterable[QuestionIn]) -> List[Question]:
    return [
        Question(
            position=qpos,
            text=q.text,
            points=q.points,
            options=[
                Option(position=opos, text=o.text, is_correct=o.is_correct)
                for opos, o in enumerate(q.options)
            ],
        )
        for qpos, q in enumerate(items)
    ]


def _check_window(start: datetime, end: datetime) -> None:
    if as_utc(start) >= as_utc(end):
        raise ValidationError("Start time must be before end time")


def _require_owner(assessment: Assessment, faculty: User, action: str) -> None:
    if assessment.created_by_id != faculty.id:
        raise Forbidden(
            f"Not authorized to {action} this assessment",
            context={"assessment_id": assessment.id},
        )


def _require_draft(assessment: Assessment) -> None:
    if assessment.status != AssessmentStatus.DRAFT:
        raise InvalidState(
            "Only draft assessments can be changed",
            context={"assessment_id": assessment.id, "status": assessment.status.value},
        )


async def create_assessment(
    db: AsyncSession, faculty: User, skill_id: str, data: AssessmentCreate
) -> Assessment:
    skill = await load_skill(db, skill_id)
    if not skill.is_faculty(faculty.id):
        raise Forbidden(
            "Not authorized to create assessment for this skill", context={"skill_id": skill_id}
        )
    _check_window(data.start_time, data.end_time)

    assessment = Assessment(
        skill_id=skill.id,
        title=data.title,
        description=data.description,
        duration=data.duration,
        passing_score=data.passing_score,
        start_time=data.start_time,
        end_time=data.end_time,
        status=AssessmentStatus.DRAFT,
        created_by_id=faculty.id,
        questions=_build_questions(data.questions),
    )
    db.add(assessment)
    await db.commit()

    log.info("assessment: created %s for skill=%s (%d questions)",
             assessment.id, skill.id, len(data.questions))
    return await load_assessment(db, assessment.id)


async def update_assessment(
    db: AsyncSession, faculty: User, assessment_id: str, patch: AssessmentUpdate
) -> Assessment:
    assessment = await load_assessment(db, assessment_id)
    _require_owner(assessment, faculty, "update")
    _require_draft(assessment)

    changes = patch.model_dump(exclude_unset=True, exclude={"questions"})
    _check_window(
        changes.get("start_time") or assessment.start_time,
        changes.get("end_time") or assessment.end_time,
    )
    for field, value in changes.items():
        if value is not None:
            setattr(assessment, field, value)
    if patch.questions is not None:
        assessment.questions = _build_questions(patch.questions)

    await db.commit()
    log.info("assessment: updated %s fields=%s", assessment.id,
             sorted(patch.model_fields_set))
    return await load_assessment(db, assessment.id)


async def publish_assessment(
    db: AsyncSession, faculty: User, assessment_id: str, *, now: Optional[datetime] = None
) -> Assessment:
    assessment = await load_assessment(db, assessment_id)
    _require_owner(assessment, faculty, "publish")
    _require_draft(assessment)

    assessment.status = AssessmentStatus.PUBLISHED
    assessment.published_at = as_utc(now) if now else utcnow()

    enrollments = (
        await db.execute(sa.select(Enrollment).where(Enrollment.skill_id == assessment.skill_id))
    ).scalars().all()
    for enrollment in enrollments:
        subject, html = notifications.assessment_published_email(assessment, enrollment.student)
        notifications.enqueue(
            db, enrollment.student.email, subject, html,
            notifications.CATEGORY_ASSESSMENT_PUBLISHED,
        )

    await db.commit()
    log.info("assessment: published %s, notifying %d students", assessment.id, len(enrollments))
    return await load_assessment(db, assessment.id)


async def submit_assessment(
    db: AsyncSession,
    student: User,
    assessment_id: str,
    answers: Iterable[Any],
    *,
    now: Optional[datetime] = None,
) -> dict:
    now = as_utc(now) if now else utcnow()
    assessment = await load_assessment(db, assessment_id)

    if not assessment.is_active(now):
        raise NotActive(
            "This assessment is not currently active", context={"assessment_id": assessment_id}
        )
    if assessment.has_student_submitted(student.id):
        raise AlreadySubmitted("You have already submitted this assessment")

    normalized = normalize_answers(answers)
    result = calculate_score(normalized, assessment.questions, settings.SCORING_MODE)
    # only references into this assessment are stored
    known = {q.id: {o.id for o in q.options} for q in assessment.questions}

    response = StudentResponse(
        assessment_id=assessment.id,
        student_id=student.id,
        score=result["score"],
        submitted_at=now,
        answers=[
            ResponseAnswer(question_id=a.question_id, option_id=option_id)
            for a in normalized
            for option_id in a.option_ids
            if option_id in known.get(a.question_id, ())
        ],
    )
    db.add(response)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise AlreadySubmitted("You have already submitted this assessment", cause=exc) from exc

    passed = result["score"] >= assessment.passing_score
    log.info("assessment: student=%s submitted %s score=%s/%s passed=%s",
             student.id, assessment.id, result["score"], result["total_possible"], passed)
    return {
        "score": result["score"],
        "total_points": assessment.total_points,
        "passed": passed,
    }


async def assessment_results(db: AsyncSession, faculty: User, assessment_id: str) -> dict:
    assessment = await load_assessment(db, assessment_id)
    if assessment.created_by_id != faculty.id and not assessment.skill.is_faculty(faculty.id):
        raise Forbidden("Not authorized to view these results", context={"assessment_id": assessment_id})
    return {
        "assessment": assessment,
        "responses": list(assessment.responses),
        "statistics": get_statistics(
            (r.score for r in assessment.responses), assessment.passing_score
        ),
    }


async def student_result(db: AsyncSession, student: User, assessment_id: str) -> dict:
    assessment = await load_assessment(db, assessment_id)
    response = assessment.response_for(student.id)
    if response is None:
        raise NotFound("You have not taken this assessment", context={"assessment_id": assessment_id})
    return {
        "score": response.score,
        "total_points": assessment.total_points,
        "submitted_at": response.submitted_at,
        "passed": response.score >= assessment.passing_score,
    }


async def available_assessments(
    db: AsyncSession, student: User, *, now: Optional[datetime] = None
) -> List[Assessment]:
    now = as_utc(now) if now else utcnow()
    stmt = (
        sa.select(Assessment)
        .join(Enrollment, Enrollment.skill_id == Assessment.skill_id)
        .where(
            Enrollment.student_id == student.id,
            Assessment.status == AssessmentStatus.PUBLISHED,
            Assessment.start_time <= now,
            Assessment.end_time >= now,
        )
        .order_by(Assessment.start_time)
    )
    return list((await db.execute(stmt)).unique().scalars())


async def complete_expired(db: AsyncSession, *, now: Optional[datetime] = None) -> int:
    """Advance published assessments whose window has closed to ``completed``."""
    now = as_utc(now) if now else utcnow()
    result = await db.execute(
        sa.update(Assessment)
        .where(Assessment.status == AssessmentStatus.PUBLISHED, Assessment.end_time < now)
        .values(status=AssessmentStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0
    if count:
        log.info("assessment: %d assessments completed", count)
    return count
