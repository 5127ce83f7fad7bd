# src/SKMS/api/routers/faculty.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.auth.deps import require_faculty
from SKMS.db.session import get_db
from SKMS.models import User
from SKMS.schemas.assessment import AssessmentCreate, AssessmentOut, AssessmentResults, AssessmentUpdate
from SKMS.schemas.base import ok, ok_list, ok_message
from SKMS.schemas.skill import (
    AttendanceIn,
    AttendanceRecordOut,
    AttendanceStat,
    BudgetSubmit,
    FeedbackOut,
    SkillOut,
    SkillUpdate,
)
from SKMS.services import assessments, attendance, budget, feedback

router = APIRouter(prefix="/api/faculty", tags=["faculty"])


@router.post("/submit-budget", status_code=201)
async def submit_budget(
    body: BudgetSubmit,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    skill = await budget.submit_budget(db, user, body)
    return ok({"skill": SkillOut.model_validate(skill)})


@router.get("/my-skills")
async def my_skills(user: User = Depends(require_faculty), db: AsyncSession = Depends(get_db)):
    skills = await budget.my_skills(db, user)
    return ok_list("skills", [SkillOut.model_validate(s) for s in skills])


@router.patch("/update-skill/{skill_id}")
async def update_skill(
    skill_id: str,
    body: SkillUpdate,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    skill = await budget.update_skill(db, user, skill_id, body)
    return ok({"skill": SkillOut.model_validate(skill)})


@router.post("/mark-attendance/{skill_id}")
async def mark_attendance(
    skill_id: str,
    body: AttendanceIn,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    record = await attendance.mark_attendance(db, user, skill_id, body.session_date, body.present_students)
    resp = ok_message("Attendance marked successfully")
    resp["data"] = {"attendance": AttendanceRecordOut.model_validate(record)}
    return resp


@router.get("/attendance-stats/{skill_id}")
async def attendance_stats(
    skill_id: str,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    stats = await attendance.attendance_stats(db, user, skill_id)
    return ok({"attendanceStats": [AttendanceStat.model_validate(s) for s in stats]})


@router.get("/feedback/{skill_id}")
async def skill_feedback(
    skill_id: str,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    items = await feedback.skill_feedback(db, user, skill_id)
    return ok({"feedback": [FeedbackOut.model_validate(f) for f in items]})


@router.post("/create-assessment/{skill_id}", status_code=201)
async def create_assessment(
    skill_id: str,
    body: AssessmentCreate,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    assessment = await assessments.create_assessment(db, user, skill_id, body)
    return ok({"assessment": AssessmentOut.model_validate(assessment)})


@router.patch("/update-assessment/{assessment_id}")
async def update_assessment(
    assessment_id: str,
    body: AssessmentUpdate,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    assessment = await assessments.update_assessment(db, user, assessment_id, body)
    return ok({"assessment": AssessmentOut.model_validate(assessment)})


@router.patch("/publish-assessment/{assessment_id}")
async def publish_assessment(
    assessment_id: str,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    assessment = await assessments.publish_assessment(db, user, assessment_id)
    return ok({"assessment": AssessmentOut.model_validate(assessment)})


@router.get("/assessment-results/{assessment_id}")
async def assessment_results(
    assessment_id: str,
    user: User = Depends(require_faculty),
    db: AsyncSession = Depends(get_db),
):
    results = await assessments.assessment_results(db, user, assessment_id)
    return ok(AssessmentResults.model_validate(results))
