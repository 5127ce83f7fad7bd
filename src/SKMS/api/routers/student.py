# src/SKMS/api/routers/student.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.auth.deps import require_student
from SKMS.db.session import get_db
from SKMS.models import User
from SKMS.schemas.assessment import StudentAssessmentOut, StudentResult, SubmitAnswers, SubmitResult
from SKMS.schemas.base import ok, ok_list, ok_message
from SKMS.schemas.skill import FeedbackIn, MyAttendance, StudentSkillOut
from SKMS.services import assessments, attendance, enrollment, feedback

router = APIRouter(prefix="/api/student", tags=["student"])


@router.get("/available-skills")
async def available_skills(user: User = Depends(require_student), db: AsyncSession = Depends(get_db)):
    skills = await enrollment.available_skills(db, user)
    return ok_list("skills", [StudentSkillOut.model_validate(s) for s in skills])


@router.get("/my-skills")
async def my_skills(user: User = Depends(require_student), db: AsyncSession = Depends(get_db)):
    skills = await enrollment.my_enrolled_skills(db, user)
    return ok_list("skills", [StudentSkillOut.model_validate(s) for s in skills])


@router.post("/register/{skill_id}")
async def register(
    skill_id: str,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    await enrollment.register_student(db, user, skill_id)
    return ok_message("Successfully enrolled in skill")


@router.get("/my-attendance")
async def my_attendance(user: User = Depends(require_student), db: AsyncSession = Depends(get_db)):
    rows = await attendance.my_attendance(db, user)
    return ok({"attendance": [MyAttendance.model_validate(r) for r in rows]})


@router.post("/submit-feedback/{skill_id}")
async def submit_feedback(
    skill_id: str,
    body: FeedbackIn,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    await feedback.submit_feedback(db, user, skill_id, body.rating, body.comment)
    return ok_message("Feedback submitted successfully")


@router.get("/available-assessments")
async def available_assessments(user: User = Depends(require_student), db: AsyncSession = Depends(get_db)):
    items = await assessments.available_assessments(db, user)
    return ok_list("assessments", [StudentAssessmentOut.model_validate(a) for a in items])


@router.post("/submit-assessment/{assessment_id}")
async def submit_assessment(
    assessment_id: str,
    body: SubmitAnswers,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    result = await assessments.submit_assessment(db, user, assessment_id, body.answers)
    return ok(SubmitResult.model_validate(result))


@router.get("/assessment-results/{assessment_id}")
async def assessment_result(
    assessment_id: str,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    result = await assessments.student_result(db, user, assessment_id)
    return ok(StudentResult.model_validate(result))
