# src/SKMS/api/routers/team.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.auth.deps import require_skill_team
from SKMS.db.session import get_db
from SKMS.models import User
from SKMS.schemas.base import ok, ok_list, ok_message
from SKMS.schemas.skill import BudgetReview, FeedbackAnalysis, SkillOut, SkillStatistics
from SKMS.services import budget, feedback

router = APIRouter(prefix="/api/team", tags=["team"])


@router.get("/pending-budgets")
async def pending_budgets(_: User = Depends(require_skill_team), db: AsyncSession = Depends(get_db)):
    skills = await budget.list_pending_budgets(db)
    return ok_list("skills", [SkillOut.model_validate(s) for s in skills])


@router.patch("/review-budget/{skill_id}")
async def review_budget(
    skill_id: str,
    body: BudgetReview,
    _: User = Depends(require_skill_team),
    db: AsyncSession = Depends(get_db),
):
    skill = await budget.review_budget(db, skill_id, body.status, body.rejection_reason)
    return ok({"skill": SkillOut.model_validate(skill)})


@router.get("/feedback-analysis")
async def feedback_analysis(_: User = Depends(require_skill_team), db: AsyncSession = Depends(get_db)):
    rows = await feedback.feedback_analysis(db)
    return ok({"analysis": [FeedbackAnalysis.model_validate(r) for r in rows]})


@router.get("/skill-statistics")
async def skill_statistics(_: User = Depends(require_skill_team), db: AsyncSession = Depends(get_db)):
    stats = await feedback.skill_statistics(db)
    return ok(SkillStatistics.model_validate(stats))


@router.post("/send-feedback-summary/{skill_id}")
async def send_feedback_summary(
    skill_id: str,
    _: User = Depends(require_skill_team),
    db: AsyncSession = Depends(get_db),
):
    queued = await feedback.send_feedback_summary(db, skill_id)
    resp = ok_message("Feedback summary sent to faculty")
    resp["results"] = queued
    return resp
