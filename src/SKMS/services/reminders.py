# src/SKMS/services/reminders.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.clock import as_utc, utcnow
from SKMS.core.config import settings
from SKMS.models import ScheduledTask, Skill, TaskKind, TaskStatus

log = get_logger("reminders")


async def cancel_skill_reminders(db: AsyncSession, skill_id: str) -> int:
    result = await db.execute(
        sa.update(ScheduledTask)
        .where(
            ScheduledTask.skill_id == skill_id,
            ScheduledTask.kind == TaskKind.SKILL_REMINDER,
            ScheduledTask.status == TaskStatus.SCHEDULED,
        )
        .values(status=TaskStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def schedule_skill_reminder(
    db: AsyncSession, skill: Skill, *, now: Optional[datetime] = None
) -> Optional[ScheduledTask]:
    """
    Arm the "starts tomorrow" reminder for ``skill``, replacing any pending one.

    The task fires REMINDER_LEAD_HOURS before the start date, or at once when
    that moment has already passed. Nothing is armed for a skill that has
    already started. Recipients are resolved when the task fires.
    """
    now = as_utc(now) if now else utcnow()
    cancelled = await cancel_skill_reminders(db, skill.id)

    start = as_utc(skill.start_date)
    if start <= now:
        log.info("reminder: skill %s already started, not scheduling", skill.id)
        return None

    run_at = max(start - timedelta(hours=settings.REMINDER_LEAD_HOURS), now)
    task = ScheduledTask(
        kind=TaskKind.SKILL_REMINDER,
        run_at=run_at,
        skill_id=skill.id,
        payload={"start_date": start.isoformat()},
    )
    db.add(task)
    log.info(
        "reminder: skill %s armed for %s (replaced=%d)", skill.id, run_at.isoformat(), cancelled
    )
    return task
