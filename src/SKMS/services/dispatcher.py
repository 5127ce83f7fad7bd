# src/SKMS/services/dispatcher.py
"""
Background dispatcher.

One pass (``run_once``) does three things, each in its own transaction:

1. completes published assessments whose window has closed,
2. fires due scheduled tasks (skill reminders enqueue emails),
3. delivers due outbox emails, retrying failures with exponential backoff
   and marking a row ``dead`` after OUTBOX_MAX_ATTEMPTS.

Delivery is at-least-once: a crash between sending and committing resends
the email on the next pass. ``run_forever`` loops until the stop event is set.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from SKMS.app_logger import get_logger
from SKMS.core.clock import as_utc, utcnow
from SKMS.core.config import settings
from SKMS.models import (
    OutboundEmail,
    OutboxStatus,
    ScheduledTask,
    Skill,
    SkillStatus,
    TaskKind,
    TaskStatus,
)

from . import notifications
from .assessments import complete_expired
from .mailer import Mailer

log = get_logger("dispatcher")


def backoff_delay(attempts: int, base_seconds: float | None = None) -> timedelta:
    """Delay before retry number ``attempts`` (1-based): base, 2*base, 4*base, ..."""
    base = settings.OUTBOX_BACKOFF_SECONDS if base_seconds is None else base_seconds
    return timedelta(seconds=base * (2 ** max(attempts - 1, 0)))


async def deliver_outbox(
    db: AsyncSession,
    mailer: Mailer,
    *,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
) -> Dict[str, int]:
    now = as_utc(now) if now else utcnow()
    stmt = (
        sa.select(OutboundEmail)
        .where(OutboundEmail.status == OutboxStatus.PENDING, OutboundEmail.next_attempt_at <= now)
        .order_by(OutboundEmail.next_attempt_at)
        .limit(batch_size or settings.OUTBOX_BATCH_SIZE)
        .with_for_update(skip_locked=True)
    )
    rows = (await db.execute(stmt)).scalars().all()

    counts = {"sent": 0, "retried": 0, "dead": 0}
    for row in rows:
        row.attempts += 1
        try:
            await mailer.send(row.recipient, row.subject, row.html)
        except Exception as exc:  # any transport failure is retried
            row.last_error = f"{type(exc).__name__}: {exc}"[:2000]
            if row.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
                row.status = OutboxStatus.DEAD
                counts["dead"] += 1
                log.error("outbox: giving up on email=%s to=%s after %d attempts: %s",
                          row.id, row.recipient, row.attempts, row.last_error)
            else:
                row.next_attempt_at = now + backoff_delay(row.attempts)
                counts["retried"] += 1
                log.warning("outbox: send failed email=%s to=%s attempt=%d: %s",
                            row.id, row.recipient, row.attempts, row.last_error)
            continue
        row.status = OutboxStatus.SENT
        row.sent_at = now
        row.last_error = None
        counts["sent"] += 1

    await db.commit()
    if rows:
        log.info("outbox: processed %d emails %s", len(rows), counts)
    return counts


async def _fire_skill_reminder(db: AsyncSession, task: ScheduledTask) -> TaskStatus:
    skill = await db.get(Skill, task.skill_id) if task.skill_id else None
    if skill is None or skill.status != SkillStatus.ACTIVE:
        return TaskStatus.CANCELLED

    subject, html = notifications.skill_reminder_email(skill)
    for enrollment in skill.enrolled_students:
        notifications.enqueue(
            db, enrollment.student.email, subject, html, notifications.CATEGORY_SKILL_REMINDER
        )
    log.info("reminder: skill=%s queued for %d students", skill.id, skill.enrolled_count)
    return TaskStatus.DONE


_HANDLERS = {
    TaskKind.SKILL_REMINDER: _fire_skill_reminder,
}


async def fire_due_tasks(db: AsyncSession, *, now: Optional[datetime] = None) -> int:
    now = as_utc(now) if now else utcnow()
    tasks = (
        await db.execute(
            sa.select(ScheduledTask)
            .where(ScheduledTask.status == TaskStatus.SCHEDULED, ScheduledTask.run_at <= now)
            .order_by(ScheduledTask.run_at)
            .with_for_update(skip_locked=True)
        )
    ).scalars().all()

    for task in tasks:
        handler = _HANDLERS.get(task.kind)
        if handler is None:
            task.status = TaskStatus.FAILED
            task.last_error = f"no handler for {task.kind}"
            log.error("tasks: no handler for kind=%s task=%s", task.kind, task.id)
            continue
        task.status = await handler(db, task)
        task.fired_at = now

    await db.commit()
    return len(tasks)


async def run_once(
    sessionmaker: async_sessionmaker[AsyncSession],
    mailer: Mailer,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    async with sessionmaker() as db:
        completed = await complete_expired(db, now=now)
        await db.commit()
    async with sessionmaker() as db:
        fired = await fire_due_tasks(db, now=now)
    async with sessionmaker() as db:
        counts = await deliver_outbox(db, mailer, now=now)
    return {"completed": completed, "fired": fired, **counts}


async def run_forever(
    sessionmaker: async_sessionmaker[AsyncSession],
    mailer: Mailer,
    *,
    poll_seconds: Optional[float] = None,
    stop: Optional[asyncio.Event] = None,
) -> None:
    poll = settings.OUTBOX_POLL_SECONDS if poll_seconds is None else poll_seconds
    stop = stop or asyncio.Event()
    log.info("dispatcher: started (poll=%ss)", poll)
    while not stop.is_set():
        try:
            await run_once(sessionmaker, mailer)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("dispatcher: pass failed")
        try:
            await asyncio.wait_for(stop.wait(), timeout=poll)
        except asyncio.TimeoutError:
            pass
    log.info("dispatcher: stopped")
