from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from SKMS.core.clock import utcnow

from .base import Base, JSONDocument, TimestampMixin, UTCDateTime, UUIDMixin, enum_column
from .enums import OutboxStatus, TaskKind, TaskStatus


class OutboundEmail(UUIDMixin, TimestampMixin, Base):
    """One email per recipient, written in the same transaction as the change that caused it."""
    __tablename__ = "outbound_emails"

    recipient: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    subject: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    html: Mapped[str] = mapped_column(sa.Text, nullable=False)
    category: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    status: Mapped[OutboxStatus] = mapped_column(enum_column(OutboxStatus), nullable=False, default=OutboxStatus.PENDING)
    attempts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    next_attempt_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    last_error: Mapped[Optional[str]] = mapped_column(sa.Text)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())

    __table_args__ = (
        sa.Index("ix_outbound_emails_due", "status", "next_attempt_at"),
    )


class ScheduledTask(UUIDMixin, TimestampMixin, Base):
    """A timed job that survives restarts; the dispatcher fires it once run_at passes."""
    __tablename__ = "scheduled_tasks"

    kind: Mapped[TaskKind] = mapped_column(enum_column(TaskKind, length=32), nullable=False)
    run_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    skill_id: Mapped[Optional[str]] = mapped_column(sa.CHAR(36), sa.ForeignKey("skills.id", ondelete="CASCADE"))
    payload: Mapped[dict] = mapped_column(JSONDocument(), nullable=False, default=dict)
    status: Mapped[TaskStatus] = mapped_column(enum_column(TaskStatus), nullable=False, default=TaskStatus.SCHEDULED)
    fired_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    last_error: Mapped[Optional[str]] = mapped_column(sa.Text)

    __table_args__ = (
        sa.Index("ix_scheduled_tasks_due", "status", "run_at"),
    )
