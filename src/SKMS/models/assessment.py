from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship

from SKMS.core.clock import as_utc, utcnow

from .base import Base, TimestampMixin, UTCDateTime, UUIDMixin, enum_column
from .enums import AssessmentStatus
from .skill import Skill
from .user import User


class Assessment(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "assessments"

    skill_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    duration: Mapped[int] = mapped_column(sa.Integer, nullable=False)  # minutes
    passing_score: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[AssessmentStatus] = mapped_column(
        enum_column(AssessmentStatus), nullable=False, default=AssessmentStatus.DRAFT
    )
    created_by_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id"), nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())

    skill: Mapped[Skill] = relationship(lazy="joined")
    created_by: Mapped[User] = relationship(lazy="joined")
    questions: Mapped[List["Question"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="Question.position",
        lazy="selectin",
    )
    responses: Mapped[List["StudentResponse"]] = relationship(
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="StudentResponse.submitted_at",
        lazy="selectin",
    )

    __table_args__ = (
        sa.CheckConstraint("duration >= 1", name="duration_positive"),
        sa.Index("ix_assessments_skill_id", "skill_id"),
    )

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def is_active(self, now: datetime | None = None) -> bool:
        """Open for submissions: now within [start_time, end_time]."""
        now = as_utc(now) if now else utcnow()
        return as_utc(self.start_time) <= now <= as_utc(self.end_time)

    def effective_status(self, now: datetime | None = None) -> AssessmentStatus:
        now = as_utc(now) if now else utcnow()
        if self.status == AssessmentStatus.PUBLISHED and now > as_utc(self.end_time):
            return AssessmentStatus.COMPLETED
        return self.status

    @property
    def current_status(self) -> AssessmentStatus:
        return self.effective_status()

    def has_student_submitted(self, student_id: str) -> bool:
        return any(r.student_id == student_id for r in self.responses)

    def response_for(self, student_id: str) -> Optional["StudentResponse"]:
        return next((r for r in self.responses if r.student_id == student_id), None)


class Question(UUIDMixin, Base):
    __tablename__ = "assessment_questions"

    assessment_id: Mapped[str] = mapped_column(
        sa.CHAR(36), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    text: Mapped[str] = mapped_column(sa.Text, nullable=False)
    points: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)

    assessment: Mapped[Assessment] = relationship(back_populates="questions")
    options: Mapped[List["Option"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Option.position",
        lazy="selectin",
    )

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(o.id for o in self.options if o.is_correct)


class Option(UUIDMixin, Base):
    __tablename__ = "assessment_options"

    question_id: Mapped[str] = mapped_column(
        sa.CHAR(36), ForeignKey("assessment_questions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    text: Mapped[str] = mapped_column(sa.Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    question: Mapped[Question] = relationship(back_populates="options")


class StudentResponse(UUIDMixin, Base):
    __tablename__ = "student_responses"

    assessment_id: Mapped[str] = mapped_column(
        sa.CHAR(36), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    assessment: Mapped[Assessment] = relationship(back_populates="responses")
    student: Mapped[User] = relationship(lazy="joined")
    answers: Mapped[List["ResponseAnswer"]] = relationship(
        back_populates="response",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        sa.UniqueConstraint("assessment_id", "student_id", name="uq_student_responses_assessment_student"),
    )


class ResponseAnswer(UUIDMixin, Base):
    __tablename__ = "response_answers"

    response_id: Mapped[str] = mapped_column(
        sa.CHAR(36), ForeignKey("student_responses.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(sa.CHAR(36), nullable=False)
    option_id: Mapped[str] = mapped_column(sa.CHAR(36), nullable=False)

    response: Mapped[StudentResponse] = relationship(back_populates="answers")


# A skill's current assessment is the latest one created for it; derived so
# there is no second row to keep in step.
Skill.assessment_id = column_property(
    sa.select(Assessment.id)
    .where(Assessment.skill_id == Skill.id)
    .order_by(Assessment.created_at.desc())
    .limit(1)
    .correlate_except(Assessment)
    .scalar_subquery(),
    expire_on_flush=False,
)
