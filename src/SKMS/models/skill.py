from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from SKMS.core.clock import utcnow

from .base import Base, TimestampMixin, UTCDateTime, UUIDMixin, enum_column
from .enums import BudgetStatus, SkillStatus, SkillType
from .user import User

attendance_presence = sa.Table(
    "attendance_presence",
    Base.metadata,
    sa.Column("record_id", sa.CHAR(36), ForeignKey("attendance_records.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("student_id", sa.CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Skill(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "skills"

    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    type: Mapped[SkillType] = mapped_column(enum_column(SkillType), nullable=False)
    status: Mapped[SkillStatus] = mapped_column(enum_column(SkillStatus), nullable=False, default=SkillStatus.DRAFT)

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    venue: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    faculty_links: Mapped[List["SkillFaculty"]] = relationship(
        back_populates="skill",
        cascade="all, delete-orphan",
        order_by="SkillFaculty.position",
        lazy="selectin",
    )
    budget: Mapped["Budget"] = relationship(
        back_populates="skill",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="joined",
    )
    enrolled_students: Mapped[List["Enrollment"]] = relationship(
        back_populates="skill",
        cascade="all, delete-orphan",
        order_by="Enrollment.enrolled_at",
        lazy="selectin",
    )
    attendance: Mapped[List["AttendanceRecord"]] = relationship(
        back_populates="skill",
        cascade="all, delete-orphan",
        order_by="AttendanceRecord.session_date",
        lazy="selectin",
    )
    feedback: Mapped[List["Feedback"]] = relationship(
        back_populates="skill",
        cascade="all, delete-orphan",
        order_by="Feedback.submitted_at",
        lazy="selectin",
    )

    # --- derived views ---------------------------------------------------
    @property
    def faculty(self) -> list[User]:
        return [link.user for link in self.faculty_links]

    @property
    def faculty_ids(self) -> list[str]:
        return [link.user_id for link in self.faculty_links]

    @property
    def schedule(self) -> dict:
        return {"start_date": self.start_date, "end_date": self.end_date, "venue": self.venue}

    @property
    def enrolled_count(self) -> int:
        return len(self.enrolled_students)

    def is_faculty(self, user_id: str) -> bool:
        return user_id in self.faculty_ids

    def is_student_enrolled(self, student_id: str) -> bool:
        return any(e.student_id == student_id for e in self.enrolled_students)

    def is_open_for_enrollment(self) -> bool:
        return self.budget.status == BudgetStatus.APPROVED and self.status == SkillStatus.ACTIVE


class SkillFaculty(Base):
    __tablename__ = "skill_faculty"

    skill_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id", ondelete="RESTRICT"), primary_key=True)
    position: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    skill: Mapped[Skill] = relationship(back_populates="faculty_links")
    user: Mapped[User] = relationship(lazy="joined")


class Budget(UUIDMixin, Base):
    __tablename__ = "skill_budgets"

    skill_id: Mapped[str] = mapped_column(
        sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    number_of_venues: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    number_of_students: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    amount: Mapped[float] = mapped_column(sa.Numeric(12, 2, asdecimal=False), nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(enum_column(BudgetStatus), nullable=False, default=BudgetStatus.PENDING)
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())

    skill: Mapped[Skill] = relationship(back_populates="budget")

    __table_args__ = (
        sa.CheckConstraint("number_of_students >= 1", name="capacity_positive"),
        sa.CheckConstraint("number_of_venues >= 1", name="venues_positive"),
        sa.CheckConstraint("amount >= 0", name="amount_non_negative"),
    )


class Enrollment(UUIDMixin, Base):
    __tablename__ = "enrollments"

    skill_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    student_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    skill: Mapped[Skill] = relationship(back_populates="enrolled_students")
    student: Mapped[User] = relationship(lazy="joined")

    __table_args__ = (
        sa.UniqueConstraint("skill_id", "student_id", name="uq_enrollments_skill_student"),
        sa.Index("ix_enrollments_student_id", "student_id"),
    )


class AttendanceRecord(UUIDMixin, Base):
    __tablename__ = "attendance_records"

    skill_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    session_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    marked_by_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id"), nullable=False)
    marked_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    skill: Mapped[Skill] = relationship(back_populates="attendance")
    present_students: Mapped[List[User]] = relationship(secondary=attendance_presence, lazy="selectin")

    __table_args__ = (
        sa.UniqueConstraint("skill_id", "session_date", name="uq_attendance_records_skill_date"),
    )

    @property
    def present_student_ids(self) -> list[str]:
        return [u.id for u in self.present_students]


class Feedback(UUIDMixin, Base):
    __tablename__ = "skill_feedback"

    skill_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    student_id: Mapped[str] = mapped_column(sa.CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    skill: Mapped[Skill] = relationship(back_populates="feedback")
    student: Mapped[User] = relationship(lazy="joined")

    __table_args__ = (
        sa.UniqueConstraint("skill_id", "student_id", name="uq_skill_feedback_skill_student"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="rating_range"),
    )
