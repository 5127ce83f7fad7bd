from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin, enum_column
from .enums import Role, StudentType

if TYPE_CHECKING:  # pragma: no cover
    from .skill import Enrollment


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    google_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[Role] = mapped_column(enum_column(Role), nullable=False, default=Role.STUDENT)
    student_type: Mapped[Optional[StudentType]] = mapped_column(enum_column(StudentType))

    enrollments: Mapped[List["Enrollment"]] = relationship(
        lazy="selectin",
        viewonly=True,
    )

    @property
    def enrolled_skill_ids(self) -> list[str]:
        return [e.skill_id for e in self.enrollments]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.email} role={self.role.value}>"
