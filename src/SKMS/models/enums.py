# src/SKMS/models/enums.py
from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    SKILL_TEAM = "skillTeam"


class StudentType(str, Enum):
    DAY_SCHOLAR = "dayScholar"
    HOSTELLER = "hosteller"


class SkillType(str, Enum):
    DAY = "day"
    NIGHT = "night"
    BOTH = "both"


class SkillStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class BudgetStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    COMPLETED = "completed"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DEAD = "dead"


class TaskStatus(str, Enum):
    SCHEDULED = "scheduled"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class TaskKind(str, Enum):
    SKILL_REMINDER = "skill_reminder"
