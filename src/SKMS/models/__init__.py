# src/SKMS/models/__init__.py

from .base import Base, metadata

from .enums import (
    Role,
    StudentType,
    SkillType,
    SkillStatus,
    BudgetStatus,
    AssessmentStatus,
    OutboxStatus,
    TaskStatus,
    TaskKind,
)

from .user import User

from .skill import (
    Skill,
    SkillFaculty,
    Budget,
    Enrollment,
    AttendanceRecord,
    Feedback,
    attendance_presence,
)

from .assessment import (
    Assessment,
    Question,
    Option,
    StudentResponse,
    ResponseAnswer,
)

from .outbox import (
    OutboundEmail,
    ScheduledTask,
)

# Finally, after *all* model imports:
from sqlalchemy.orm import configure_mappers
configure_mappers()
