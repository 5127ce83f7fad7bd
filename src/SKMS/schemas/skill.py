# schemas/skill.py
from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Dict, List, Optional, Union

from pydantic import Field

from SKMS.models.enums import BudgetStatus, SkillStatus, SkillType, StudentType

from .base import APIModel
from .user import UserBrief


# -------- Inputs --------
class BudgetSubmit(APIModel):
    name: str = Field(min_length=1, max_length=255)
    type: SkillType
    number_of_venues: int = Field(ge=1)
    number_of_students: int = Field(ge=1)
    amount: float = Field(ge=0)
    co_faculties: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    venue: str = Field(min_length=1, max_length=255)


class ScheduleUpdate(APIModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    venue: Optional[str] = Field(default=None, min_length=1, max_length=255)


class SkillUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    schedule: Optional[ScheduleUpdate] = None


class BudgetReview(APIModel):
    # free-form so an unknown decision reaches the workflow and is reported there
    status: str
    rejection_reason: Optional[str] = None


class AttendanceIn(APIModel):
    session_date: Union[datetime, date_type] = Field(alias="date")
    present_students: List[str] = Field(default_factory=list)


class FeedbackIn(APIModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


# -------- Outputs --------
class ScheduleOut(APIModel):
    start_date: datetime
    end_date: datetime
    venue: str


class BudgetPublic(APIModel):
    number_of_venues: int
    number_of_students: int
    amount: float
    status: BudgetStatus
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None


class BudgetOut(BudgetPublic):
    rejection_reason: Optional[str] = None


class EnrollmentOut(APIModel):
    student: UserBrief
    enrolled_at: datetime


class SkillOut(APIModel):
    """Faculty / skill-team view of a skill."""
    id: str
    name: str
    type: SkillType
    status: SkillStatus
    faculty: List[UserBrief]
    budget: BudgetOut
    schedule: ScheduleOut
    enrolled_students: List[EnrollmentOut]
    enrolled_count: int
    assessment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StudentSkillOut(APIModel):
    """What students see: no rejection reason, no roster."""
    id: str
    name: str
    type: SkillType
    status: SkillStatus
    faculty: List[UserBrief]
    budget: BudgetPublic
    schedule: ScheduleOut
    enrolled_count: int
    assessment_id: Optional[str] = None


class AttendanceRecordOut(APIModel):
    id: str
    session_date: date_type = Field(serialization_alias="date")
    present_students: List[str] = Field(validation_alias="present_student_ids", serialization_alias="presentStudents")
    marked_by_id: str
    marked_at: datetime


class AttendanceStat(APIModel):
    student: UserBrief
    attendance_percentage: float


class AttendanceDetail(APIModel):
    session_date: date_type = Field(serialization_alias="date")
    present: bool


class MyAttendance(APIModel):
    skill_id: str
    skill_name: str
    attendance_percentage: float
    attendance_details: List[AttendanceDetail]


class FeedbackOut(APIModel):
    id: str
    student: UserBrief
    rating: int
    comment: Optional[str] = None
    submitted_at: datetime


class FeedbackAnalysis(APIModel):
    skill_id: str
    skill_name: str
    faculty: List[UserBrief]
    total_feedback: int
    average_rating: float
    rating_distribution: Dict[int, int]
    common_themes: Dict[str, Dict[str, int]]


class SkillTypeStats(APIModel):
    type: SkillType
    total_skills: int
    average_students: float
    total_budget: float
    active_skills: int


class EnrollmentStats(APIModel):
    student_type: Optional[StudentType] = None
    total_students: int
    avg_enrolled_skills: float


class SkillStatistics(APIModel):
    skill_stats: List[SkillTypeStats]
    enrollment_stats: List[EnrollmentStats]
