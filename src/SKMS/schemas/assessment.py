# schemas/assessment.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from SKMS.models.enums import AssessmentStatus

from .base import APIModel
from .user import UserBrief


# -------- Inputs --------
class OptionIn(APIModel):
    text: str = Field(min_length=1)
    is_correct: bool = False


class QuestionIn(APIModel):
    text: str = Field(min_length=1)
    options: List[OptionIn] = Field(min_length=1)
    points: int = Field(default=1, ge=0)


class AssessmentCreate(APIModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    questions: List[QuestionIn] = Field(min_length=1)
    duration: int = Field(ge=1)
    passing_score: int = Field(ge=0)
    start_time: datetime
    end_time: datetime


class AssessmentUpdate(APIModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    questions: Optional[List[QuestionIn]] = Field(default=None, min_length=1)
    duration: Optional[int] = Field(default=None, ge=1)
    passing_score: Optional[int] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class AnswerIn(APIModel):
    question: str
    selected_option: Optional[str] = None
    selected_options: Optional[List[str]] = None

    @property
    def selections(self) -> List[str]:
        if self.selected_options is not None:
            return list(self.selected_options)
        return [self.selected_option] if self.selected_option else []


class SubmitAnswers(APIModel):
    answers: List[AnswerIn] = Field(default_factory=list)


# -------- Outputs --------
class OptionPublic(APIModel):
    id: str
    text: str


class OptionOut(OptionPublic):
    is_correct: bool


class QuestionPublic(APIModel):
    id: str
    text: str
    points: int
    options: List[OptionPublic]


class QuestionOut(QuestionPublic):
    options: List[OptionOut]


class _AssessmentFields(APIModel):
    id: str
    skill_id: str
    title: str
    description: Optional[str] = None
    duration: int
    passing_score: int
    total_points: int
    start_time: datetime
    end_time: datetime
    status: AssessmentStatus = Field(validation_alias="current_status")
    published_at: Optional[datetime] = None


class AssessmentOut(_AssessmentFields):
    created_by_id: str
    questions: List[QuestionOut]
    created_at: datetime
    updated_at: datetime


class StudentAssessmentOut(_AssessmentFields):
    """Questions without the correct-option flags."""
    questions: List[QuestionPublic]


class AnswerOut(APIModel):
    question_id: str
    option_id: str


class ResponseOut(APIModel):
    id: str
    student: UserBrief
    score: int
    submitted_at: datetime
    answers: List[AnswerOut]


class Statistics(APIModel):
    average_score: float = 0
    pass_rate: float = 0
    highest_score: int = 0
    lowest_score: int = 0
    total_submissions: int = 0


class AssessmentResults(APIModel):
    assessment: AssessmentOut
    responses: List[ResponseOut]
    statistics: Statistics


class SubmitResult(APIModel):
    score: int
    total_points: int
    passed: bool


class StudentResult(SubmitResult):
    submitted_at: datetime
