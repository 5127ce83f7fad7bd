# schemas/user.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from SKMS.models.enums import Role, StudentType

from .base import APIModel


class UserBrief(APIModel):
    id: str
    name: str
    email: str


class UserOut(APIModel):
    id: str
    google_id: str
    email: str
    name: str
    role: Role
    student_type: Optional[StudentType] = None
    enrolled_skills: List[str] = Field(default_factory=list, validation_alias="enrolled_skill_ids", serialization_alias="enrolledSkills")
    created_at: datetime


class ProfileUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    student_type: Optional[StudentType] = None


class RoleUpdate(APIModel):
    role: Role
