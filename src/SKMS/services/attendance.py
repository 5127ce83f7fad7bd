# src/SKMS/services/attendance.py
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.clock import calendar_day
from SKMS.exceptions import DuplicateAttendance, Forbidden, ValidationError
from SKMS.models import AttendanceRecord, Skill, User

from .enrollment import my_enrolled_skills
from .lookups import load_skill

log = get_logger("attendance")


def student_attendance_percentage(records: Sequence[AttendanceRecord], student_id: str) -> float:
    """Share of sessions the student attended; 100 while no session is recorded."""
    if not records:
        return 100.0
    present = sum(1 for r in records if student_id in r.present_student_ids)
    return present / len(records) * 100


async def mark_attendance(
    db: AsyncSession,
    faculty: User,
    skill_id: str,
    session_date: date | datetime,
    present_student_ids: Iterable[str],
) -> AttendanceRecord:
    skill = await load_skill(db, skill_id)
    if not skill.is_faculty(faculty.id):
        raise Forbidden(
            "Not authorized to mark attendance for this skill", context={"skill_id": skill_id}
        )

    day = calendar_day(session_date)
    present_ids = list(dict.fromkeys(present_student_ids))
    not_enrolled = [sid for sid in present_ids if not skill.is_student_enrolled(sid)]
    if not_enrolled:
        raise ValidationError(
            "Present students must be enrolled in this skill",
            context={"student_ids": not_enrolled},
        )

    if any(r.session_date == day for r in skill.attendance):
        raise DuplicateAttendance(
            "Attendance already marked for this date", context={"date": day.isoformat()}
        )

    students = {e.student_id: e.student for e in skill.enrolled_students}
    record = AttendanceRecord(
        skill_id=skill.id,
        session_date=day,
        marked_by_id=faculty.id,
        present_students=[students[sid] for sid in present_ids],
    )
    db.add(record)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateAttendance("Attendance already marked for this date", cause=exc) from exc

    log.info("attendance: skill=%s date=%s present=%d/%d",
             skill.id, day.isoformat(), len(present_ids), skill.enrolled_count)
    return record


async def attendance_stats(db: AsyncSession, faculty: User, skill_id: str) -> List[dict]:
    skill = await load_skill(db, skill_id)
    if not skill.is_faculty(faculty.id):
        raise Forbidden(
            "Not authorized to view attendance for this skill", context={"skill_id": skill_id}
        )
    return [
        {
            "student": e.student,
            "attendance_percentage": student_attendance_percentage(skill.attendance, e.student_id),
        }
        for e in skill.enrolled_students
    ]


def _attendance_summary(skill: Skill, student_id: str) -> dict:
    return {
        "skill_id": skill.id,
        "skill_name": skill.name,
        "attendance_percentage": student_attendance_percentage(skill.attendance, student_id),
        "attendance_details": [
            {"session_date": r.session_date, "present": student_id in r.present_student_ids}
            for r in skill.attendance
        ],
    }


async def my_attendance(db: AsyncSession, student: User) -> List[dict]:
    skills = await my_enrolled_skills(db, student)
    return [_attendance_summary(skill, student.id) for skill in skills]
