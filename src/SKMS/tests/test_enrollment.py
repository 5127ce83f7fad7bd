# src/SKMS/tests/test_enrollment.py
import pytest
import sqlalchemy as sa

from SKMS.core.config import settings
from SKMS.models import Enrollment, Role, SkillType, StudentType

pytestmark = pytest.mark.anyio


async def _register(client, skill_id, headers):
    return await client.post(f"/api/student/register/{skill_id}", headers=headers)


async def test_register_enrolls_the_student(client, sessionmaker, faculty, hosteller, make_skill, auth_headers):
    skill = await make_skill(faculty)

    r = await _register(client, skill.id, auth_headers(hosteller))
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "success", "message": "Successfully enrolled in skill"}

    me = await client.get("/api/auth/me", headers=auth_headers(hosteller))
    assert me.json()["data"]["user"]["enrolledSkills"] == [skill.id]

    async with sessionmaker() as s:
        count = await s.scalar(sa.select(sa.func.count(Enrollment.id)))
    assert count == 1


async def test_capacity_is_never_exceeded(client, faculty, make_user, make_skill, auth_headers):
    skill = await make_skill(faculty, capacity=2)
    students = [await make_user(Role.STUDENT, StudentType.HOSTELLER) for _ in range(3)]

    first = await _register(client, skill.id, auth_headers(students[0]))
    second = await _register(client, skill.id, auth_headers(students[1]))
    third = await _register(client, skill.id, auth_headers(students[2]))

    assert first.status_code == second.status_code == 200
    assert third.status_code == 409
    assert third.json()["errorCode"] == "capacity_exceeded"
    assert third.json()["message"] == "No available slots in this skill"

    r = await client.get("/api/faculty/my-skills", headers=auth_headers(faculty))
    assert r.json()["data"]["skills"][0]["enrolledCount"] == 2


async def test_day_scholars_only_join_day_skills(client, faculty, day_scholar, hosteller, make_skill, auth_headers):
    night = await make_skill(faculty, name="Astronomy", type=SkillType.NIGHT)

    r = await _register(client, night.id, auth_headers(day_scholar))
    assert r.status_code == 403
    assert r.json()["errorCode"] == "type_mismatch"

    r = await _register(client, night.id, auth_headers(hosteller))
    assert r.status_code == 200


async def test_student_type_is_required_to_register(client, faculty, make_user, make_skill, auth_headers):
    skill = await make_skill(faculty)
    untyped = await make_user(Role.STUDENT)

    r = await _register(client, skill.id, auth_headers(untyped))
    assert r.status_code == 403
    assert r.json()["message"] == "Set your student type before registering for a skill"

    await client.patch("/api/auth/me", json={"studentType": "hosteller"}, headers=auth_headers(untyped))
    r = await _register(client, skill.id, auth_headers(untyped))
    assert r.status_code == 200


async def test_per_type_limit(client, faculty, hosteller, make_skill, auth_headers, monkeypatch):
    first = await make_skill(faculty, name="A")
    second = await make_skill(faculty, name="B")
    third = await make_skill(faculty, name="C")
    night = await make_skill(faculty, name="N", type=SkillType.NIGHT)

    assert (await _register(client, first.id, auth_headers(hosteller))).status_code == 200

    r = await _register(client, second.id, auth_headers(hosteller))
    assert r.status_code == 409
    assert r.json()["errorCode"] == "limit_reached"

    # other types have their own allowance
    assert (await _register(client, night.id, auth_headers(hosteller))).status_code == 200

    monkeypatch.setattr(settings, "SKILL_TYPE_LIMIT", 2)
    assert (await _register(client, second.id, auth_headers(hosteller))).status_code == 200
    assert (await _register(client, third.id, auth_headers(hosteller))).status_code == 409


async def test_unapproved_skill_is_not_available(client, faculty, hosteller, make_skill, auth_headers):
    skill = await make_skill(faculty, approved=False)
    r = await _register(client, skill.id, auth_headers(hosteller))
    assert r.status_code == 400
    assert r.json()["errorCode"] == "not_available"


async def test_availability_is_reported_before_type_mismatch(
    client, faculty, day_scholar, make_skill, auth_headers
):
    night = await make_skill(faculty, name="Astronomy", type=SkillType.NIGHT, approved=False)
    r = await _register(client, night.id, auth_headers(day_scholar))
    assert r.status_code == 400
    assert r.json()["errorCode"] == "not_available"


async def test_duplicate_registration_is_reported_before_capacity(
    client, faculty, hosteller, make_skill, auth_headers
):
    skill = await make_skill(faculty, capacity=1)
    assert (await _register(client, skill.id, auth_headers(hosteller))).status_code == 200

    r = await _register(client, skill.id, auth_headers(hosteller))
    assert r.status_code == 409
    assert r.json()["errorCode"] == "already_enrolled"


async def test_missing_skill_is_404(client, hosteller, auth_headers):
    r = await _register(client, "missing", auth_headers(hosteller))
    assert r.status_code == 404


async def test_available_skills_respect_student_type(
    client, faculty, day_scholar, hosteller, make_skill, auth_headers
):
    await make_skill(faculty, name="Day", type=SkillType.DAY)
    await make_skill(faculty, name="Night", type=SkillType.NIGHT)
    await make_skill(faculty, name="Pending", approved=False)

    r = await client.get("/api/student/available-skills", headers=auth_headers(day_scholar))
    assert [s["name"] for s in r.json()["data"]["skills"]] == ["Day"]

    r = await client.get("/api/student/available-skills", headers=auth_headers(hosteller))
    names = {s["name"] for s in r.json()["data"]["skills"]}
    assert names == {"Day", "Night"}
    assert "rejectionReason" not in r.json()["data"]["skills"][0]["budget"]
    assert "enrolledStudents" not in r.json()["data"]["skills"][0]


async def test_my_enrolled_skills(client, faculty, hosteller, make_skill, auth_headers):
    skill = await make_skill(faculty)
    await make_skill(faculty, name="Other", type=SkillType.NIGHT)
    await _register(client, skill.id, auth_headers(hosteller))

    r = await client.get("/api/student/my-skills", headers=auth_headers(hosteller))
    assert [s["id"] for s in r.json()["data"]["skills"]] == [skill.id]
    assert r.json()["data"]["skills"][0]["enrolledCount"] == 1


async def test_faculty_cannot_register(client, faculty, make_skill, auth_headers):
    skill = await make_skill(faculty)
    r = await _register(client, skill.id, auth_headers(faculty))
    assert r.status_code == 403
    assert r.json()["message"] == "Only students can access this route"
