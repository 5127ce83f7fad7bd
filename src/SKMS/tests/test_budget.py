# src/SKMS/tests/test_budget.py
from datetime import timedelta

import pytest
import sqlalchemy as sa

from SKMS.core.clock import as_utc, utcnow
from SKMS.models import OutboundEmail, Role, ScheduledTask, TaskStatus

pytestmark = pytest.mark.anyio


def _proposal(**overrides):
    start = utcnow() + timedelta(days=10)
    body = {
        "name": "Embedded Systems",
        "type": "day",
        "numberOfVenues": 1,
        "numberOfStudents": 40,
        "amount": 12000,
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(days=20)).isoformat(),
        "venue": "Lab 3",
    }
    body.update(overrides)
    return body


async def _submit(client, headers, **overrides):
    r = await client.post("/api/faculty/submit-budget", json=_proposal(**overrides), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["skill"]


async def test_submit_budget_creates_a_pending_skill(client, faculty, auth_headers):
    skill = await _submit(client, auth_headers(faculty))

    assert skill["status"] == "pending"
    assert skill["budget"]["status"] == "pending"
    assert skill["budget"]["numberOfStudents"] == 40
    assert skill["faculty"][0]["id"] == faculty.id
    assert skill["enrolledCount"] == 0
    assert skill["schedule"]["venue"] == "Lab 3"


async def test_submit_budget_rejects_end_before_start(client, faculty, auth_headers):
    start = utcnow() + timedelta(days=10)
    r = await client.post(
        "/api/faculty/submit-budget",
        json=_proposal(startDate=start.isoformat(), endDate=(start - timedelta(days=1)).isoformat()),
        headers=auth_headers(faculty),
    )
    assert r.status_code == 400
    assert r.json()["errorCode"] == "validation_error"


async def test_co_faculty_must_be_faculty(client, faculty, make_user, auth_headers):
    colleague = await make_user(Role.FACULTY)
    student = await make_user(Role.STUDENT)

    skill = await _submit(client, auth_headers(faculty), coFaculties=[colleague.id])
    assert [f["id"] for f in skill["faculty"]] == [faculty.id, colleague.id]

    r = await client.post(
        "/api/faculty/submit-budget",
        json=_proposal(coFaculties=[student.id]),
        headers=auth_headers(faculty),
    )
    assert r.status_code == 400


async def test_only_faculty_submit_budgets(client, hosteller, auth_headers):
    r = await client.post("/api/faculty/submit-budget", json=_proposal(), headers=auth_headers(hosteller))
    assert r.status_code == 403
    assert r.json()["message"] == "Only faculty members can access this route"


async def test_approval_activates_queues_mail_and_arms_reminder(
    client, sessionmaker, faculty, skill_team, auth_headers
):
    skill = await _submit(client, auth_headers(faculty))

    pending = await client.get("/api/team/pending-budgets", headers=auth_headers(skill_team))
    assert pending.json()["results"] == 1

    r = await client.patch(
        f"/api/team/review-budget/{skill['id']}",
        json={"status": "approved"},
        headers=auth_headers(skill_team),
    )
    assert r.status_code == 200, r.text
    reviewed = r.json()["data"]["skill"]
    assert reviewed["status"] == "active"
    assert reviewed["budget"]["status"] == "approved"
    assert reviewed["budget"]["reviewedAt"] is not None

    async with sessionmaker() as s:
        emails = (await s.execute(sa.select(OutboundEmail))).scalars().all()
        tasks = (await s.execute(sa.select(ScheduledTask))).scalars().all()

    assert [e.recipient for e in emails] == [faculty.email]
    assert emails[0].subject == "Budget Approved - Embedded Systems"
    assert len(tasks) == 1
    assert tasks[0].skill_id == skill["id"]
    assert tasks[0].status == TaskStatus.SCHEDULED

    pending = await client.get("/api/team/pending-budgets", headers=auth_headers(skill_team))
    assert pending.json()["results"] == 0


async def test_budget_is_reviewed_only_once(client, faculty, skill_team, auth_headers):
    skill = await _submit(client, auth_headers(faculty))
    url = f"/api/team/review-budget/{skill['id']}"

    first = await client.patch(url, json={"status": "approved"}, headers=auth_headers(skill_team))
    assert first.status_code == 200

    second = await client.patch(
        url, json={"status": "rejected", "rejectionReason": "late"}, headers=auth_headers(skill_team)
    )
    assert second.status_code == 400
    assert second.json() == {
        "status": "fail",
        "errorCode": "invalid_state",
        "message": "This budget has already been reviewed",
    }

    r = await client.get("/api/faculty/my-skills", headers=auth_headers(faculty))
    assert r.json()["data"]["skills"][0]["budget"]["status"] == "approved"


async def test_rejection_needs_a_reason(client, faculty, skill_team, auth_headers):
    skill = await _submit(client, auth_headers(faculty))
    url = f"/api/team/review-budget/{skill['id']}"

    r = await client.patch(url, json={"status": "rejected"}, headers=auth_headers(skill_team))
    assert r.status_code == 400

    r = await client.patch(
        url, json={"status": "rejected", "rejectionReason": "Too expensive"}, headers=auth_headers(skill_team)
    )
    assert r.status_code == 200
    body = r.json()["data"]["skill"]
    assert body["budget"]["status"] == "rejected"
    assert body["budget"]["rejectionReason"] == "Too expensive"
    assert body["status"] == "pending"


async def test_unknown_decision_is_rejected(client, faculty, skill_team, auth_headers):
    skill = await _submit(client, auth_headers(faculty))
    r = await client.patch(
        f"/api/team/review-budget/{skill['id']}", json={"status": "maybe"}, headers=auth_headers(skill_team)
    )
    assert r.status_code == 400
    assert r.json()["errorCode"] == "validation_error"


async def test_review_of_missing_skill_is_404(client, skill_team, auth_headers):
    r = await client.patch(
        "/api/team/review-budget/does-not-exist", json={"status": "approved"}, headers=auth_headers(skill_team)
    )
    assert r.status_code == 404
    assert r.json()["message"] == "Skill not found"


async def test_moving_the_start_rearms_the_reminder(
    client, sessionmaker, faculty, skill_team, auth_headers
):
    skill = await _submit(client, auth_headers(faculty))
    await client.patch(
        f"/api/team/review-budget/{skill['id']}", json={"status": "approved"}, headers=auth_headers(skill_team)
    )

    new_start = utcnow() + timedelta(days=15)
    r = await client.patch(
        f"/api/faculty/update-skill/{skill['id']}",
        json={"name": "Embedded Systems II", "schedule": {"startDate": new_start.isoformat()}},
        headers=auth_headers(faculty),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["skill"]["name"] == "Embedded Systems II"

    async with sessionmaker() as s:
        tasks = (await s.execute(sa.select(ScheduledTask).order_by(ScheduledTask.created_at))).scalars().all()

    assert [t.status for t in tasks] == [TaskStatus.CANCELLED, TaskStatus.SCHEDULED]
    expected = as_utc(new_start) - timedelta(hours=24)
    assert abs((as_utc(tasks[1].run_at) - expected).total_seconds()) < 1


async def test_only_assigned_faculty_update_a_skill(client, faculty, make_user, make_skill, auth_headers):
    other = await make_user(Role.FACULTY)
    skill = await make_skill(faculty)
    r = await client.patch(
        f"/api/faculty/update-skill/{skill.id}", json={"name": "Hijacked"}, headers=auth_headers(other)
    )
    assert r.status_code == 403


async def test_my_skills_lists_assigned_skills(client, faculty, make_skill, auth_headers):
    await make_skill(faculty, name="A")
    await make_skill(faculty, name="B")
    r = await client.get("/api/faculty/my-skills", headers=auth_headers(faculty))
    assert r.json()["results"] == 2
    assert {s["name"] for s in r.json()["data"]["skills"]} == {"A", "B"}
