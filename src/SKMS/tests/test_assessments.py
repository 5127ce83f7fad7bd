# src/SKMS/tests/test_assessments.py
from datetime import timedelta

import pytest
import sqlalchemy as sa

from SKMS.core.clock import utcnow
from SKMS.core.config import settings
from SKMS.models import OutboundEmail, Role, StudentResponse

pytestmark = pytest.mark.anyio


def _assessment(opens=timedelta(hours=-1), closes=timedelta(hours=1), **overrides):
    now = utcnow()
    body = {
        "title": "Midterm",
        "description": "Two quick questions",
        "duration": 30,
        "passingScore": 1,
        "startTime": (now + opens).isoformat(),
        "endTime": (now + closes).isoformat(),
        "questions": [
            {
                "text": "2 + 2?",
                "points": 1,
                "options": [{"text": "4", "isCorrect": True}, {"text": "5"}],
            },
            {
                "text": "Capital of France?",
                "points": 1,
                "options": [{"text": "Lyon"}, {"text": "Paris", "isCorrect": True}],
            },
        ],
    }
    body.update(overrides)
    return body


@pytest.fixture
async def course(client, faculty, hosteller, make_skill, auth_headers):
    skill = await make_skill(faculty)
    r = await client.post(f"/api/student/register/{skill.id}", headers=auth_headers(hosteller))
    assert r.status_code == 200
    return skill


async def _create(client, skill_id, headers, **kw):
    r = await client.post(f"/api/faculty/create-assessment/{skill_id}", json=_assessment(**kw), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["assessment"]


async def _publish(client, assessment_id, headers):
    r = await client.patch(f"/api/faculty/publish-assessment/{assessment_id}", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]["assessment"]


def _answer(question, option_text):
    option = next(o for o in question["options"] if o["text"] == option_text)
    return {"question": question["id"], "selectedOption": option["id"]}


async def test_end_to_end_submission(client, sessionmaker, course, faculty, hosteller, auth_headers):
    created = await _create(client, course.id, auth_headers(faculty))
    assert created["status"] == "draft"
    assert created["totalPoints"] == 2
    assert created["questions"][0]["options"][0]["isCorrect"] is True

    published = await _publish(client, created["id"], auth_headers(faculty))
    assert published["status"] == "published"
    assert published["publishedAt"] is not None

    r = await client.get("/api/student/available-assessments", headers=auth_headers(hosteller))
    [visible] = r.json()["data"]["assessments"]
    assert visible["id"] == created["id"]
    assert all("isCorrect" not in o for q in visible["questions"] for o in q["options"])

    q1, q2 = visible["questions"]
    answers = [_answer(q1, "4"), _answer(q2, "Lyon")]
    r = await client.post(
        f"/api/student/submit-assessment/{created['id']}",
        json={"answers": answers},
        headers=auth_headers(hosteller),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"score": 1, "totalPoints": 2, "passed": True}

    again = await client.post(
        f"/api/student/submit-assessment/{created['id']}",
        json={"answers": [_answer(q1, "4"), _answer(q2, "Paris")]},
        headers=auth_headers(hosteller),
    )
    assert again.status_code == 409
    assert again.json()["errorCode"] == "already_submitted"

    async with sessionmaker() as s:
        stored = await s.scalar(sa.select(sa.func.count(StudentResponse.id)))
        emails = (await s.execute(sa.select(OutboundEmail))).scalars().all()
    assert stored == 1
    assert [(e.recipient, e.subject) for e in emails] == [(hosteller.email, "Assessment Scheduled: Midterm")]

    r = await client.get(f"/api/student/assessment-results/{created['id']}", headers=auth_headers(hosteller))
    mine = r.json()["data"]
    assert (mine["score"], mine["totalPoints"], mine["passed"]) == (1, 2, True)

    r = await client.get(f"/api/faculty/assessment-results/{created['id']}", headers=auth_headers(faculty))
    results = r.json()["data"]
    assert len(results["responses"]) == 1
    assert results["responses"][0]["student"]["id"] == hosteller.id
    assert len(results["responses"][0]["answers"]) == 2
    assert results["statistics"]["totalSubmissions"] == 1
    assert results["statistics"]["passRate"] == 100.0


async def test_stale_answer_reference_costs_only_that_answer(
    client, sessionmaker, course, faculty, hosteller, auth_headers
):
    created = await _create(client, course.id, auth_headers(faculty))
    await _publish(client, created["id"], auth_headers(faculty))
    q1 = created["questions"][0]

    answers = [
        _answer(q1, "4"),
        {"question": "stale-question-id", "selectedOption": "whatever"},
    ]
    r = await client.post(
        f"/api/student/submit-assessment/{created['id']}",
        json={"answers": answers},
        headers=auth_headers(hosteller),
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"score": 1, "totalPoints": 2, "passed": True}

    async with sessionmaker() as s:
        response = (await s.execute(sa.select(StudentResponse))).scalar_one()
    assert response.score == 1

    r = await client.get(f"/api/faculty/assessment-results/{created['id']}", headers=auth_headers(faculty))
    assert len(r.json()["data"]["responses"][0]["answers"]) == 1


async def test_exact_set_mode(client, course, faculty, hosteller, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "SCORING_MODE", "exact_set")
    multi = [{
        "text": "Pick the primes",
        "points": 2,
        "options": [{"text": "2", "isCorrect": True}, {"text": "3", "isCorrect": True}, {"text": "4"}],
    }]
    created = await _create(client, course.id, auth_headers(faculty), questions=multi, passingScore=2)
    await _publish(client, created["id"], auth_headers(faculty))

    question = created["questions"][0]
    picks = [o["id"] for o in question["options"] if o["isCorrect"]]
    r = await client.post(
        f"/api/student/submit-assessment/{created['id']}",
        json={"answers": [{"question": question["id"], "selectedOptions": picks}]},
        headers=auth_headers(hosteller),
    )
    assert r.json()["data"] == {"score": 2, "totalPoints": 2, "passed": True}


async def test_submission_outside_window_is_rejected(client, course, faculty, hosteller, auth_headers):
    created = await _create(
        client, course.id, auth_headers(faculty), opens=timedelta(hours=2), closes=timedelta(hours=3)
    )
    await _publish(client, created["id"], auth_headers(faculty))

    r = await client.post(
        f"/api/student/submit-assessment/{created['id']}", json={"answers": []}, headers=auth_headers(hosteller)
    )
    assert r.status_code == 400
    assert r.json()["message"] == "This assessment is not currently active"

    r = await client.get("/api/student/available-assessments", headers=auth_headers(hosteller))
    assert r.json()["results"] == 0


async def test_only_drafts_can_be_edited(client, course, faculty, auth_headers):
    created = await _create(client, course.id, auth_headers(faculty))

    r = await client.patch(
        f"/api/faculty/update-assessment/{created['id']}",
        json={"title": "Final", "passingScore": 2},
        headers=auth_headers(faculty),
    )
    assert r.status_code == 200
    updated = r.json()["data"]["assessment"]
    assert (updated["title"], updated["passingScore"]) == ("Final", 2)
    assert len(updated["questions"]) == 2

    await _publish(client, created["id"], auth_headers(faculty))
    r = await client.patch(
        f"/api/faculty/update-assessment/{created['id']}", json={"title": "Late"}, headers=auth_headers(faculty)
    )
    assert r.status_code == 400
    assert r.json()["errorCode"] == "invalid_state"

    r = await client.patch(f"/api/faculty/publish-assessment/{created['id']}", headers=auth_headers(faculty))
    assert r.status_code == 400


async def test_window_must_be_ordered(client, course, faculty, auth_headers):
    r = await client.post(
        f"/api/faculty/create-assessment/{course.id}",
        json=_assessment(opens=timedelta(hours=2), closes=timedelta(hours=1)),
        headers=auth_headers(faculty),
    )
    assert r.status_code == 400


async def test_other_faculty_cannot_touch_the_assessment(client, course, faculty, make_user, auth_headers):
    stranger = await make_user(Role.FACULTY)
    r = await client.post(
        f"/api/faculty/create-assessment/{course.id}", json=_assessment(), headers=auth_headers(stranger)
    )
    assert r.status_code == 403

    created = await _create(client, course.id, auth_headers(faculty))
    r = await client.patch(f"/api/faculty/publish-assessment/{created['id']}", headers=auth_headers(stranger))
    assert r.status_code == 403
    r = await client.get(f"/api/faculty/assessment-results/{created['id']}", headers=auth_headers(stranger))
    assert r.status_code == 403


async def test_closed_assessment_reads_as_completed(client, course, faculty, auth_headers):
    created = await _create(
        client, course.id, auth_headers(faculty), opens=timedelta(hours=-3), closes=timedelta(hours=-1)
    )
    published = await _publish(client, created["id"], auth_headers(faculty))
    assert published["status"] == "completed"


async def test_skill_points_at_its_latest_assessment(client, course, faculty, auth_headers):
    created = await _create(client, course.id, auth_headers(faculty))
    r = await client.get("/api/faculty/my-skills", headers=auth_headers(faculty))
    assert r.json()["data"]["skills"][0]["assessmentId"] == created["id"]


async def test_result_before_submitting_is_404(client, course, faculty, hosteller, auth_headers):
    created = await _create(client, course.id, auth_headers(faculty))
    r = await client.get(f"/api/student/assessment-results/{created['id']}", headers=auth_headers(hosteller))
    assert r.status_code == 404
    assert r.json()["message"] == "You have not taken this assessment"
