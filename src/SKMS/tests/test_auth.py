# src/SKMS/tests/test_auth.py
import pytest

from SKMS.auth import google
from SKMS.auth.tokens import create_access_token, decode_access_token
from SKMS.core.config import settings
from SKMS.exceptions import Unauthorized
from SKMS.models import Role, StudentType, User

pytestmark = pytest.mark.anyio


def _fake_google(profile):
    async def _exchange(code, *, client=None):
        assert code == "the-code"
        return profile

    return _exchange


async def test_google_login_creates_a_student(client, monkeypatch):
    email = f"New.Student@{settings.ALLOWED_EMAIL_DOMAIN}"
    monkeypatch.setattr(google, "exchange_code", _fake_google({"google_id": "g-new", "email": email, "name": "New"}))

    r = await client.get("/api/auth/google/callback", params={"code": "the-code"})
    assert r.status_code == 200, r.text
    body = r.json()
    user = body["data"]["user"]
    assert user["email"] == email.lower()
    assert user["role"] == "student"
    assert user["studentType"] is None
    assert user["enrolledSkills"] == []
    assert decode_access_token(body["token"])["sub"] == user["id"]

    # second login finds the same account
    r = await client.get("/api/auth/google/callback", params={"code": "the-code"})
    assert r.json()["data"]["user"]["id"] == user["id"]


async def test_google_login_keeps_existing_role(client, faculty, monkeypatch):
    monkeypatch.setattr(
        google, "exchange_code", _fake_google({"google_id": "g-other", "email": faculty.email, "name": "F"})
    )
    r = await client.get("/api/auth/google/callback", params={"code": "the-code"})
    assert r.json()["data"]["user"]["role"] == "faculty"
    assert r.json()["data"]["user"]["googleId"] == "g-other"


async def test_google_login_rejects_other_domains(client, monkeypatch):
    monkeypatch.setattr(
        google, "exchange_code", _fake_google({"google_id": "g-x", "email": "someone@gmail.com", "name": "X"})
    )
    r = await client.get("/api/auth/google/callback", params={"code": "the-code"})
    assert r.status_code == 403
    assert r.json()["message"] == f"Invalid email domain. Only @{settings.ALLOWED_EMAIL_DOMAIN} emails are allowed."


async def test_google_redirect_needs_configuration(client, monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", None)
    r = await client.get("/api/auth/google")
    assert r.status_code == 503

    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-123")
    r = await client.get("/api/auth/google", params={"state": "xyz"})
    assert r.status_code == 302
    assert r.headers["location"].startswith(google.AUTHORIZE_URL)
    assert "client_id=client-123" in r.headers["location"]
    assert "state=xyz" in r.headers["location"]


async def test_me_and_profile_update(client, make_user, auth_headers):
    student = await make_user(Role.STUDENT)
    r = await client.patch(
        "/api/auth/me", json={"name": "Renamed", "studentType": "dayScholar"}, headers=auth_headers(student)
    )
    assert r.status_code == 200
    assert r.json()["data"]["user"]["name"] == "Renamed"

    r = await client.get("/api/auth/me", headers=auth_headers(student))
    assert r.json()["data"]["user"]["studentType"] == "dayScholar"


async def test_student_type_is_ignored_for_staff(client, sessionmaker, faculty, auth_headers):
    r = await client.patch(
        "/api/auth/me", json={"name": "Dr Faculty", "studentType": "hosteller"}, headers=auth_headers(faculty)
    )
    assert r.status_code == 200
    assert r.json()["data"]["user"]["name"] == "Dr Faculty"
    assert r.json()["data"]["user"]["studentType"] is None

    async with sessionmaker() as s:
        stored = await s.get(User, faculty.id)
    assert stored.student_type is None


async def test_skill_team_manages_roles(client, skill_team, make_user, auth_headers):
    student = await make_user(Role.STUDENT, StudentType.HOSTELLER)

    r = await client.get("/api/auth/users", headers=auth_headers(skill_team))
    assert r.json()["results"] == 2

    r = await client.patch(
        f"/api/auth/users/{student.id}/role", json={"role": "faculty"}, headers=auth_headers(skill_team)
    )
    assert r.status_code == 200
    promoted = r.json()["data"]["user"]
    assert promoted["role"] == "faculty"
    assert promoted["studentType"] is None

    r = await client.patch(
        "/api/auth/users/missing/role", json={"role": "faculty"}, headers=auth_headers(skill_team)
    )
    assert r.status_code == 404


async def test_role_management_is_skill_team_only(client, faculty, auth_headers):
    r = await client.get("/api/auth/users", headers=auth_headers(faculty))
    assert r.status_code == 403
    assert r.json()["message"] == "Only skill team members can access this route"


def test_expired_token_is_rejected():
    token = create_access_token("user-1", expires_minutes=-5)
    with pytest.raises(Unauthorized) as err:
        decode_access_token(token)
    assert "expired" in err.value.message


async def test_token_for_deleted_user(client):
    r = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {create_access_token('ghost')}"})
    assert r.status_code == 401
    assert r.json()["message"] == "The user belonging to this token no longer exists"
