# src/SKMS/tests/conftest.py
from __future__ import annotations

import logging
import os
import sys
from datetime import timedelta
from typing import List, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from SKMS.auth.tokens import create_access_token
from SKMS.core.clock import utcnow
from SKMS.core.config import settings
from SKMS.db.session import build_engine, build_sessionmaker, create_all
from SKMS.main import create_app
from SKMS.models import (
    Budget,
    BudgetStatus,
    Role,
    Skill,
    SkillFaculty,
    SkillStatus,
    SkillType,
    StudentType,
    User,
)


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """
    Ensure test logs go to stdout so they show up under pytest -s or log_cli=true.
    Avoid duplicates if handler is already present.
    """
    root = logging.getLogger()
    want = None
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout:
            want = h
            break
    if want is None:
        want = logging.StreamHandler(sys.stdout)
        want.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(want)

    # Let the user override via TEST_LOG_LEVEL=DEBUG/INFO/WARNING...
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


# ==============================================================
# Database: one fresh SQLite file per test
# ==============================================================

@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'skms.db'}")
    await create_all(eng)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


# ==============================================================
# In-process app + client
#   ASGITransport does not run the lifespan, so the sessionmaker is
#   attached to app.state by hand.
# ==============================================================

@pytest.fixture
def app(engine, sessionmaker):
    application = create_app(engine=engine, start_dispatcher=False)
    application.state.db_engine = engine
    application.state.async_sessionmaker = sessionmaker
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ==============================================================
# Factories
# ==============================================================

class FakeMailer:
    """Records deliveries; ``fail_for`` recipients raise like a dead SMTP server."""

    def __init__(self, fail_for: Optional[set] = None):
        self.sent: List[tuple] = []
        self.fail_for = set(fail_for or ())

    async def send(self, recipient: str, subject: str, html: str) -> None:
        if recipient in self.fail_for:
            raise ConnectionError(f"smtp refused {recipient}")
        self.sent.append((recipient, subject, html))


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def make_user(sessionmaker):
    counter = {"n": 0}

    async def _make(role: Role = Role.STUDENT, student_type: StudentType | None = None, name: str | None = None):
        counter["n"] += 1
        n = counter["n"]
        local = name.lower().replace(" ", ".") if name else f"{role.value.lower()}{n}"
        async with sessionmaker() as s:
            user = User(
                google_id=f"g-{n}",
                email=f"{local}@{settings.ALLOWED_EMAIL_DOMAIN}",
                name=name or f"{role.value} {n}",
                role=role,
                student_type=student_type,
            )
            s.add(user)
            await s.commit()
            return user

    return _make


@pytest.fixture
async def faculty(make_user):
    return await make_user(Role.FACULTY, name="Fiona Faculty")


@pytest.fixture
async def day_scholar(make_user):
    return await make_user(Role.STUDENT, StudentType.DAY_SCHOLAR)


@pytest.fixture
async def hosteller(make_user):
    return await make_user(Role.STUDENT, StudentType.HOSTELLER)


@pytest.fixture
async def skill_team(make_user):
    return await make_user(Role.SKILL_TEAM)


@pytest.fixture
def make_skill(sessionmaker):
    async def _make(
        faculty: User,
        *,
        name: str = "Robotics",
        type: SkillType = SkillType.DAY,
        capacity: int = 30,
        approved: bool = True,
        starts_in: timedelta = timedelta(days=7),
    ) -> Skill:
        start = utcnow() + starts_in
        async with sessionmaker() as s:
            skill = Skill(
                name=name,
                type=type,
                status=SkillStatus.ACTIVE if approved else SkillStatus.PENDING,
                start_date=start,
                end_date=start + timedelta(days=30),
                venue="Lab 1",
            )
            skill.budget = Budget(
                number_of_venues=1,
                number_of_students=capacity,
                amount=5000,
                status=BudgetStatus.APPROVED if approved else BudgetStatus.PENDING,
            )
            skill.faculty_links = [SkillFaculty(user_id=faculty.id, position=0)]
            s.add(skill)
            await s.commit()
            return skill

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
