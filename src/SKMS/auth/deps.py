# src/SKMS/auth/deps.py
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.db.session import get_db
from SKMS.exceptions import Forbidden, Unauthorized
from SKMS.models import Role, User

from .tokens import decode_access_token

log = get_logger("auth.deps")

bearer_scheme = HTTPBearer(auto_error=False)

_ROLE_LABELS = {
    Role.STUDENT: "students",
    Role.FACULTY: "faculty members",
    Role.SKILL_TEAM: "skill team members",
}


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if creds is None or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise Unauthorized("Not authorized to access this route")

    claims = decode_access_token(creds.credentials)
    user = await db.get(User, claims["sub"])
    if user is None:
        log.info("auth: token for unknown user sub=%s", claims["sub"])
        raise Unauthorized("The user belonging to this token no longer exists")
    return user


def require_role(role: Role) -> Callable[..., User]:
    async def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise Forbidden(
                f"Only {_ROLE_LABELS[role]} can access this route",
                context={"role": user.role.value},
            )
        return user

    return _dep


require_student = require_role(Role.STUDENT)
require_faculty = require_role(Role.FACULTY)
require_skill_team = require_role(Role.SKILL_TEAM)
