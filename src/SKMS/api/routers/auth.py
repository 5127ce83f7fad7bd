# src/SKMS/api/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.auth import google
from SKMS.auth.deps import get_current_user, require_skill_team
from SKMS.auth.tokens import create_access_token
from SKMS.db.session import get_db
from SKMS.models import User
from SKMS.schemas.base import ok, ok_list
from SKMS.schemas.user import ProfileUpdate, RoleUpdate, UserOut
from SKMS.services import identity

router = APIRouter(prefix="/api/auth", tags=["auth"])
log = get_logger("routers.auth")


@router.get("/google")
async def google_login(state: str | None = Query(default=None)):
    return RedirectResponse(google.authorize_url(state), status_code=302)


@router.get("/google/callback")
async def google_callback(code: str = Query(...), db: AsyncSession = Depends(get_db)):
    profile = await google.exchange_code(code)
    user = await identity.upsert_google_user(db, **profile)
    log.info("[auth] login user=%s role=%s", user.id, user.role.value)
    return {
        "status": "success",
        "token": create_access_token(user.id),
        "data": {"user": UserOut.model_validate(user)},
    }


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return ok({"user": UserOut.model_validate(user)})


@router.patch("/me")
async def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await identity.update_profile(db, user, body)
    return ok({"user": UserOut.model_validate(user)})


@router.get("/users")
async def list_users(
    _: User = Depends(require_skill_team),
    db: AsyncSession = Depends(get_db),
):
    users = await identity.list_users(db)
    return ok_list("users", [UserOut.model_validate(u) for u in users])


@router.patch("/users/{user_id}/role")
async def update_role(
    user_id: str,
    body: RoleUpdate,
    _: User = Depends(require_skill_team),
    db: AsyncSession = Depends(get_db),
):
    user = await identity.update_role(db, user_id, body.role)
    return ok({"user": UserOut.model_validate(user)})
