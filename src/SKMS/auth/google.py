# src/SKMS/auth/google.py
"""Google OAuth code flow: consent URL plus code -> profile exchange."""
from __future__ import annotations

from urllib.parse import urlencode

import httpx

from SKMS.app_logger import get_logger
from SKMS.core.config import settings
from SKMS.exceptions import SKMSError, Unauthorized

log = get_logger("auth.google")

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


def authorize_url(state: str | None = None) -> str:
    if not settings.GOOGLE_CLIENT_ID:
        raise SKMSError("Google login is not configured", error_code="oauth_not_configured", status_code=503)
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "prompt": "select_account",
    }
    if state:
        params["state"] = state
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


async def exchange_code(code: str, *, client: httpx.AsyncClient | None = None) -> dict:
    """
    Trade an authorization code for the user's profile.

    Returns ``{"google_id", "email", "name"}``.
    """
    own = client is None
    client = client or httpx.AsyncClient(timeout=10.0)
    try:
        token_resp = await client.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": settings.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        if token_resp.status_code != 200:
            log.warning("google: token exchange failed status=%s", token_resp.status_code)
            raise Unauthorized("Google sign-in failed")
        access_token = token_resp.json().get("access_token")

        info_resp = await client.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        if info_resp.status_code != 200:
            log.warning("google: userinfo failed status=%s", info_resp.status_code)
            raise Unauthorized("Google sign-in failed")
        info = info_resp.json()
    finally:
        if own:
            await client.aclose()

    if not info.get("email") or not info.get("email_verified", True):
        raise Unauthorized("Google account has no verified email")
    return {"google_id": info["sub"], "email": info["email"], "name": info.get("name") or info["email"]}
