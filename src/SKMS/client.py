# src/SKMS/client.py
"""
Typed async client for the SKMS API.

Each ``SkillClient`` carries its own credential; any call may pass ``token=``
to act as someone else for that one request. Nothing is stored globally, so
several clients (say a faculty and a student session) can share a process.

    async with SkillClient("http://localhost:5000", token=faculty_token) as api:
        skill = await api.submit_budget({...})
        await api.register(skill["skill"]["id"], token=student_token)
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic_core import to_jsonable_python

DEFAULT_BASE_URL = "http://localhost:5000"


class SkillAPIError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, error_code: str | None, message: str, payload: Any = None):
        super().__init__(f"HTTP {status_code} {error_code or ''}: {message}".strip())
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.payload = payload


class SkillClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        *,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "SkillClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    def _headers(self, token: str | None) -> Dict[str, str]:
        tok = token if token is not None else self.token
        return {"Authorization": f"Bearer {tok}"} if tok else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        resp = await self._http.request(
            method,
            path,
            headers=self._headers(token),
            json=to_jsonable_python(json) if json is not None else None,
            params=params,
        )
        ctype = (resp.headers.get("content-type") or "").split(";")[0].strip()
        body = resp.json() if ctype == "application/json" else {"message": resp.text}
        if resp.is_success:
            return body
        raise SkillAPIError(
            resp.status_code,
            body.get("errorCode") if isinstance(body, dict) else None,
            body.get("message", resp.reason_phrase) if isinstance(body, dict) else str(body),
            payload=body,
        )

    async def _data(self, method: str, path: str, **kw) -> Any:
        body = await self._request(method, path, **kw)
        return body.get("data", body)

    # ---- health / auth -------------------------------------------------
    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/healthz")

    async def me(self, *, token: str | None = None) -> Dict[str, Any]:
        return (await self._data("GET", "/api/auth/me", token=token))["user"]

    async def update_me(self, changes: Dict[str, Any], *, token: str | None = None) -> Dict[str, Any]:
        return (await self._data("PATCH", "/api/auth/me", json=changes, token=token))["user"]

    async def list_users(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/auth/users", token=token))["users"]

    async def update_role(self, user_id: str, role: str, *, token: str | None = None) -> Dict[str, Any]:
        body = await self._data("PATCH", f"/api/auth/users/{user_id}/role", json={"role": role}, token=token)
        return body["user"]

    # ---- faculty -------------------------------------------------------
    async def submit_budget(self, proposal: Dict[str, Any], *, token: str | None = None) -> Dict[str, Any]:
        return (await self._data("POST", "/api/faculty/submit-budget", json=proposal, token=token))["skill"]

    async def faculty_skills(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/faculty/my-skills", token=token))["skills"]

    async def update_skill(self, skill_id: str, changes: Dict[str, Any], *, token: str | None = None) -> Dict[str, Any]:
        body = await self._data("PATCH", f"/api/faculty/update-skill/{skill_id}", json=changes, token=token)
        return body["skill"]

    async def mark_attendance(
        self, skill_id: str, date: Any, present_students: List[str], *, token: str | None = None
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/faculty/mark-attendance/{skill_id}",
            json={"date": date, "presentStudents": present_students},
            token=token,
        )

    async def attendance_stats(self, skill_id: str, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", f"/api/faculty/attendance-stats/{skill_id}", token=token))["attendanceStats"]

    async def skill_feedback(self, skill_id: str, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", f"/api/faculty/feedback/{skill_id}", token=token))["feedback"]

    async def create_assessment(self, skill_id: str, spec: Dict[str, Any], *, token: str | None = None) -> Dict[str, Any]:
        body = await self._data("POST", f"/api/faculty/create-assessment/{skill_id}", json=spec, token=token)
        return body["assessment"]

    async def update_assessment(
        self, assessment_id: str, patch: Dict[str, Any], *, token: str | None = None
    ) -> Dict[str, Any]:
        body = await self._data("PATCH", f"/api/faculty/update-assessment/{assessment_id}", json=patch, token=token)
        return body["assessment"]

    async def publish_assessment(self, assessment_id: str, *, token: str | None = None) -> Dict[str, Any]:
        body = await self._data("PATCH", f"/api/faculty/publish-assessment/{assessment_id}", token=token)
        return body["assessment"]

    async def assessment_results(self, assessment_id: str, *, token: str | None = None) -> Dict[str, Any]:
        return await self._data("GET", f"/api/faculty/assessment-results/{assessment_id}", token=token)

    # ---- student -------------------------------------------------------
    async def available_skills(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/student/available-skills", token=token))["skills"]

    async def my_enrolled_skills(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/student/my-skills", token=token))["skills"]

    async def register(self, skill_id: str, *, token: str | None = None) -> Dict[str, Any]:
        return await self._request("POST", f"/api/student/register/{skill_id}", token=token)

    async def my_attendance(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/student/my-attendance", token=token))["attendance"]

    async def submit_feedback(
        self, skill_id: str, rating: int, comment: str | None = None, *, token: str | None = None
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/student/submit-feedback/{skill_id}",
            json={"rating": rating, "comment": comment},
            token=token,
        )

    async def available_assessments(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/student/available-assessments", token=token))["assessments"]

    async def submit_assessment(
        self, assessment_id: str, answers: List[Dict[str, Any]], *, token: str | None = None
    ) -> Dict[str, Any]:
        return await self._data(
            "POST", f"/api/student/submit-assessment/{assessment_id}", json={"answers": answers}, token=token
        )

    async def my_assessment_result(self, assessment_id: str, *, token: str | None = None) -> Dict[str, Any]:
        return await self._data("GET", f"/api/student/assessment-results/{assessment_id}", token=token)

    # ---- skill team ----------------------------------------------------
    async def pending_budgets(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/team/pending-budgets", token=token))["skills"]

    async def review_budget(
        self, skill_id: str, status: str, rejection_reason: str | None = None, *, token: str | None = None
    ) -> Dict[str, Any]:
        payload = {"status": status}
        if rejection_reason is not None:
            payload["rejectionReason"] = rejection_reason
        body = await self._data("PATCH", f"/api/team/review-budget/{skill_id}", json=payload, token=token)
        return body["skill"]

    async def feedback_analysis(self, *, token: str | None = None) -> List[Dict[str, Any]]:
        return (await self._data("GET", "/api/team/feedback-analysis", token=token))["analysis"]

    async def skill_statistics(self, *, token: str | None = None) -> Dict[str, Any]:
        return await self._data("GET", "/api/team/skill-statistics", token=token)

    async def send_feedback_summary(self, skill_id: str, *, token: str | None = None) -> Dict[str, Any]:
        return await self._request("POST", f"/api/team/send-feedback-summary/{skill_id}", token=token)
