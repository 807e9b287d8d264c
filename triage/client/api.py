"""
client/api.py — HTTP client for the triage service

Implements the collaborator contracts the client components consume
(storage presign/upload, report create, messages, satisfaction, analysis)
plus the staff console calls, over httpx.

Business Rules:
- Error bodies ({error, status_code, code}) become the matching TriageError
  subclass; unknown codes become a plain TriageError with the HTTP status
- Transport failures propagate as httpx.HTTPError
- Authentication rides on the caller's cookies/headers

Called by: client/upload_gateway.py, client/composer.py, client/conversation.py
Depends on: httpx, errors.py
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from ..errors import ERRORS_BY_CODE, TriageError
from .media import MediaBlob


def error_from_response(resp: httpx.Response) -> TriageError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("error") or resp.reason_phrase or f"HTTP {resp.status_code}"
    cls = ERRORS_BY_CODE.get(body.get("code"), TriageError)
    err = cls(message)
    if cls is TriageError:
        err.status_code = resp.status_code
        err.code = body.get("code") or err.code
    return err


class TriageApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict | None = None,
        cookies: dict | None = None,
        timeout: float = 30,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            headers=headers,
            cookies=cookies,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> TriageApiClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = await self._client.request(method, path, **kwargs)
        if resp.status_code >= 400:
            err = error_from_response(resp)
            logger.debug("{} {} -> {} {}", method, path, resp.status_code, err.code)
            raise err
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ── Storage ──────────────────────────────────────────────────────

    async def presign_upload(
        self, filename: str, content_type: str, size_bytes: int, category: str = "bug-reports"
    ) -> str:
        data = await self._request(
            "POST",
            "/api/uploads/presign",
            json={
                "filename": filename,
                "content_type": content_type,
                "size_bytes": size_bytes,
                "category": category,
            },
        )
        return data["upload_key"]

    async def upload_blob(self, upload_key: str, blob: MediaBlob) -> str:
        data = await self._request(
            "PUT",
            f"/api/uploads/{quote(upload_key)}",
            content=blob.data,
            headers={"Content-Type": blob.content_type},
        )
        return data["public_url"]

    # ── Reporter ─────────────────────────────────────────────────────

    async def create_report(self, fields: dict) -> dict:
        return await self._request("POST", "/api/reports", json=fields)

    async def list_my_reports(self) -> list[dict]:
        return await self._request("GET", "/api/reports/mine")

    async def get_report_with_messages(self, report_id: int) -> dict:
        """{report, messages, satisfaction}"""
        return await self._request("GET", f"/api/reports/{report_id}")

    async def list_messages(self, report_id: int) -> list[dict]:
        return await self._request("GET", f"/api/reports/{report_id}/messages")

    async def add_message(self, report_id: int, text: str) -> dict:
        return await self._request(
            "POST", f"/api/reports/{report_id}/messages", json={"message": text}
        )

    async def submit_satisfaction(
        self, report_id: int, rating: str, feedback: str | None = None
    ) -> dict:
        return await self._request(
            "POST",
            f"/api/reports/{report_id}/satisfaction",
            json={"rating": rating, "feedback": feedback},
        )

    async def get_latest_analysis(self, report_id: int, *, staff: bool = False) -> dict | None:
        prefix = "/api/admin/reports" if staff else "/api/reports"
        return await self._request("GET", f"{prefix}/{report_id}/analysis")

    async def list_notifications(self, *, unread: bool = False) -> list[dict]:
        params = {"unread": "true"} if unread else None
        return await self._request("GET", "/api/notifications", params=params)

    # ── Staff ────────────────────────────────────────────────────────

    async def list_reports(self, status: str | None = None) -> list[dict]:
        params = {"status": status} if status else None
        return await self._request("GET", "/api/admin/reports", params=params)

    async def update_report(
        self, report_id: int, *, status: str | None = None, admin_notes: str | None = None
    ) -> dict:
        body = {k: v for k, v in (("status", status), ("admin_notes", admin_notes)) if v is not None}
        return await self._request("PATCH", f"/api/admin/reports/{report_id}", json=body)

    async def assign_report(self, report_id: int, assignee_id: int) -> dict:
        return await self._request(
            "PUT", f"/api/admin/reports/{report_id}/assignee", json={"assignee_id": assignee_id}
        )

    async def archive_report(self, report_id: int) -> dict:
        return await self._request("DELETE", f"/api/admin/reports/{report_id}")

    async def start_analysis_job(
        self, report_id: int, *, include_screenshot: bool = False, include_video: bool = False
    ) -> dict:
        return await self._request(
            "POST",
            f"/api/admin/reports/{report_id}/analyze",
            json={"include_screenshot": include_screenshot, "include_video": include_video},
        )

    async def list_analyses(self, report_id: int) -> list[dict]:
        return await self._request("GET", f"/api/admin/reports/{report_id}/analyses")
