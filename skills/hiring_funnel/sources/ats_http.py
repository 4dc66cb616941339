"""Async HTTP transport for the ATS filtered-count API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

import httpx

from skills.hiring_funnel.types import MonthWindow, StatusFilter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.turbohire.co/api"
DEFAULT_TIMEOUT_SECONDS = 30.0


class AtsAuthError(RuntimeError):
    """Raised on 401/403; the caller may need a fresh credential."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"ATS authentication failed ({status_code}): {detail[:300]}")
        self.status_code = status_code


class AtsRequestError(RuntimeError):
    """Raised for network errors, timeouts, non-2xx replies and unreadable bodies."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _short_request_id() -> str:
    return uuid.uuid4().hex[:8]


def _date_filter(window: MonthWindow) -> dict[str, Any]:
    return {
        "Value": {"StartDate": window.start_iso, "EndDate": window.end_iso},
        "FilterType": "IS_BETWEEN",
    }


def build_stage_count_payload(job_id: str, window: MonthWindow, status: StatusFilter) -> dict[str, Any]:
    """Minimal filtered-count body: one job, stage-change date range, status."""
    return {
        "JobIds": {"Value": [job_id], "FilterType": "EQUALS"},
        "StageChangedDate": _date_filter(window),
        "StageValue": int(status),
        "FetchOnlyActiveCandidates": status is StatusFilter.ACTIVE,
        "View": 1,
    }


def build_channel_count_payload(
    window: MonthWindow,
    source_category: str,
    source_name: str,
    status: StatusFilter,
) -> dict[str, Any]:
    return {
        "SourceV2": {
            "Value": {
                "SourceCategory": [source_category],
                "SourceName": [source_name] if source_name else None,
            },
            "FilterType": "EQUALS",
        },
        "Date": _date_filter(window),
        "StageValue": int(status),
        "FetchOnlyActiveCandidates": status is StatusFilter.ACTIVE,
        "ShowActive": True,
    }


class AtsClient:
    """Thin bearer-authenticated client. Use as an async context manager."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        org_id: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.org_id = org_id
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def __aenter__(self) -> "AtsClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, op: str, json_body: Optional[dict[str, Any]] = None) -> Any:
        request_id = _short_request_id()
        logger.debug("[ATS START] op=%s request_id=%s path=%s", op, request_id, path)
        started_at = time.monotonic()
        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.TimeoutException as exc:
            latency_ms = int((time.monotonic() - started_at) * 1000)
            logger.warning("[ATS ERROR] op=%s request_id=%s latency_ms=%s reason=timeout", op, request_id, latency_ms)
            raise AtsRequestError(f"ATS request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            latency_ms = int((time.monotonic() - started_at) * 1000)
            logger.warning("[ATS ERROR] op=%s request_id=%s latency_ms=%s reason=%s", op, request_id, latency_ms, exc)
            raise AtsRequestError(f"ATS request failed: {exc}") from exc

        latency_ms = int((time.monotonic() - started_at) * 1000)
        if response.status_code in {401, 403}:
            logger.warning(
                "[ATS ERROR] op=%s request_id=%s latency_ms=%s status=%s",
                op,
                request_id,
                latency_ms,
                response.status_code,
            )
            raise AtsAuthError(response.status_code, response.text)
        if response.status_code >= 300:
            logger.warning(
                "[ATS ERROR] op=%s request_id=%s latency_ms=%s status=%s",
                op,
                request_id,
                latency_ms,
                response.status_code,
            )
            raise AtsRequestError(
                f"ATS request failed ({response.status_code}): {response.text[:300]}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AtsRequestError("ATS response is not valid JSON", status_code=response.status_code) from exc

        logger.debug("[ATS END] op=%s request_id=%s latency_ms=%s", op, request_id, latency_ms)
        return payload

    async def filtered_count(self, job_id: str, payload: dict[str, Any], *, op: str) -> dict[str, Any]:
        data = await self._request("POST", f"v3/job/{job_id}/filteredcount", op=op, json_body=payload)
        if not isinstance(data, dict):
            raise AtsRequestError("ATS filtered-count response is not a JSON object")
        return data

    async def partial_jobs(self) -> Any:
        if not self.org_id:
            raise AtsRequestError("ATS org id is not configured")
        return await self._request("GET", f"org/{self.org_id}/jobs/partialdata", op="probe")
