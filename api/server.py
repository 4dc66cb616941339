"""Hiring funnel dashboard API server."""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.auth_session import COOKIE_NAME, SessionStore
from skills.hiring_funnel.cache import ResultCache
from skills.hiring_funnel.config import Settings, load_settings
from skills.hiring_funnel.jobs import load_jobs, select_jobs
from skills.hiring_funnel.metrics import combine_months
from skills.hiring_funnel.months import resolve_windows
from skills.hiring_funnel.pipeline import build_limiter, generate_monthly_metrics
from skills.hiring_funnel.rate_limit import TokenBucket
from skills.hiring_funnel.sources.ats_http import AtsClient
from skills.hiring_funnel.sources.count_source import RemoteCountSource
from skills.hiring_funnel.types import FailureKind

logger = logging.getLogger(__name__)


class TokenRequest(BaseModel):
    token: str


class MetricsRequest(BaseModel):
    job_ids: list[str] = []
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    combine: bool = False


app = FastAPI(title="Hiring Funnel API", version="0.1.0")
# Replaced in tests with an httpx.MockTransport.
app.state.ats_transport = None

allowed_origins_raw = os.getenv("ALLOWED_ORIGINS", "*").strip()
if allowed_origins_raw == "*" or not allowed_origins_raw:
    allowed_origins = ["*"]
else:
    allowed_origins = [item.strip() for item in allowed_origins_raw.split(",") if item.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _settings() -> Settings:
    try:
        return load_settings()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _sessions() -> SessionStore:
    store = getattr(app.state, "sessions", None)
    if store is None:
        store = SessionStore.from_env()
        app.state.sessions = store
    return store


def _result_cache(settings: Settings) -> ResultCache:
    # One cache per process; keys carry the credential fingerprint.
    cache = getattr(app.state, "result_cache", None)
    if cache is None:
        cache = ResultCache(settings.cache_ttl_seconds)
        app.state.result_cache = cache
    return cache


def _rate_limiter(settings: Settings) -> TokenBucket:
    # Concurrent runs draw from one request budget against the ATS.
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter is None:
        limiter = build_limiter(settings)
        app.state.rate_limiter = limiter
    return limiter


def _is_cookie_secure(request: Request) -> bool:
    configured = os.getenv("COOKIE_SECURE", "").strip().lower()
    if configured in {"true", "1", "yes"}:
        return True
    if configured in {"false", "0", "no"}:
        return False
    proto = request.headers.get("x-forwarded-proto", request.url.scheme).split(",")[0].strip().lower()
    return proto == "https"


def _require_token(request: Request) -> tuple[str, str]:
    session = _sessions().token_for_cookie(request.cookies.get(COOKIE_NAME, ""))
    if not session:
        raise HTTPException(status_code=401, detail="ATS is not connected. Provide a token and try again.")
    return session


async def _probe_token(token: str, settings: Settings) -> Optional[FailureKind]:
    async with AtsClient(
        token,
        base_url=settings.api_base_url,
        org_id=settings.org_id,
        timeout_seconds=settings.request_timeout_seconds,
        transport=app.state.ats_transport,
    ) as client:
        result = await RemoteCountSource(client).probe()
    return result.failure


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/auth/status")
def auth_status(request: Request) -> dict[str, bool]:
    session = _sessions().token_for_cookie(request.cookies.get(COOKIE_NAME, ""))
    return {"connected": session is not None}


@app.post("/api/auth/token")
async def auth_token(payload: TokenRequest, request: Request) -> JSONResponse:
    token = payload.token.strip()
    if not token:
        raise HTTPException(status_code=400, detail="token is required")

    failure = await _probe_token(token, _settings())
    if failure is FailureKind.AUTH:
        raise HTTPException(status_code=401, detail="ATS rejected the token")
    if failure is FailureKind.TRANSPORT:
        logger.warning("[AUTH] probe transport failure; storing token unverified")

    store = _sessions()
    session_id = store.store_token(token)
    response = JSONResponse({"connected": True, "verified": failure is None})
    response.set_cookie(
        key=COOKIE_NAME,
        value=store.cookie_value(session_id),
        httponly=True,
        secure=_is_cookie_secure(request),
        samesite="lax",
        max_age=store.ttl_seconds,
        path="/",
    )
    return response


@app.post("/api/auth/logout")
def auth_logout(request: Request) -> JSONResponse:
    store = _sessions()
    session_id = store.session_id_from_cookie(request.cookies.get(COOKIE_NAME, ""))
    if session_id:
        store.delete(session_id)
    response = JSONResponse({"ok": True})
    response.delete_cookie(key=COOKIE_NAME, path="/")
    return response


@app.get("/api/jobs")
def list_jobs() -> dict[str, list[dict[str, str]]]:
    settings = _settings()
    try:
        jobs = load_jobs(settings.jobs_path)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    ordered = sorted(jobs, key=lambda job: (job.name.lower(), job.id))
    return {"jobs": [{"id": job.id, "name": job.name} for job in ordered]}


@app.post("/api/metrics")
async def monthly_metrics(payload: MetricsRequest, request: Request) -> JSONResponse:
    session_id, token = _require_token(request)
    settings = _settings()
    try:
        windows = resolve_windows(payload.start_month, payload.end_month)
        jobs = select_jobs(load_jobs(settings.jobs_path), payload.job_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = await generate_monthly_metrics(
        jobs,
        token,
        settings=settings,
        cache=_result_cache(settings),
        windows=windows,
        transport=app.state.ats_transport,
        limiter=_rate_limiter(settings),
    )
    if payload.combine:
        result.combined = combine_months(result.months)

    body: dict[str, Any] = {"ok": True, **result.to_dict()}
    response = JSONResponse(body)
    if result.degraded.auth_degraded:
        logger.warning("[AUTH] credential rejected during run; clearing session")
        _sessions().delete(session_id)
        response.delete_cookie(key=COOKIE_NAME, path="/")
    return response
