"""Job catalogue loading (JSON or CSV)."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Iterable, Optional

from skills.hiring_funnel.types import Job


def _job_from_row(row: dict[str, Any]) -> Optional[Job]:
    job_id = str(row.get("JobId") or row.get("id") or "").strip()
    if not job_id:
        return None
    name = str(row.get("JobName") or row.get("name") or "").strip()
    return Job(id=job_id, name=name)


def load_jobs(path: str) -> list[Job]:
    """Read `[{"JobId": ..., "JobName": ...}]` JSON, or a CSV with the same columns.

    Rows without an id are skipped; duplicate ids keep the first row.
    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Jobs file not found: {resolved}")

    if resolved.suffix.lower() == ".csv":
        with resolved.open("r", encoding="utf-8", newline="") as f:
            rows: list[Any] = list(csv.DictReader(f))
    else:
        try:
            rows = json.loads(resolved.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid jobs JSON: {resolved}") from exc
        if isinstance(rows, dict):
            rows = rows.get("jobs", [])
        if not isinstance(rows, list):
            raise ValueError(f"Jobs JSON must be a list: {resolved}")

    jobs: list[Job] = []
    seen: set[str] = set()
    for row in rows:
        if not isinstance(row, dict):
            continue
        job = _job_from_row(row)
        if job is None or job.id in seen:
            continue
        seen.add(job.id)
        jobs.append(job)
    return jobs


def select_jobs(jobs: Iterable[Job], job_ids: Optional[Iterable[str]]) -> list[Job]:
    """Filter to `job_ids`, keeping catalogue order. None or empty means all jobs."""
    catalogue = list(jobs)
    wanted = {j.strip() for j in (job_ids or []) if j and j.strip()}
    if not wanted:
        return catalogue
    unknown = wanted - {job.id for job in catalogue}
    if unknown:
        raise ValueError(f"Unknown job ids: {', '.join(sorted(unknown))}")
    return [job for job in catalogue if job.id in wanted]
