from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from . import db
from .models import JobRun

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "__global__"


def normalize_scope(scope: Optional[str]) -> str:
    cleaned = (scope or "").strip()
    return cleaned or GLOBAL_SCOPE


@dataclass
class JobTracker:
    run_id: uuid.UUID
    job_name: str
    processed_count: int = 0
    details: dict = field(default_factory=dict)


def _finish(run_id: uuid.UUID, status: str, processed_count: int, details: dict, error: Optional[str] = None) -> None:
    with db.session_scope() as session:
        run = session.get(JobRun, run_id)
        if run is None:
            return
        run.status = status
        run.processed_count = processed_count
        run.finished_at = db.utc_now()
        run.details = details or None
        if error is not None:
            run.error = error[:4000]


@contextmanager
def track_job(job_name: str, scope: Optional[str] = None, details: Optional[dict] = None) -> Iterator[JobTracker]:
    """Record one batch run in job_runs.

    The run row is committed in its own transaction before the work starts, and the outcome is
    written in another one, so a failing batch still leaves a ``failed`` row behind.
    """
    with db.session_scope() as session:
        run = JobRun(job_name=job_name, scope=normalize_scope(scope), status="running", details=details)
        session.add(run)
        session.flush()
        tracker = JobTracker(run_id=run.id, job_name=job_name, details=dict(details or {}))

    try:
        yield tracker
    except Exception as exc:
        logger.warning("Job %s failed: %s", job_name, exc)
        _finish(tracker.run_id, "failed", tracker.processed_count, tracker.details, error=str(exc) or repr(exc))
        raise
    _finish(tracker.run_id, "success", tracker.processed_count, tracker.details)


def recent_jobs(session: Session, limit: int = 20, job_name: Optional[str] = None) -> list[JobRun]:
    stmt = select(JobRun).order_by(desc(JobRun.started_at)).limit(limit)
    if job_name:
        stmt = stmt.where(JobRun.job_name == job_name)
    return list(session.execute(stmt).scalars().all())


def serialize_job(run: JobRun) -> dict:
    return {
        "id": str(run.id),
        "job_name": run.job_name,
        "scope": run.scope,
        "status": run.status,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        "processed_count": run.processed_count,
        "details": run.details,
        "error": run.error,
    }
