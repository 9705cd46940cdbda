"""Check recent job runs."""
from __future__ import annotations
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from page_pipeline.db import session_scope
from page_pipeline.jobs import recent_jobs

with session_scope() as session:
    runs = recent_jobs(session, limit=15)

    print(f"{'Job Name':<20} {'Status':<10} {'Started At':<34} {'Processed':<10} {'Scope'}")
    print("-" * 100)
    for run in runs:
        print(
            f"{run.job_name:<20} {run.status:<10} {str(run.started_at):<34} "
            f"{run.processed_count or 0:<10} {run.scope or ''}"
        )
        if run.error:
            print(f"  error: {run.error[:200]}")
