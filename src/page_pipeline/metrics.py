from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, select

from .db import session_scope, utc_now
from .models import Business, GeneratedPage, JobRun, Update


def collect_metrics(now: Optional[datetime] = None) -> dict:
    moment = now or utc_now()
    live_condition = and_(
        GeneratedPage.published.is_(True),
        GeneratedPage.expired.is_(False),
        or_(GeneratedPage.expires_at.is_(None), GeneratedPage.expires_at > moment),
    )
    with session_scope() as session:
        page_totals = session.execute(
            select(
                func.count(GeneratedPage.id),
                func.sum(case((GeneratedPage.published.is_(False), 1), else_=0)),
                func.sum(case((live_condition, 1), else_=0)),
                func.sum(case((GeneratedPage.expired.is_(True), 1), else_=0)),
                func.sum(
                    case(
                        (
                            and_(
                                GeneratedPage.published.is_(True),
                                GeneratedPage.expired.is_(False),
                                GeneratedPage.expires_at <= moment,
                            ),
                            1,
                        ),
                        else_=0,
                    )
                ),
                func.sum(GeneratedPage.rendered_size_kb),
            )
        ).first()

        intent_rows = session.execute(
            select(
                GeneratedPage.intent_type,
                func.count(GeneratedPage.id),
                func.sum(case((live_condition, 1), else_=0)),
            )
            .group_by(GeneratedPage.intent_type)
            .order_by(GeneratedPage.intent_type)
        ).all()

        update_status_rows = session.execute(
            select(Update.status, func.count(Update.id)).group_by(Update.status)
        ).all()

        business_total = session.execute(select(func.count(Business.id))).scalar() or 0
        batch_total = session.execute(
            select(func.count(func.distinct(GeneratedPage.generation_batch_id)))
        ).scalar() or 0

        recent_jobs = session.execute(
            select(JobRun.job_name, JobRun.status, JobRun.started_at, JobRun.finished_at, JobRun.processed_count)
            .order_by(JobRun.started_at.desc())
            .limit(10)
        ).all()

    pages_total = int(page_totals[0] or 0)
    drafts = int(page_totals[1] or 0)
    live = int(page_totals[2] or 0)
    expired = int(page_totals[3] or 0)

    return {
        "pages": {
            "total": pages_total,
            "draft": drafts,
            "live": live,
            "expired": expired,
            # Published and past expires_at but not yet swept.
            "pending_expiry": int(page_totals[4] or 0),
            "rendered_size_kb": int(page_totals[5] or 0),
            "batches": int(batch_total),
        },
        "intents": {
            intent: {"total": int(total or 0), "live": int(live_count or 0)}
            for intent, total, live_count in intent_rows
        },
        "updates": {status: int(count) for status, count in update_status_rows},
        "businesses": int(business_total),
        "recent_jobs": [
            {
                "job_name": job_name,
                "status": status,
                "started_at": started_at.isoformat() if started_at else None,
                "finished_at": finished_at.isoformat() if finished_at else None,
                "processed_count": processed_count,
            }
            for job_name, status, started_at, finished_at, processed_count in recent_jobs
        ],
    }
