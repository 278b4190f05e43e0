"""Dashboard statistics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from jobtrack.database import get_db
from jobtrack.models import ApplicationRecord, ScanRun
from jobtrack.schemas import ApplicationOut, ScanRunOut, StatsOut, StatusCount

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsOut)
def get_stats(db: Session = Depends(get_db)) -> StatsOut:
    """Return dashboard statistics: totals, status breakdown, recent records and scans."""
    total = db.query(func.count(ApplicationRecord.message_id)).scalar() or 0

    # Status breakdown
    status_rows = (
        db.query(ApplicationRecord.status_category, func.count(ApplicationRecord.message_id))
        .group_by(ApplicationRecord.status_category)
        .all()
    )
    status_breakdown = [StatusCount(status=s, count=c) for s, c in status_rows]

    ai_generated = (
        db.query(func.count(ApplicationRecord.message_id))
        .filter(ApplicationRecord.status_ai_generated == True)  # noqa: E712
        .scalar()
        or 0
    )

    # Recent records (last 10)
    recent = (
        db.query(ApplicationRecord)
        .order_by(ApplicationRecord.created_at.desc())
        .limit(10)
        .all()
    )

    recent_scans = db.query(ScanRun).order_by(ScanRun.id.desc()).limit(5).all()

    return StatsOut(
        total_applications=total,
        status_breakdown=status_breakdown,
        ai_generated_count=ai_generated,
        recent_applications=[ApplicationOut.model_validate(a) for a in recent],
        recent_scans=[ScanRunOut.model_validate(s) for s in recent_scans],
    )
