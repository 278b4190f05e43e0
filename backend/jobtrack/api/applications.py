"""Read and manual-correction endpoints for application records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from jobtrack.database import get_db
from jobtrack.models import ApplicationRecord
from jobtrack.records import STATUS_SOURCE_MANUAL
from jobtrack.schemas import ApplicationListOut, ApplicationOut, ApplicationStatusUpdate

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/applications", tags=["applications"])

_SORTABLE = {"created_at", "updated_at", "sent_at", "company", "status_category"}


@router.get("", response_model=ApplicationListOut)
def list_applications(
    status: Optional[str] = Query(None, description="Filter by status category"),
    company: Optional[str] = Query(None, description="Search company name"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    sort_by: str = Query("sent_at", description="Sort field"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$", description="Sort order"),
    db: Session = Depends(get_db),
) -> ApplicationListOut:
    """List application records with optional filtering, sorting, and pagination."""
    query = db.query(ApplicationRecord)

    if status:
        query = query.filter(ApplicationRecord.status_category == status)
    if company:
        query = query.filter(ApplicationRecord.company.ilike(f"%{company}%"))

    total = query.count()

    sort_column = getattr(ApplicationRecord, sort_by if sort_by in _SORTABLE else "sent_at")
    if sort_order == "desc":
        query = query.order_by(sort_column.desc())
    else:
        query = query.order_by(sort_column.asc())

    offset = (page - 1) * page_size
    items = query.offset(offset).limit(page_size).all()

    return ApplicationListOut(
        items=[ApplicationOut.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{message_id}", response_model=ApplicationOut)
def get_application(message_id: str, db: Session = Depends(get_db)) -> ApplicationOut:
    record = db.get(ApplicationRecord, message_id)
    if not record:
        raise HTTPException(status_code=404, detail="Application not found")
    return ApplicationOut.model_validate(record)


@router.patch("/{message_id}", response_model=ApplicationOut)
def update_application_status(
    message_id: str,
    body: ApplicationStatusUpdate,
    db: Session = Depends(get_db),
) -> ApplicationOut:
    """Manually correct the status of a record.

    The record is marked as manually sourced, so later scans refresh its
    other fields but keep this status.
    """
    record = db.get(ApplicationRecord, message_id)
    if not record:
        raise HTTPException(status_code=404, detail="Application not found")

    old_status = record.status_category
    record.status_category = body.status.value
    if body.description is not None:
        record.status_description = body.description
    record.status_ai_generated = False
    record.status_source = STATUS_SOURCE_MANUAL
    record.updated_at = datetime.now(timezone.utc)
    db.flush()

    logger.info(
        "application_status_updated",
        message_id=message_id,
        old=old_status,
        new=record.status_category,
    )
    return ApplicationOut.model_validate(record)
