"""Pydantic schemas for API request/response validation."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from jobtrack.extraction.status import StatusCategory


# ── Application schemas ───────────────────────────────────


class ApplicationOut(BaseModel):
    message_id: str
    subject: Optional[str] = None
    sender: Optional[str] = None
    sent_at: Optional[datetime] = None
    company: str
    position: str
    status_category: str
    status_description: str
    status_ai_generated: bool
    status_source: str
    source: str
    body_excerpt: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ApplicationListOut(BaseModel):
    items: List[ApplicationOut]
    total: int
    page: int
    page_size: int


class ApplicationStatusUpdate(BaseModel):
    """Manual status correction. Survives later rescans of the same message."""

    status: StatusCategory
    description: Optional[str] = Field(None, max_length=500)


# ── Scan schemas ──────────────────────────────────────────


class ScanRequest(BaseModel):
    """Request body for ``POST /api/scan``; omitting ``days_back`` uses the configured default."""

    days_back: Optional[int] = Field(None, ge=1, le=365)


class ScanResultOut(BaseModel):
    success: bool
    count: int
    filtered_out: int
    days_back: int


class ScanRunOut(BaseModel):
    id: int
    days_back: int
    candidates: int
    persisted: int
    filtered_out: int
    failed: int
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Stats schemas ─────────────────────────────────────────


class StatusCount(BaseModel):
    status: str
    count: int


class StatsOut(BaseModel):
    total_applications: int
    status_breakdown: List[StatusCount]
    ai_generated_count: int
    recent_applications: List[ApplicationOut]
    recent_scans: List[ScanRunOut]
