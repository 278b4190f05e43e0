"""Scan trigger and result endpoints."""

from __future__ import annotations

import threading
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from jobtrack.api import get_app_config
from jobtrack.config import AppConfig
from jobtrack.database import get_session_factory
from jobtrack.errors import AuthorizationRequiredError
from jobtrack.extraction.pipeline import ScanSummary, scan_mailbox
from jobtrack.schemas import ScanRequest, ScanResultOut

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/scan", tags=["scan"])

# Simple in-memory lock to prevent concurrent scans
_scan_lock = threading.Lock()
_last_result: ScanResultOut | None = None


@router.post("", response_model=ScanResultOut)
def trigger_scan(
    body: Optional[ScanRequest] = None,
    config: AppConfig = Depends(get_app_config),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ScanResultOut:
    """Scan the mailbox for the last ``days_back`` days and persist application records.

    Returns how many records were persisted and how many candidates were
    filtered out. A missing or rejected mailbox authorization is reported as
    401 so the client can prompt for re-authentication.
    """
    global _last_result

    days_back = (body.days_back if body else None) or config.default_days_back

    if not _scan_lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="A scan is already in progress")

    try:
        logger.info("scan_triggered_via_api", days_back=days_back)
        summary: ScanSummary = scan_mailbox(config, session_factory, days_back)
    except AuthorizationRequiredError as exc:
        logger.warning("scan_authorization_required", error=str(exc))
        raise HTTPException(
            status_code=401,
            detail={"error": "authorization_required", "message": str(exc)},
        ) from exc
    except Exception as exc:
        logger.error("scan_error", error=str(exc))
        raise HTTPException(status_code=500, detail="Scan failed") from exc
    finally:
        _scan_lock.release()

    result = ScanResultOut(
        success=True,
        count=summary.persisted,
        filtered_out=summary.filtered_out,
        days_back=summary.days_back,
    )
    _last_result = result
    return result


@router.get("/last-result", response_model=ScanResultOut | None)
def get_last_scan_result() -> ScanResultOut | None:
    """Return the result of the most recent scan (in-memory, resets on server restart)."""
    return _last_result


@router.get("/running", response_model=dict)
def get_scan_running() -> dict:
    """Check if a scan is currently running."""
    return {"running": _scan_lock.locked()}
