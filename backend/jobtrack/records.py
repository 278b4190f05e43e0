"""Idempotent persistence of accepted application records."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from sqlalchemy.orm import Session, sessionmaker

from jobtrack.extraction.status import StatusResult
from jobtrack.models import ApplicationRecord, ScanRun

logger = structlog.get_logger(__name__)

STATUS_SOURCE_CLASSIFIER = "classifier"
STATUS_SOURCE_MANUAL = "manual"
RECORD_SOURCE = "mailbox"


@dataclass(frozen=True)
class ApplicationDraft:
    """Everything the pipeline knows about an accepted message."""

    message_id: str
    subject: str
    sender: str
    sent_at: Optional[datetime]
    company: str
    position: str
    status: StatusResult
    body_excerpt: str
    source: str = RECORD_SOURCE


class RecordSink(Protocol):
    """Keyed create-or-update of application records."""

    def upsert(self, message_id: str, draft: ApplicationDraft) -> bool: ...


def apply_draft(record: ApplicationRecord, draft: ApplicationDraft) -> None:
    """Copy *draft* onto *record*, keeping a manually edited status."""
    record.subject = draft.subject
    record.sender = draft.sender
    record.sent_at = draft.sent_at
    record.company = draft.company
    record.position = draft.position
    record.source = draft.source
    record.body_excerpt = draft.body_excerpt
    if record.status_source != STATUS_SOURCE_MANUAL:
        record.status_category = draft.status.category.value
        record.status_description = draft.status.description
        record.status_ai_generated = draft.status.ai_generated
        record.status_source = STATUS_SOURCE_CLASSIFIER
    record.updated_at = datetime.now(timezone.utc)


class SQLRecordSink:
    """:class:`RecordSink` over a SQLAlchemy session factory.

    Each upsert runs in its own short transaction. Writes are serialized
    with a lock so concurrent scan workers never race on the same key;
    the last writer wins.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._lock = threading.Lock()

    def upsert(self, message_id: str, draft: ApplicationDraft) -> bool:
        """Create or merge the record for *message_id*. Returns True when created."""
        with self._lock:
            session = self._session_factory()
            try:
                record = session.get(ApplicationRecord, message_id)
                created = record is None
                if record is None:
                    record = ApplicationRecord(
                        message_id=message_id,
                        status_source=STATUS_SOURCE_CLASSIFIER,
                    )
                    session.add(record)
                apply_draft(record, draft)
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        logger.info(
            "record_created" if created else "record_updated",
            message_id=message_id,
            company=draft.company,
            status=draft.status.category.value,
        )
        return created


def record_scan_run(
    session_factory: sessionmaker[Session],
    *,
    days_back: int,
    candidates: int,
    persisted: int,
    filtered_out: int,
    failed: int,
    started_at: datetime,
) -> ScanRun:
    """Store the aggregate outcome of a finished scan."""
    session = session_factory()
    try:
        run = ScanRun(
            days_back=days_back,
            candidates=candidates,
            persisted=persisted,
            filtered_out=filtered_out,
            failed=failed,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        session.add(run)
        session.commit()
        session.refresh(run)
        session.expunge(run)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    logger.info("scan_run_recorded", scan_run_id=run.id, persisted=persisted)
    return run
