"""SQLAlchemy ORM models for all database tables."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Shared declarative base for all models."""


class ApplicationRecord(Base):
    """One mailbox message that passed every classification stage.

    Keyed by the mailbox message id, so rescanning an overlapping window
    updates the row instead of creating another one.
    """

    __tablename__ = "application_records"

    message_id: Mapped[str] = mapped_column(String(200), primary_key=True)
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    sender: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    company: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    position: Mapped[str] = mapped_column(String(300), nullable=False)
    status_category: Mapped[str] = mapped_column(String(50), nullable=False, default="Applied", index=True)
    status_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status_ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 'classifier' or 'manual'; manual edits survive rescans
    status_source: Mapped[str] = mapped_column(String(20), nullable=False, default="classifier")
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="mailbox")
    body_excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<ApplicationRecord message_id={self.message_id!r} company={self.company!r} "
            f"position={self.position!r} status={self.status_category!r}>"
        )


class ScanRun(Base):
    """Aggregate outcome of one scan invocation."""

    __tablename__ = "scan_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    days_back: Mapped[int] = mapped_column(Integer, nullable=False)
    candidates: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    persisted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    filtered_out: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ScanRun id={self.id} persisted={self.persisted} filtered={self.filtered_out}>"
