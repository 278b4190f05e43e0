"""Message types exchanged with a mailbox source."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass(frozen=True)
class MessageRef:
    """Handle returned by a listing; ``id`` is stable across repeated fetches."""

    id: str


@dataclass(frozen=True)
class RawMessage:
    """A fetched message with a whitespace-normalized plain-text body."""

    id: str
    subject: str
    sender: str
    sent_at: Optional[datetime]
    body_text: str


class MessageSource(Protocol):
    """Read-only mailbox collaborator used by the scan orchestrator."""

    def list(self, since: datetime, query: str) -> list[MessageRef]: ...

    def fetch(self, ref: MessageRef) -> RawMessage: ...
