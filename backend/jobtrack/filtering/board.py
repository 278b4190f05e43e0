"""Stage 2: catch job-board digests and newsletters that slipped past the subject filter."""

from __future__ import annotations

from typing import Optional

import structlog

from jobtrack.filtering.patterns import (
    AGGREGATION_PHRASES,
    BOARD_MARKETING_PATTERNS,
    COMPANY_SUFFIX_DENSITY_RE,
    EXTENDED_JOB_BOARD_DOMAINS,
    JOB_TITLE_DENSITY_RE,
    MAX_COMPANY_SUFFIX_MENTIONS,
    MAX_JOB_TITLE_MENTIONS,
)
from jobtrack.mail.parser import sender_domain

logger = structlog.get_logger(__name__)


def count_density(text: str) -> tuple[int, int]:
    """Return (job-title mentions, company-suffix mentions) in *text*.

    A single application email talks about one role at one company; a digest
    repeats these words once per listing.
    """
    return (
        len(JOB_TITLE_DENSITY_RE.findall(text)),
        len(COMPANY_SUFFIX_DENSITY_RE.findall(text)),
    )


def board_noise_reason(subject: str, sender: str, body: str) -> Optional[str]:
    """Name the first check that marks this message as board noise, or None."""
    sender_key = sender_domain(sender) or (sender or "").lower()
    combined = f"{subject or ''} {sender or ''} {body or ''}".lower()

    if any(domain in sender_key for domain in EXTENDED_JOB_BOARD_DOMAINS):
        return "domain"

    if any(pattern.search(combined) for pattern in BOARD_MARKETING_PATTERNS):
        return "marketing"

    titles, suffixes = count_density(combined)
    if titles > MAX_JOB_TITLE_MENTIONS or suffixes > MAX_COMPANY_SUFFIX_MENTIONS:
        return "density"

    if any(phrase in combined for phrase in AGGREGATION_PHRASES):
        return "aggregation"

    return None


def is_board_noise(subject: str, sender: str, body: str) -> bool:
    reason = board_noise_reason(subject, sender, body)
    if reason is not None:
        logger.debug("board_noise", subject=(subject or "")[:80], reason=reason)
        return True
    return False
