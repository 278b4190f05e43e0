"""Stage 1: cheap subject/sender pre-filter run before any body fetch or AI call."""

from __future__ import annotations

from enum import Enum

import structlog

from jobtrack.filtering.patterns import (
    APPLICATION_CONTEXT_TOKENS,
    BIG_TECH_RE,
    JOB_BOARD_DOMAINS,
    SUBJECT_APPLICATION_PATTERNS,
    SUBJECT_SKIP_PATTERNS,
)
from jobtrack.mail.parser import sender_domain

logger = structlog.get_logger(__name__)


class Verdict(str, Enum):
    SKIP = "SKIP"
    ANALYZE = "ANALYZE"


def _mentions_several_big_employers(subject: str) -> bool:
    names = {m.group(1).lower() for m in BIG_TECH_RE.finditer(subject)}
    return len(names) >= 2


def classify_subject(subject: str, sender: str) -> Verdict:
    """Return ``ANALYZE`` only for subjects that look like one application's lifecycle.

    Anything that does not positively look like an application is skipped:
    a missed application is cheaper than a digest sent to the classifier.
    """
    subject_lower = (subject or "").lower()
    # Board names match the address domain, never the display name.
    sender_key = sender_domain(sender) or (sender or "").lower()

    for pattern in SUBJECT_SKIP_PATTERNS:
        if pattern.search(subject_lower):
            logger.debug("subject_skip_pattern", subject=subject[:80], pattern=pattern.pattern)
            return Verdict.SKIP

    if _mentions_several_big_employers(subject_lower):
        logger.debug("subject_skip_multi_employer", subject=subject[:80])
        return Verdict.SKIP

    if any(domain in sender_key for domain in JOB_BOARD_DOMAINS):
        logger.debug("subject_skip_board_sender", sender=sender)
        return Verdict.SKIP

    for pattern in SUBJECT_APPLICATION_PATTERNS:
        if pattern.search(subject_lower):
            return Verdict.ANALYZE

    if "application" in subject_lower and any(
        token in subject_lower for token in APPLICATION_CONTEXT_TOKENS
    ):
        return Verdict.ANALYZE

    return Verdict.SKIP
