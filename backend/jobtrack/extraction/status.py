"""Stage 3: AI gate and status classification.

The model is asked to answer in a fixed two-line grammar::

    Status: <one of the categories, or SKIP>
    Description: <one or two sentences>

Each line is extracted independently and a missing line never raises. A
classifier failure degrades to a low-confidence ``Applied`` status so that an
outage never stops ingestion.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final, Optional, Union

import structlog

from jobtrack.extraction.llm import LLMProvider, LLMUsage, complete_with_timeout

logger = structlog.get_logger(__name__)


class StatusCategory(str, Enum):
    APPLIED = "Applied"
    UNDER_REVIEW = "Under Review"
    INTERVIEW_SCHEDULED = "Interview Scheduled"
    TECHNICAL_INTERVIEW = "Technical Interview"
    FINAL_ROUND = "Final Round"
    OFFER_RECEIVED = "Offer Received"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"
    FOLLOW_UP_REQUIRED = "Follow-up Required"


_CATEGORY_LOOKUP: dict[str, StatusCategory] = {c.value.lower(): c for c in StatusCategory}


@dataclass(frozen=True)
class StatusResult:
    category: StatusCategory
    description: str
    ai_generated: bool


class _Reject:
    """Sentinel type: the classifier says this message is not an application."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "REJECT"


REJECT: Final = _Reject()

StatusOutcome = Union[StatusResult, _Reject]

DEFAULT_DESCRIPTION = "Application status determined by AI"
UNAVAILABLE_RESULT = StatusResult(
    category=StatusCategory.APPLIED,
    description="Status analysis unavailable",
    ai_generated=False,
)

_STATUS_LINE_RE = re.compile(r"^\s*\**\s*Status\s*\**\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_DESCRIPTION_LINE_RE = re.compile(
    r"^\s*\**\s*Description\s*\**\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE
)
_SKIP_TOKEN_RE = re.compile(r"^skip\b", re.IGNORECASE)
_STATUS_TRIM = " \t\"'`*[]()<>."
_DESCRIPTION_TRIM = " \t\"'`*"


def build_status_prompt(subject: str, sender: str, body: str, body_chars: int = 1000) -> str:
    """Prompt that both gates (application vs. noise) and classifies."""
    categories = "\n".join(f'    - "{c.value}"' for c in StatusCategory)
    return f"""Analyze this email to determine if it is about a job application that the user has submitted to a specific company.

Subject: {subject}
From: {sender}
Body: {(body or "")[:body_chars]}

VALID application emails:
    - "Thank you for applying to [Company]" or "[Company] has received your application"
    - "Your application with [Company]" or "Application Received"
    - Interview invitations or scheduling from a specific company
    - Rejections from a company the user applied to
    - Status updates, next steps, offers, or requests for more information

NOT application emails (answer SKIP):
    - Job board notifications such as "5 new jobs for you" or "jobs matching your search"
    - General job postings such as "Now hiring" or "Join our team"
    - Newsletters, career tips, or promotional emails from job sites
    - Emails listing several jobs or several companies

If it IS about an application the user submitted, choose exactly one status:
{categories}

If it is NOT about an actual application, answer:
Status: SKIP
Description: Not an application-related email

Respond in this exact format:
Status: [STATUS or SKIP]
Description: [Brief 1-2 sentence description]
"""


def _clean_value(value: str, chars: str) -> str:
    return value.strip().strip(chars).strip()


def parse_status_response(text: str) -> StatusOutcome:
    """Parse the two-line answer. Never raises."""
    text = text or ""
    status_match = _STATUS_LINE_RE.search(text)
    desc_match = _DESCRIPTION_LINE_RE.search(text)

    raw_status = _clean_value(status_match.group(1), _STATUS_TRIM) if status_match else ""
    description = _clean_value(desc_match.group(1), _DESCRIPTION_TRIM) if desc_match else ""
    description = description or DEFAULT_DESCRIPTION

    if _SKIP_TOKEN_RE.match(raw_status):
        return REJECT

    if not raw_status:
        return StatusResult(StatusCategory.APPLIED, description, ai_generated=True)

    category = _CATEGORY_LOOKUP.get(raw_status.lower())
    if category is None:
        logger.info("status_category_coerced", raw_status=raw_status[:60])
        return StatusResult(StatusCategory.APPLIED, description, ai_generated=False)
    return StatusResult(category, description, ai_generated=True)


def classify_status(
    provider: Optional[LLMProvider],
    subject: str,
    sender: str,
    body: str,
    *,
    body_chars: int = 1000,
    timeout_sec: int = 45,
    usage: Optional[LLMUsage] = None,
) -> StatusOutcome:
    """Ask the model whether this is an application email and, if so, its status.

    Returns :data:`REJECT` when the model says the message is noise. Any
    provider failure (or no provider at all) yields :data:`UNAVAILABLE_RESULT`.
    """
    if provider is None:
        return UNAVAILABLE_RESULT

    prompt = build_status_prompt(subject, sender, body, body_chars)
    try:
        completion = complete_with_timeout(provider, prompt, timeout_sec=timeout_sec)
        if usage is not None:
            usage.add(completion)
        return parse_status_response(completion.text)
    except Exception as exc:
        logger.warning("status_classifier_unavailable", error=str(exc), subject=subject[:80])
        return UNAVAILABLE_RESULT
