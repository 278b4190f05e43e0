"""Regex-based extraction of company name and position.

Both extractors are ordered fallbacks and always return a displayable value:
``"Unknown Company"`` / ``"Unknown Position"`` when nothing matches.
"""

from __future__ import annotations

import re
from typing import Iterable

import structlog

from jobtrack.filtering.patterns import (
    ATS_SENDER_DOMAINS,
    COMMON_TITLE_NOUNS,
    COMPANY_SUFFIX_RE,
    CONSUMER_MAIL_DOMAINS,
    SENDER_NOISE_RE,
    SENDER_SUBDOMAIN_PREFIXES,
)
from jobtrack.mail.parser import sender_domain

logger = structlog.get_logger(__name__)

UNKNOWN_COMPANY = "Unknown Company"
UNKNOWN_POSITION = "Unknown Position"

_MAX_POSITION_LEN = 120

# ── Company extraction ────────────────────────────────────

_ANGLE_BLOCK_RE = re.compile(r"<.*?>")


def _company_from_domain(domain: str) -> str:
    labels = [label for label in domain.split(".") if label]
    while len(labels) > 2 and labels[0] in SENDER_SUBDOMAIN_PREFIXES:
        labels = labels[1:]
    return labels[0] if labels else ""


def extract_company(sender: str, subject: str = "") -> str:
    """Derive the employer from the sender.

    A non-webmail, non-ATS sender domain wins (its first label); otherwise the
    display name is used with no-reply tokens and recruiting suffixes removed.
    *subject* is accepted for call-site symmetry and currently unused.
    """
    sender = sender or ""
    company = _ANGLE_BLOCK_RE.sub("", sender)
    company = SENDER_NOISE_RE.sub("", company)
    company = company.strip(" \t\"'-_|,:")

    domain = sender_domain(sender)
    if domain and not any(token in domain for token in CONSUMER_MAIL_DOMAINS + ATS_SENDER_DOMAINS):
        company = _company_from_domain(domain)
    elif "@" in company:
        # Bare webmail address with no display name.
        company = ""

    company = COMPANY_SUFFIX_RE.sub("", company).strip()
    return company or UNKNOWN_COMPANY


# ── Position extraction ───────────────────────────────────

_WORD = r"[\w/&+#\-]+"

# (pattern, cut at the last "for") in priority order. Labelled captures are
# kept as written; only the free-form "... role" captures are cut.
POSITION_PATTERNS: list[tuple[re.Pattern[str], bool]] = [
    (re.compile(rf"\b(?:position|job title)\s*:\s*((?:{_WORD}\s*){{1,8}})", re.IGNORECASE), False),
    (re.compile(rf"\brole\s*:\s*((?:{_WORD}\s*){{1,8}})", re.IGNORECASE), False),
    (re.compile(rf"\bfor\s+((?:{_WORD}\s+){{1,6}}?)(?:position|role|job)\b", re.IGNORECASE), True),
    (re.compile(rf"((?:{_WORD}\s+){{1,4}}?)(?:position|role|job)\b", re.IGNORECASE), True),
]

TITLE_NOUN_RE = re.compile(
    r"\b(" + "|".join(re.escape(t) for t in COMMON_TITLE_NOUNS) + r")\b", re.IGNORECASE
)

_LEADING_FILLER = {
    "the", "a", "an", "our", "your", "this", "that", "its", "their", "my",
    "open", "new", "current", "following", "to", "of",
}
_TRAILING_STOP = {
    "at", "in", "with", "from", "and", "location", "department", "team",
    "has", "have", "was", "is", "will", "which", "that", "we", "you",
}
_INVALID_POSITIONS = {
    "application", "applications", "job", "jobs", "position", "role",
    "unknown", "n/a", "none", "applying", "applied",
}
# Sentence words that never open a title ("experience in a similar role",
# "applying to this job").
_NON_TITLE_HEADS = {
    "applying", "applied", "apply", "experience", "similar", "interest",
    "interested", "considering", "consideration", "thank", "thanks",
}


def _clean_position(raw: str, trim_for: bool = False) -> str:
    words = raw.split()
    lowered = [w.lower() for w in words]
    if trim_for and "for" in lowered:
        cut = len(lowered) - 1 - lowered[::-1].index("for")
        words = words[cut + 1 :]

    while words and words[0].lower() in _LEADING_FILLER:
        words = words[1:]
    if words and words[0].lower() in _NON_TITLE_HEADS:
        return ""

    kept: list[str] = []
    for word in words:
        if kept and word.lower() in _TRAILING_STOP:
            break
        kept.append(word)

    value = " ".join(kept).strip(" -/&+")
    if not value or value.lower() in _INVALID_POSITIONS or value.lower() in _LEADING_FILLER:
        return ""
    return value[:_MAX_POSITION_LEN].rstrip()


def _first_clean(matches: Iterable[re.Match[str]], trim_for: bool) -> str:
    for match in matches:
        value = _clean_position(match.group(1), trim_for)
        if value:
            return value
    return ""


def extract_position(subject: str, body: str) -> str:
    """Extract a position title, first matching pattern wins."""
    combined = f"{subject or ''} | {body or ''}"

    for pattern, trim_for in POSITION_PATTERNS:
        value = _first_clean(pattern.finditer(combined), trim_for)
        if value:
            return value

    match = TITLE_NOUN_RE.search(combined)
    if match:
        return match.group(1).strip()

    return UNKNOWN_POSITION
