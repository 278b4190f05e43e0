"""Email MIME parsing: subject decoding, body extraction, whitespace normalization."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.header import decode_header, make_header
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from jobtrack.mail.message import RawMessage

# ── Noise detection tokens ────────────────────────────────
_CSS_NOISE_TOKENS = [
    "color:",
    "font-",
    "px",
    "{",
    "}",
    "margin",
    "padding",
    "z-index",
    "mso-",
    "a:visited",
]

_WHITESPACE_RE = re.compile(r"\s+")

_ANGLE_ADDRESS_RE = re.compile(r"<\s*([^<>@\s]+@([^<>\s]+))\s*>")
_BARE_ADDRESS_RE = re.compile(r"([\w.+\-]+@([\w\-]+(?:\.[\w\-]+)+))")


def sender_domain(sender: str) -> Optional[str]:
    """Return the lowercased domain of the address in a ``From`` value, or None."""
    sender = sender or ""
    match = _ANGLE_ADDRESS_RE.search(sender) or _BARE_ADDRESS_RE.search(sender)
    if not match:
        return None
    return match.group(2).lower().rstrip(".")


def looks_like_css(text: str, threshold: int = 2) -> bool:
    """Return True if *text* looks like leftover CSS rather than real content."""
    lowered = text.lower()
    hits = sum(1 for tok in _CSS_NOISE_TOKENS if tok in lowered)
    return hits >= threshold


def normalize_whitespace(text: str) -> str:
    """Collapse every run of whitespace (newlines included) to a single space."""
    return _WHITESPACE_RE.sub(" ", (text or "").replace("\u200b", " ")).strip()


# ── MIME helpers ──────────────────────────────────────────


def decode_mime_text(value: Optional[str]) -> str:
    """Decode a MIME-encoded header value to a plain string."""
    if not value:
        return ""
    try:
        return str(make_header(decode_header(value))).strip()
    except (LookupError, UnicodeError, ValueError):
        return value.strip()


def parse_date(date_raw: str) -> Optional[datetime]:
    """Parse a raw Date header into an aware UTC datetime, or None."""
    if not date_raw:
        return None
    try:
        dt = parsedate_to_datetime(date_raw)
    except (TypeError, ValueError, IndexError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ── Body extraction ───────────────────────────────────────


def _html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(" ", strip=True)


def _decode_part(part: Message) -> str:
    payload = part.get_payload(decode=True) or b""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def extract_body_text(msg: Message) -> str:
    """Extract the best plain-text representation of the message body.

    ``text/plain`` parts win unless they are mostly CSS leftovers, in which
    case the HTML parts are flattened instead. Attachments are ignored.
    """
    plain_parts: List[str] = []
    html_parts: List[str] = []

    parts = msg.walk() if msg.is_multipart() else [msg]
    for part in parts:
        if part.is_multipart():
            continue
        if "attachment" in str(part.get("Content-Disposition", "")).lower():
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain":
            plain_parts.append(_decode_part(part))
        elif ctype == "text/html":
            html_parts.append(_html_to_text(_decode_part(part)))

    plain_text = "\n".join(plain_parts)
    html_text = "\n".join(html_parts)

    if plain_text.strip() and not looks_like_css(plain_text):
        return normalize_whitespace(plain_text)
    return normalize_whitespace(html_text or plain_text)


# ── Top-level parser ─────────────────────────────────────


def parse_raw_message(message_id: str, msg: Message) -> RawMessage:
    """Turn a stdlib ``email.Message`` into an immutable :class:`RawMessage`."""
    return RawMessage(
        id=message_id,
        subject=decode_mime_text(msg.get("Subject", "")),
        sender=decode_mime_text(msg.get("From", "")),
        sent_at=parse_date(decode_mime_text(msg.get("Date", ""))),
        body_text=extract_body_text(msg),
    )
