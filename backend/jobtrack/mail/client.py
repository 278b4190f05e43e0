"""IMAP-backed message source with retry logic and per-thread connections."""

from __future__ import annotations

import email as email_lib
import imaplib
import socket
import threading
from datetime import datetime
from typing import List

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jobtrack.config import AppConfig
from jobtrack.errors import AuthorizationRequiredError, MessageFetchError
from jobtrack.filtering.patterns import SOURCE_EXCLUDED_SENDERS, SOURCE_SEARCH_KEYWORDS
from jobtrack.mail.message import MessageRef, RawMessage
from jobtrack.mail.parser import parse_raw_message

logger = structlog.get_logger(__name__)

# Transient errors worth retrying
_RETRYABLE = (
    imaplib.IMAP4.abort,
    socket.timeout,
    ConnectionResetError,
    ConnectionRefusedError,
)


def build_source_query() -> str:
    """Gmail search expression that pre-filters candidates at the source.

    Only an optimization: everything it lets through still goes through the
    subject pre-filter.
    """
    keywords = " OR ".join(f'"{kw}"' for kw in SOURCE_SEARCH_KEYWORDS)
    excluded = " ".join(f"-from:{sender}" for sender in SOURCE_EXCLUDED_SENDERS)
    return f"({keywords}) {excluded}"


def _imap_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _extract_rfc822(fetched: list) -> bytes | None:
    """Pull the message bytes out of an IMAP FETCH response."""
    for item in fetched or []:
        if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], bytes):
            return item[1]
    return None


class IMAPMessageSource:
    """Read-only :class:`~jobtrack.mail.message.MessageSource` over IMAP.

    imaplib connections are not thread-safe, so each worker thread lazily
    opens its own connection; :meth:`close` logs all of them out.

    Usage::

        with IMAPMessageSource(config) as source:
            refs = source.list(since, build_source_query())
            msg = source.fetch(refs[0])
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._local = threading.local()
        self._connections: list[imaplib.IMAP4_SSL] = []
        self._lock = threading.Lock()

    # ── Context manager ───────────────────────────────────
    def __enter__(self) -> "IMAPMessageSource":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Connection ────────────────────────────────────────
    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=15),
        reraise=True,
    )
    def _connect(self) -> imaplib.IMAP4_SSL:
        cfg = self._config
        if not cfg.has_mailbox_credentials:
            raise AuthorizationRequiredError(
                "No mailbox credentials configured. Please authenticate first."
            )

        logger.info("imap_connecting", host=cfg.imap_host, port=cfg.imap_port)
        mail = imaplib.IMAP4_SSL(cfg.imap_host, cfg.imap_port, timeout=cfg.imap_timeout_sec)
        try:
            mail.login(cfg.email_username, cfg.email_password.get_secret_value())
        except imaplib.IMAP4.error as exc:
            try:
                mail.logout()
            except (imaplib.IMAP4.error, OSError):
                pass
            raise AuthorizationRequiredError(f"Mailbox login rejected: {exc}") from exc

        status, _ = mail.select(cfg.email_folder, readonly=True)
        if status != "OK":
            mail.logout()
            raise RuntimeError(f"Cannot select folder: {cfg.email_folder}")
        logger.info("imap_folder_selected", folder=cfg.email_folder)
        return mail

    def _connection(self) -> imaplib.IMAP4_SSL:
        mail = getattr(self._local, "mail", None)
        if mail is None:
            mail = self._connect()
            self._local.mail = mail
            with self._lock:
                self._connections.append(mail)
        return mail

    def _drop_connection(self) -> None:
        mail = getattr(self._local, "mail", None)
        self._local.mail = None
        if mail is not None:
            with self._lock:
                if mail in self._connections:
                    self._connections.remove(mail)
            try:
                mail.logout()
            except (imaplib.IMAP4.error, OSError):
                pass

    def close(self) -> None:
        """Log out every connection opened by any thread."""
        with self._lock:
            connections, self._connections = self._connections, []
            self._local = threading.local()
        for mail in connections:
            try:
                mail.logout()
            except (imaplib.IMAP4.error, OSError):
                logger.debug("imap_logout_failed")
        logger.debug("imap_disconnected", connections=len(connections))

    # ── Listing ───────────────────────────────────────────
    def list(self, since: datetime, query: str) -> List[MessageRef]:
        """Return up to ``max_scan_emails`` message refs newer than *since*, newest first."""
        mail = self._connection()
        cfg = self._config

        if cfg.use_gmail_raw_search and query:
            raw = f"{query} after:{since.strftime('%Y/%m/%d')}"
            status, data = mail.uid("SEARCH", None, "X-GM-RAW", _imap_quote(raw))
        else:
            status, data = mail.uid("SEARCH", None, f"SINCE {since.strftime('%d-%b-%Y')}")
        if status != "OK":
            raise RuntimeError("IMAP UID SEARCH failed")

        uid_tokens = (data[0] or b"").split()
        uids = sorted((int(t) for t in uid_tokens), reverse=True)
        if len(uids) > cfg.max_scan_emails:
            logger.info("imap_uid_capped", total=len(uids), kept=cfg.max_scan_emails)
            uids = uids[: cfg.max_scan_emails]

        logger.info("imap_uids_found", count=len(uids), since=since.date().isoformat())
        return [MessageRef(id=str(uid)) for uid in uids]

    # ── Fetching ──────────────────────────────────────────
    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    def _fetch_bytes(self, uid: str) -> bytes | None:
        mail = self._connection()
        try:
            # BODY.PEEK leaves the \Seen flag untouched.
            status, fetched = mail.uid("FETCH", uid, "(BODY.PEEK[])")
        except _RETRYABLE:
            self._drop_connection()
            raise
        if status != "OK":
            return None
        return _extract_rfc822(fetched)

    def fetch(self, ref: MessageRef) -> RawMessage:
        """Fetch and parse one message; raises :class:`MessageFetchError` on failure."""
        try:
            raw_email = self._fetch_bytes(ref.id)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MessageFetchError(ref.id, str(exc)) from exc
        if not raw_email:
            raise MessageFetchError(ref.id, "empty payload")

        msg = email_lib.message_from_bytes(raw_email)
        return parse_raw_message(ref.id, msg)
