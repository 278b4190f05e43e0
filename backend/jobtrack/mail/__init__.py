"""Mailbox access: message types, MIME parsing and the IMAP source."""

from jobtrack.mail.message import MessageRef, MessageSource, RawMessage

__all__ = ["MessageRef", "MessageSource", "RawMessage"]
