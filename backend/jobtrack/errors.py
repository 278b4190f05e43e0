"""Exception types shared across the scan pipeline."""

from __future__ import annotations


class JobTrackError(Exception):
    """Base class for errors raised by this package."""


class AuthorizationRequiredError(JobTrackError):
    """The mailbox cannot be read until the user (re)authorizes access.

    Fatal to a whole scan; callers surface it as an actionable condition
    instead of a transient failure.
    """


class MessageFetchError(JobTrackError):
    """A single message could not be fetched or parsed."""

    def __init__(self, message_id: str, reason: str) -> None:
        super().__init__(f"message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason
