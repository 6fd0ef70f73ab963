# src/recurring_issues/tracker/errors.py

from __future__ import annotations


class TrackerError(RuntimeError):
    """Any failure talking to the issue tracker (network, auth, rate limit, bad payload)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TrackerAuthError(TrackerError):
    """401: token missing, expired or revoked."""


class TrackerRateLimitError(TrackerError):
    """403 with an exhausted rate limit, or 429."""


class TrackerNotFoundError(TrackerError):
    """404: repository, issue or label does not exist (or the token cannot see it)."""


class TrackerResponseError(TrackerError):
    """The tracker answered, but not with something we can use."""
