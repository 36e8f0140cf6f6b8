"""
onair.errors — Error Taxonomy
==============================

Services raise these; routes translate them into HTTP responses.
Best-effort side channels (milestones, broadcast) never raise to the
caller of the primary action — they log instead.
"""

from __future__ import annotations


class OnAirError(Exception):
    """Base class for all domain errors."""


class ValidationError(OnAirError):
    """Rejected input: empty message, missing identity, bad cursor."""


class NotFoundError(OnAirError):
    """The requested listener or resource does not exist."""


class ConflictError(OnAirError):
    """A uniqueness rule was hit (duplicate like, nickname taken)."""

    def __init__(self, message: str, *, code: str = "conflict") -> None:
        super().__init__(message)
        self.code = code


class RateLimitedError(OnAirError):
    """The identity exceeded its chat flood-control window."""

    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransientInfraError(OnAirError):
    """Store, broadcast, or streaming server unavailable — retry later."""
