"""Failures raised by the persistence collaborator, as seen from the client core."""
from __future__ import annotations

from typing import Optional


class BoardApiError(Exception):
    """Base for every failure of a board persistence call."""

    reason = "request failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiValidationError(BoardApiError):
    """4xx: the request was rejected; the user can correct it."""

    reason = "rejected by server"


class NotFoundError(BoardApiError):
    """The entity no longer exists server-side."""

    reason = "item no longer exists"


class TransientError(BoardApiError):
    """Connectivity failure, timeout or 5xx; retrying may succeed."""

    reason = "couldn't reach server"
