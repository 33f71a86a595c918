from __future__ import annotations

"""
Error taxonomy for kd_server.

Every condition below is an ordinary exception that routers translate into an
engine-style error body ({"message": ...}) with the attached HTTP status:

- NotFoundError: entity or external resource absent (404).
- ConflictError: operation refused because of current state (409).
- PredefinedNetworkError: delete/disconnect of a built-in network (403).
- FilterError: malformed "filters" parameter or pattern. Never surfaced;
  list/prune endpoints log it and fall back to accept-all.
- ClaimError and friends: orchestration-platform conditions raised by the
  Kubernetes adapter. ClaimAlreadyExists and ClaimNotFound are absorbed by the
  volume translator; any other ClaimError is surfaced on create paths (500)
  and logged on delete/prune paths.
"""

from fastapi import status


class KubedockError(Exception):
    """Base class for errors presented to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(KubedockError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(KubedockError):
    status_code = status.HTTP_409_CONFLICT


class PredefinedNetworkError(ConflictError):
    status_code = status.HTTP_403_FORBIDDEN


class FilterError(ValueError):
    """Raised when a filter parameter or a filter pattern is malformed."""


class ClaimError(KubedockError):
    """A persistent volume claim operation failed on the cluster."""


class ClaimAlreadyExists(ClaimError):
    status_code = status.HTTP_409_CONFLICT


class ClaimNotFound(ClaimError):
    status_code = status.HTTP_404_NOT_FOUND


__all__ = [
    "KubedockError",
    "NotFoundError",
    "ConflictError",
    "PredefinedNetworkError",
    "FilterError",
    "ClaimError",
    "ClaimAlreadyExists",
    "ClaimNotFound",
]
