"""Error taxonomy shared by every trip-planning operation.

All errors are scoped to the operation that raised them; none is fatal to
the process. ``Session.run`` converts them into user-visible notices.
"""

from __future__ import annotations


class TripLabError(Exception):
    """Base class. ``message`` is safe to show to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TripLabError, LookupError):
    """Trip id or shareable code does not resolve to an existing trip."""


class UnauthorizedError(TripLabError, PermissionError):
    """The acting identity may not perform this operation."""


class NotAMemberError(UnauthorizedError):
    """The acting identity is not present in ``trip.users``."""

    def __init__(self, trip_id: str, user_id: str) -> None:
        super().__init__("You are not a member of this trip")
        self.trip_id = trip_id
        self.user_id = user_id


class ValidationError(TripLabError, ValueError):
    """Malformed input caught before any network call."""


class RemoteWriteFailure(TripLabError):
    """The document store rejected or failed to acknowledge a write."""

    def __init__(self, path: str, message: str = "Could not save changes") -> None:
        super().__init__(message)
        self.path = path


class UpstreamProxyError(TripLabError):
    """The chat proxy (or its upstream model API) failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SchemaMismatchError(TripLabError):
    """An incoming snapshot does not match the document schema."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Unexpected data at {path}: {detail}")
        self.path = path
        self.detail = detail
