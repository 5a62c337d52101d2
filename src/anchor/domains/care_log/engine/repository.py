"""Server draft repository — abstract interface for care log persistence.

The engine calls these methods without knowing whether the document lives
behind the HTTP API or in the local encrypted SQLite store. Payloads are the
camelCase wire documents produced by the reconciler.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DraftRepository(Protocol):
    """Persistence operations for one caregiver's care logs."""

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a draft; the returned document carries the new ``id``."""
        ...

    async def update(self, log_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Partially update a draft; omitted keys are left untouched."""
        ...

    async def get_today(self) -> dict[str, Any] | None:
        """Today's log for the authenticated caregiver, or None."""
        ...

    async def get_by_recipient_date(
        self, care_recipient_id: str, log_date: str
    ) -> dict[str, Any] | None:
        """Family read of one recipient's log for a date, or None."""
        ...

    async def submit(self, log_id: str) -> dict[str, Any]:
        """Finalize a draft; afterwards the document is immutable."""
        ...

    async def submit_section(self, log_id: str, section: str) -> dict[str, Any]:
        """Share one section group; returns the full ``completedSections`` map."""
        ...

    async def history(self, log_id: str) -> list[dict[str, Any]]:
        """Append-only audit entries for a log, oldest first."""
        ...

    async def invalidate(
        self, log_id: str, reason: str, *, invalidated_by: str
    ) -> dict[str, Any]:
        """Family admin: hand a submitted log back to the caregiver."""
        ...


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------

class DraftRepositoryError(Exception):
    """Base exception for repository failures."""


class RepositoryConnectionError(DraftRepositoryError):
    """The repository could not be reached."""


class RepositoryResponseError(DraftRepositoryError):
    """The repository answered with an unexpected status or body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RepositoryAuthError(RepositoryResponseError):
    """Credentials were missing or rejected."""


class RepositoryConflictError(RepositoryResponseError):
    """The operation is not allowed in the document's current status."""


class RepositoryNotFoundError(RepositoryResponseError):
    """The referenced care log does not exist."""
