"""Structured error kinds for the care log engine.

Callers decide between a blocking message and a transient indicator by
looking at ``error.kind`` / ``error.blocking`` rather than message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PARSE = "parse"
    IDENTITY = "identity"
    TRANSIENT_NETWORK = "transient_network"
    SUBMISSION = "submission"


class CareLogError(Exception):
    """Base exception for the care log engine."""

    kind: ErrorKind = ErrorKind.SUBMISSION
    blocking: bool = True

    def as_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "blocking": self.blocking, "message": str(self)}


class VitalsParseError(CareLogError):
    """A vitals field could not be read as a number. Never shown to the user."""

    kind = ErrorKind.PARSE
    blocking = False


class IdentityError(CareLogError):
    """No care recipient association, or credentials were rejected."""

    kind = ErrorKind.IDENTITY
    blocking = True


class TransientNetworkError(CareLogError):
    """Autosave or load failed; local input is kept and retried later."""

    kind = ErrorKind.TRANSIENT_NETWORK
    blocking = False


class SubmissionError(CareLogError):
    """Final or per-section submission failed; the draft stays editable."""

    kind = ErrorKind.SUBMISSION
    blocking = True


class IncompleteDraftError(SubmissionError):
    """Final submission attempted while conditional fields are unmet."""

    def __init__(self, missing: dict[str, list[str]]) -> None:
        self.missing = missing
        count = sum(len(v) for v in missing.values())
        super().__init__(
            f"Care log is incomplete: {count} required field(s) missing "
            f"in {', '.join(sorted(missing))}"
        )
