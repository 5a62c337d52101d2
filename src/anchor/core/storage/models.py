"""Data models for the care log persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StoredCareLog:
    """One row of ``care_logs`` with its document decrypted.

    ``document`` holds the caregiver-entered fields in wire (camelCase) form.
    Everything else mirrors plain columns.
    """

    id: str
    care_recipient_id: str
    caregiver_id: str
    log_date: str  # YYYY-MM-DD
    status: str  # 'draft' | 'submitted' | 'invalidated'
    document: dict[str, Any] = field(default_factory=dict)
    completed_sections: dict[str, dict[str, str]] = field(default_factory=dict)
    submitted_at: str | None = None
    invalidated_at: str | None = None
    invalidated_by: str | None = None
    invalidation_reason: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def to_wire(self) -> dict[str, Any]:
        """The full server document as API clients see it."""
        wire: dict[str, Any] = {
            **self.document,
            "id": self.id,
            "careRecipientId": self.care_recipient_id,
            "caregiverId": self.caregiver_id,
            "logDate": self.log_date,
            "status": self.status,
            "completedSections": dict(self.completed_sections),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.submitted_at:
            wire["submittedAt"] = self.submitted_at
        if self.invalidated_at:
            wire["invalidatedAt"] = self.invalidated_at
            wire["invalidatedBy"] = self.invalidated_by
            wire["invalidationReason"] = self.invalidation_reason
        return wire


@dataclass
class HistoryEntry:
    """An append-only record of one mutation of a care log."""

    id: str
    care_log_id: str
    timestamp: str
    action: str  # 'create' | 'update' | 'submit_section' | 'submit' | 'invalidate'
    actor_id: str | None = None
    section: str | None = None
    payload_hash: str | None = None
    status: str = "success"
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "careLogId": self.care_log_id,
            "timestamp": self.timestamp,
            "action": self.action,
            "actorId": self.actor_id,
            "section": self.section,
            "payloadHash": self.payload_hash,
            "status": self.status,
            "metadata": dict(self.metadata),
        }
