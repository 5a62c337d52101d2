"""Section completeness and conditional required-field validation.

The validator is generic over a ``SectionRegistry``: it knows nothing about
individual sections beyond the rules each descriptor carries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from anchor.domains.care_log.domain_logic.sections import DEFAULT_SECTIONS, SectionRegistry
from anchor.domains.care_log.models import CareLogDraft, total_unaccompanied_minutes

logger = logging.getLogger(__name__)


@dataclass
class SectionStatus:
    section_id: str
    title: str
    complete: bool
    has_data: bool
    missing: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "section_id": self.section_id,
            "title": self.title,
            "complete": self.complete,
            "has_data": self.has_data,
            "missing": list(self.missing),
        }


@dataclass
class ValidationReport:
    """Per-section status plus the aggregate submission gate."""

    sections: dict[str, SectionStatus] = field(default_factory=dict)
    # Valid unaccompanied periods only
    unaccompanied_minutes: int = 0

    @property
    def all_sections_complete(self) -> bool:
        return all(status.complete for status in self.sections.values())

    @property
    def completion_percentage(self) -> int:
        """Share of sections with any data entered. A soft progress signal only."""
        if not self.sections:
            return 0
        with_data = sum(1 for status in self.sections.values() if status.has_data)
        return round(100 * with_data / len(self.sections))

    @property
    def missing_by_section(self) -> dict[str, list[str]]:
        return {
            sid: list(status.missing)
            for sid, status in self.sections.items()
            if status.missing
        }

    def as_dict(self) -> dict:
        return {
            "all_sections_complete": self.all_sections_complete,
            "completion_percentage": self.completion_percentage,
            "unaccompanied_minutes": self.unaccompanied_minutes,
            "sections": [status.as_dict() for status in self.sections.values()],
        }


def validate_draft(
    draft: CareLogDraft, registry: SectionRegistry = DEFAULT_SECTIONS
) -> ValidationReport:
    """Evaluate every registered section against ``draft``.

    Args:
        draft: The current local draft.
        registry: Sections to evaluate, in display order.

    Returns:
        A ``ValidationReport``; ``all_sections_complete`` gates final submission.
    """
    report = ValidationReport(unaccompanied_minutes=total_unaccompanied_minutes(draft.unaccompanied_periods))
    for section in registry.all():
        missing = section.missing_fields(draft) if section.missing_fields else []
        report.sections[section.id] = SectionStatus(
            section_id=section.id,
            title=section.title,
            complete=not missing,
            has_data=section.has_data(draft),
            missing=missing,
        )
    if not report.all_sections_complete:
        logger.debug("Incomplete sections: %s", sorted(report.missing_by_section))
    return report
