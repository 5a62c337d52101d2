"""MCP Resources for care log form discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

from anchor.domains.care_log.models import SectionGroup

if TYPE_CHECKING:
    from anchor.domains.care_log.domain_logic.medication_template import MedicationTemplate
    from anchor.domains.care_log.domain_logic.sections import SectionRegistry


def register_care_log_resources(
    mcp: FastMCP,
    registry: SectionRegistry,
    template: MedicationTemplate,
) -> None:
    """Register care log discovery resources on the MCP server."""

    @mcp.resource("carelog://sections")
    def care_log_sections_resource() -> str:
        """Sections of the daily care log and the group each is shared under."""
        return json.dumps(
            {
                "section_count": len(registry),
                "groups": [g.value for g in SectionGroup],
                "sections": [
                    {
                        "id": s.id,
                        "title": s.title,
                        "optional": s.optional,
                        "groups": [g.value for g in s.groups],
                    }
                    for s in registry.all()
                ],
            },
            indent=2,
        )

    @mcp.resource("carelog://medication-template")
    def medication_template_resource() -> str:
        """Scheduled medications every new draft starts with."""
        return json.dumps(
            {
                "medication_count": len(template),
                "medications": [
                    {
                        "name": m.name,
                        "timeSlot": m.time_slot,
                        "purpose": m.purpose,
                    }
                    for m in template.entries()
                ],
            },
            indent=2,
        )
