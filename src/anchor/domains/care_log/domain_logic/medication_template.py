"""Medication template loader — reads the scheduled medication list from YAML."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from anchor.domains.care_log.models import MedicationEntry

logger = logging.getLogger(__name__)

# Packaged default lives under src/anchor/domains/care_log/templates/
DEFAULT_TEMPLATE_PATH = (
    Path(__file__).resolve().parent.parent / "templates" / "medications.yaml"
)


class MedicationTemplateError(Exception):
    """Raised when a medication template file is malformed."""


class MedicationTemplate:
    """Ordered, name-keyed list of scheduled medications.

    ``entries()`` always returns fresh copies so callers can mutate them
    without touching the template.
    """

    def __init__(self, entries: list[MedicationEntry] | None = None) -> None:
        self._entries: dict[str, MedicationEntry] = {}
        for entry in entries or []:
            if entry.name in self._entries:
                raise MedicationTemplateError(f"Duplicate medication in template: {entry.name!r}")
            self._entries[entry.name] = entry

    def entries(self) -> list[MedicationEntry]:
        return [replace(entry) for entry in self._entries.values()]

    def names(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _parse_entry(data: dict[str, Any]) -> MedicationEntry:
    name = str(data.get("name", "")).strip()
    if not name:
        raise MedicationTemplateError("Medication template entry is missing a name")
    return MedicationEntry(
        name=name,
        time_slot=data.get("time_slot", ""),
        purpose=data.get("purpose", ""),
        notes=data.get("notes", ""),
    )


def load_medication_template(path: str | Path | None = None) -> MedicationTemplate:
    """Parse a YAML medication template.

    Args:
        path: Template file; the packaged default when None or empty.

    Returns:
        The loaded ``MedicationTemplate``.

    Raises:
        MedicationTemplateError: If the file is missing or malformed.
    """
    template_path = Path(path).expanduser() if path else DEFAULT_TEMPLATE_PATH
    try:
        with open(template_path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise MedicationTemplateError(
            f"Cannot read medication template {template_path}: {exc}"
        ) from exc
    except yaml.YAMLError as exc:
        raise MedicationTemplateError(f"Invalid YAML in {template_path}: {exc}") from exc

    raw_entries = data.get("medications", []) if isinstance(data, dict) else None
    if not isinstance(raw_entries, list):
        raise MedicationTemplateError(f"{template_path}: 'medications' must be a list")

    template = MedicationTemplate([_parse_entry(item) for item in raw_entries])
    logger.info("Loaded %d scheduled medications from %s", len(template), template_path)
    return template
