"""Care log editor — the caregiver-facing facade over one day's draft.

Wires the reconciler, vitals classifier, section validator, autosave
scheduler and submission controller together for a single ``CareSession``.
Also builds the family-facing projection of a shared draft.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterator

from anchor.domains.care_log.domain_logic.medication_template import MedicationTemplate
from anchor.domains.care_log.domain_logic.reconciler import apply_payload, hydrate_draft
from anchor.domains.care_log.domain_logic.section_validator import ValidationReport, validate_draft
from anchor.domains.care_log.domain_logic.sections import DEFAULT_SECTIONS, SectionRegistry
from anchor.domains.care_log.domain_logic.vitals_classifier import classify_vitals
from anchor.domains.care_log.engine.autosave import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_INTERVAL_SECONDS,
    AutosaveScheduler,
)
from anchor.domains.care_log.engine.repository import (
    DraftRepository,
    DraftRepositoryError,
    RepositoryAuthError,
)
from anchor.domains.care_log.engine.submission import ProgressiveSubmissionController
from anchor.domains.care_log.errors import IdentityError, TransientNetworkError
from anchor.domains.care_log.models import (
    CareLogDraft,
    CompletedSection,
    DraftStatus,
    SectionGroup,
    VitalAlert,
)
from anchor.domains.care_log.session import CareSession

logger = logging.getLogger(__name__)

# Keys the server owns; partial updates never overwrite them locally
SERVER_OWNED_KEYS = frozenset({"id", "status", "completedSections", "careRecipientId", "logDate"})


class CareLogEditor:
    """Loads, edits, autosaves and submits today's care log.

    Usage::

        editor = CareLogEditor(repository, session, template=template)
        await editor.load()
        with editor.edit() as draft:
            draft.vitals.blood_pressure = "150/95"
        alerts = editor.alerts()
        await editor.share_section("morning")
        await editor.close()
    """

    def __init__(
        self,
        repository: DraftRepository,
        session: CareSession,
        *,
        template: MedicationTemplate,
        registry: SectionRegistry = DEFAULT_SECTIONS,
        autosave_interval: float = DEFAULT_INTERVAL_SECONDS,
        autosave_debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repository
        self._session = session
        self._template = template
        self._registry = registry
        self._interval = autosave_interval
        self._debounce = autosave_debounce
        self._today = today

        self._autosave: AutosaveScheduler | None = None
        self._submission: ProgressiveSubmissionController | None = None

    @property
    def session(self) -> CareSession:
        return self._session

    @property
    def loaded(self) -> bool:
        return self._autosave is not None

    @property
    def autosave(self) -> AutosaveScheduler:
        if self._autosave is None:
            raise RuntimeError("Care log not loaded. Call load() first.")
        return self._autosave

    @property
    def draft(self) -> CareLogDraft:
        return self.autosave.draft

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self, *, start_autosave: bool = True) -> CareLogDraft:
        """Fetch today's draft and hydrate local state.

        When no draft exists an empty one is prepared in memory; the first
        save creates it. A log invalidated by family comes back as a new
        draft carrying the old values, with no id and no shared sections.

        Raises:
            IdentityError: If the repository rejected the credentials.
            TransientNetworkError: If today's draft could not be fetched.
                Autosave is not started in that case.
        """
        try:
            document = await self._repo.get_today()
        except RepositoryAuthError as exc:
            raise IdentityError(f"Credentials rejected: {exc}") from exc
        except DraftRepositoryError as exc:
            logger.warning("Could not load today's care log: %s", exc)
            raise TransientNetworkError(f"Could not load today's care log: {exc}") from exc

        draft = hydrate_draft(
            document,
            template=self._template,
            care_recipient_id=self._session.care_recipient_id,
            log_date=self._today().isoformat(),
        )
        invalidated = draft.status == DraftStatus.INVALIDATED
        if invalidated:
            logger.info("Care log %s was invalidated; starting a new draft", draft.id)
            draft.id = None
            draft.status = DraftStatus.DRAFT
            draft.completed_sections = {}

        if self._autosave is not None:
            self._autosave.stop()
        self._autosave = AutosaveScheduler(
            self._repo,
            self._session,
            draft,
            interval=self._interval,
            debounce=self._debounce,
        )
        self._submission = ProgressiveSubmissionController(
            self._repo, self._session, self._autosave, registry=self._registry
        )
        if invalidated:
            self._autosave.mark_dirty()
        if start_autosave and not draft.is_locked:
            self._autosave.start()

        logger.info(
            "Loaded care log for %s on %s (id=%s, status=%s)",
            draft.care_recipient_id,
            draft.log_date,
            draft.id,
            draft.status.value,
        )
        return draft

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    @contextmanager
    def edit(self) -> Iterator[CareLogDraft]:
        """Edit a working copy of the draft; committed when the block exits.

        The copy is discarded if the block raises or the draft is locked.
        """
        working = copy.deepcopy(self.draft)
        yield working

        latest = self.autosave.draft
        if latest.is_locked:
            logger.info("Care log %s is %s; edit discarded", latest.id, latest.status.value)
            return
        # Server-owned state always comes from the live draft
        working.id = latest.id
        working.status = latest.status
        working.care_recipient_id = latest.care_recipient_id
        working.log_date = latest.log_date
        working.completed_sections = latest.completed_sections
        self.autosave.draft = working
        self.autosave.mark_dirty()

    def apply_payload(self, partial: dict[str, Any]) -> CareLogDraft:
        """Merge a partial camelCase document into the draft as one edit."""
        editable = {k: v for k, v in partial.items() if k not in SERVER_OWNED_KEYS}
        with self.edit() as draft:
            apply_payload(draft, editable)
        return self.draft

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def alerts(self) -> list[VitalAlert]:
        return classify_vitals(
            self.draft.vitals,
            age=self._session.age(self._today()),
            gender=self._session.gender,
        )

    def validation(self) -> ValidationReport:
        return validate_draft(self.draft, self._registry)

    # ------------------------------------------------------------------
    # Persistence and submission
    # ------------------------------------------------------------------

    async def save_now(self) -> bool:
        return await self.autosave.flush()

    async def share_section(self, section: SectionGroup | str) -> dict[str, CompletedSection]:
        if self._submission is None:
            raise RuntimeError("Care log not loaded. Call load() first.")
        return await self._submission.submit_section(section)

    async def submit(self) -> str:
        if self._submission is None:
            raise RuntimeError("Care log not loaded. Call load() first.")
        return await self._submission.submit()

    async def close(self) -> None:
        """Stop timers and wait for any save already in flight."""
        if self._autosave is None:
            return
        self._autosave.stop()
        await self._autosave.drain()


# ---------------------------------------------------------------------------
# Family view
# ---------------------------------------------------------------------------

_GROUP_FIELDS: dict[SectionGroup, tuple[str, ...]] = {
    SectionGroup.MORNING: (
        "wakeTime", "mood", "showerTime", "hairWash",
        "bloodPressure", "pulseRate", "oxygenLevel", "bloodSugar", "vitalsTime",
    ),
    SectionGroup.AFTERNOON: (
        "bloodPressure", "pulseRate", "oxygenLevel", "bloodSugar", "vitalsTime",
        "afternoonRest", "morningExerciseSession", "afternoonExerciseSession",
        "movementDifficulties",
    ),
    SectionGroup.EVENING: ("nightSleep",),
    SectionGroup.DAILY_SUMMARY: (
        "fluids", "toileting",
        "balanceIssues", "nearFalls", "actualFalls", "walkingPattern", "freezingEpisodes",
        "unaccompaniedTime", "unaccompaniedIncidents", "safetyChecks", "emergencyPrep",
        "spiritualEmotional", "specialConcerns", "caregiverNotes",
        "emergencyFlag", "emergencyNote", "notes",
    ),
}

_GROUP_MEALS: dict[SectionGroup, tuple[str, ...]] = {
    SectionGroup.MORNING: ("breakfast",),
    SectionGroup.AFTERNOON: ("lunch", "teaBreak"),
    SectionGroup.EVENING: ("dinner",),
    SectionGroup.DAILY_SUMMARY: ("foodPreferences", "foodRefusals"),
}

_GROUP_MEDICATION_SLOTS: dict[SectionGroup, tuple[str, ...]] = {
    SectionGroup.MORNING: ("before_breakfast", "after_breakfast"),
    SectionGroup.AFTERNOON: ("afternoon",),
    SectionGroup.EVENING: ("after_dinner", "before_bedtime"),
    # Ad hoc medications without a slot
    SectionGroup.DAILY_SUMMARY: ("",),
}


def build_family_view(document: dict[str, Any] | None) -> dict[str, Any] | None:
    """Project a care log document down to what family may see.

    Submitted logs are visible in full. Drafts expose only the fields of the
    section groups the caregiver has shared. Anything else yields None.
    """
    if document is None:
        return None
    status = document.get("status", DraftStatus.DRAFT.value)
    completed = document.get("completedSections") or {}

    if status == DraftStatus.SUBMITTED.value:
        return {**document, "visibleSections": [g.value for g in SectionGroup]}
    if status != DraftStatus.DRAFT.value:
        return None

    shared = [g for g in SectionGroup if g.value in completed]
    if not shared:
        return None

    view: dict[str, Any] = {
        key: document[key]
        for key in ("id", "careRecipientId", "logDate", "status")
        if key in document
    }
    view["completedSections"] = completed
    view["visibleSections"] = [g.value for g in shared]

    meals = document.get("meals") or {}
    shared_meals: dict[str, Any] = {}
    slots: set[str] = set()
    for group in shared:
        for key in _GROUP_FIELDS[group]:
            if key in document:
                view[key] = document[key]
        for key in _GROUP_MEALS[group]:
            if key in meals:
                shared_meals[key] = meals[key]
        slots.update(_GROUP_MEDICATION_SLOTS[group])

    if shared_meals:
        view["meals"] = shared_meals
    medications = [
        med for med in document.get("medications") or []
        if med.get("timeSlot", "") in slots
    ]
    if medications:
        view["medications"] = medications
    return view
