"""Progressive submission — share section groups with family, then finalize.

Section shares are serialized through one lock and applied in the order the
server answered them. The server's ``completedSections`` map always replaces
the local one wholesale; keys are never patched individually.
"""

from __future__ import annotations

import asyncio
import logging

from anchor.domains.care_log.domain_logic.reconciler import load_completed_sections
from anchor.domains.care_log.domain_logic.section_validator import validate_draft
from anchor.domains.care_log.domain_logic.sections import DEFAULT_SECTIONS, SectionRegistry
from anchor.domains.care_log.engine.autosave import AutosaveScheduler
from anchor.domains.care_log.engine.repository import (
    DraftRepository,
    DraftRepositoryError,
    RepositoryAuthError,
)
from anchor.domains.care_log.errors import (
    IdentityError,
    IncompleteDraftError,
    SubmissionError,
    TransientNetworkError,
)
from anchor.domains.care_log.models import CompletedSection, DraftStatus, SectionGroup
from anchor.domains.care_log.session import CareSession

logger = logging.getLogger(__name__)


def _parse_group(section: SectionGroup | str) -> SectionGroup:
    try:
        return SectionGroup(section)
    except ValueError:
        valid = ", ".join(g.value for g in SectionGroup)
        raise SubmissionError(f"Unknown section {section!r}; expected one of: {valid}") from None


class ProgressiveSubmissionController:
    """Coordinates per-group sharing and final submission of one draft."""

    def __init__(
        self,
        repository: DraftRepository,
        session: CareSession,
        autosave: AutosaveScheduler,
        *,
        registry: SectionRegistry = DEFAULT_SECTIONS,
    ) -> None:
        self._repo = repository
        self._session = session
        self._autosave = autosave
        self._registry = registry
        self._lock = asyncio.Lock()

    def _check_identity(self) -> None:
        if not self._session.has_recipient or not self._autosave.draft.care_recipient_id:
            raise IdentityError("No care recipient is associated with this caregiver")

    async def _flush(self) -> None:
        try:
            await self._autosave.flush()
        except TransientNetworkError as exc:
            raise SubmissionError(f"Could not save the latest changes: {exc}") from exc

    async def submit_section(self, section: SectionGroup | str) -> dict[str, CompletedSection]:
        """Share one section group with family.

        Args:
            section: ``morning``, ``afternoon``, ``evening`` or ``dailySummary``.

        Returns:
            The ``completedSections`` map now held locally. Unchanged when the
            draft is already locked.

        Raises:
            IdentityError: If no care recipient is associated or credentials
                were rejected.
            SubmissionError: If the section is unknown or the call failed.
        """
        group = _parse_group(section)
        self._check_identity()

        async with self._lock:
            draft = self._autosave.draft
            if draft.is_locked:
                logger.info("Draft %s is %s; section share ignored", draft.id, draft.status.value)
                return dict(draft.completed_sections)

            # Creates the draft first when it has no id yet
            await self._flush()
            draft = self._autosave.draft
            try:
                response = await self._repo.submit_section(draft.id, group.value)
            except RepositoryAuthError as exc:
                raise IdentityError(f"Credentials rejected: {exc}") from exc
            except DraftRepositoryError as exc:
                logger.warning("Sharing %s failed for draft %s: %s", group.value, draft.id, exc)
                raise SubmissionError(f"Could not share {group.value}: {exc}") from exc

            completed = response.get("completedSections", response)
            # The draft object may have been replaced by an edit while we waited
            self._autosave.draft.completed_sections = load_completed_sections(completed)
            logger.info("Shared %s for draft %s", group.value, draft.id)
            return dict(self._autosave.draft.completed_sections)

    async def submit(self) -> str:
        """Finalize the draft.

        Returns:
            The id of the submitted care log.

        Raises:
            IncompleteDraftError: If any section has unmet required fields.
            IdentityError: If no care recipient is associated or credentials
                were rejected.
            SubmissionError: If the draft is already locked or the call failed.
        """
        self._check_identity()

        async with self._lock:
            draft = self._autosave.draft
            if draft.is_locked:
                raise SubmissionError(f"Care log {draft.id} is already {draft.status.value}")

            report = validate_draft(draft, self._registry)
            if not report.all_sections_complete:
                raise IncompleteDraftError(report.missing_by_section)

            await self._flush()
            draft = self._autosave.draft
            try:
                await self._repo.submit(draft.id)
            except RepositoryAuthError as exc:
                raise IdentityError(f"Credentials rejected: {exc}") from exc
            except DraftRepositoryError as exc:
                logger.warning("Final submission failed for draft %s: %s", draft.id, exc)
                raise SubmissionError(f"Could not submit care log: {exc}") from exc

            self._autosave.draft.status = DraftStatus.SUBMITTED
            self._autosave.stop()
            logger.info("Submitted care log %s", draft.id)
            return draft.id
