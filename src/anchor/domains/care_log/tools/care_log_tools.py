"""MCP tools for the caregiver's daily care log.

Every tool returns a JSON string. Engine errors are reported as
``{"status": "error", "error": {"kind", "blocking", "message"}}`` so the
calling client can tell a blocking problem from a transient one without
parsing message text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from anchor.domains.care_log.domain_logic.reconciler import (
    dump_completed_sections,
    dump_draft,
)
from anchor.domains.care_log.engine.editor import build_family_view
from anchor.domains.care_log.engine.repository import (
    DraftRepositoryError,
    RepositoryNotFoundError,
)
from anchor.domains.care_log.errors import CareLogError, IncompleteDraftError

if TYPE_CHECKING:
    from anchor.domains.care_log.engine.editor import CareLogEditor
    from anchor.domains.care_log.engine.repository import DraftRepository

logger = logging.getLogger(__name__)


def _error(exc: CareLogError) -> str:
    body: dict[str, Any] = {"status": "error", "error": exc.as_dict()}
    if isinstance(exc, IncompleteDraftError):
        body["missing"] = exc.missing
    return json.dumps(body, indent=2)


def _repository_error(exc: DraftRepositoryError) -> str:
    return json.dumps(
        {
            "status": "error",
            "error": {
                "kind": "repository",
                "blocking": False,
                "message": str(exc),
                "status_code": getattr(exc, "status_code", None),
            },
        },
        indent=2,
    )


def _draft_document(editor: CareLogEditor) -> dict[str, Any]:
    draft = editor.draft
    return {
        "id": draft.id,
        "status": draft.status.value,
        **dump_draft(draft),
        "completedSections": dump_completed_sections(draft.completed_sections),
    }


def register_care_log_tools(
    mcp: FastMCP,
    editor: CareLogEditor,
    repository: DraftRepository,
) -> None:
    """Register care log tools on the MCP server."""

    async def _ensure_loaded() -> None:
        if not editor.loaded:
            await editor.load()

    @mcp.tool
    async def load_today_draft(ctx: Context, reload: bool = False) -> str:
        """Load today's care log draft for the configured care recipient.

        Returns the draft document, section completeness, vitals alerts and
        autosave state. A log invalidated by family comes back as a fresh
        draft carrying the previous values.

        Args:
            reload: Fetch from the server again even if a draft is loaded.
        """
        start_time = time.monotonic()
        try:
            if reload or not editor.loaded:
                await editor.load()
        except CareLogError as exc:
            return _error(exc)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        return json.dumps(
            {
                "status": "ok",
                "draft": _draft_document(editor),
                "validation": editor.validation().as_dict(),
                "alerts": [a.as_dict() for a in editor.alerts()],
                "autosave": editor.autosave.as_dict(),
                "duration_ms": round(elapsed_ms, 1),
            },
            indent=2,
        )

    @mcp.tool
    async def update_draft(ctx: Context, changes: dict[str, Any]) -> str:
        """Merge a partial care log update into today's draft.

        ``changes`` uses the camelCase document shape, e.g.
        ``{"bloodPressure": "150/95", "medications": [{"name": "Forxiga 10mg",
        "given": true, "time": "08:30"}]}``. Only the keys present are
        touched; medications are matched by name. The edit is autosaved after
        a short debounce.

        Args:
            changes: Partial care log document.
        """
        try:
            await _ensure_loaded()
        except CareLogError as exc:
            return _error(exc)

        if editor.draft.is_locked:
            return json.dumps(
                {
                    "status": "locked",
                    "draft_id": editor.draft.id,
                    "message": f"Care log is {editor.draft.status.value}; edits are not accepted.",
                },
                indent=2,
            )

        try:
            editor.apply_payload(changes)
        except CareLogError as exc:
            logger.info("Rejected update to draft %s: %s", editor.draft.id, exc)
            return _error(exc)
        logger.debug("Applied %d changed key(s) to draft %s", len(changes), editor.draft.id)
        return json.dumps(
            {
                "status": "updated",
                "draft_id": editor.draft.id,
                "updated_keys": sorted(changes),
                "validation": editor.validation().as_dict(),
                "alerts": [a.as_dict() for a in editor.alerts()],
                "autosave": editor.autosave.as_dict(),
            },
            indent=2,
        )

    @mcp.tool
    async def vitals_alerts(ctx: Context) -> str:
        """Classify the draft's current vitals against age and gender adjusted thresholds."""
        try:
            await _ensure_loaded()
        except CareLogError as exc:
            return _error(exc)
        alerts = editor.alerts()
        return json.dumps(
            {
                "alert_count": len(alerts),
                "critical": any(a.level.value == "critical" for a in alerts),
                "alerts": [a.as_dict() for a in alerts],
            },
            indent=2,
        )

    @mcp.tool
    async def section_status(ctx: Context) -> str:
        """Report which sections hold data and which required fields are missing.

        Also reports the total minutes the recipient was left unaccompanied,
        counting complete, correctly ordered periods only.
        """
        try:
            await _ensure_loaded()
        except CareLogError as exc:
            return _error(exc)
        return json.dumps(editor.validation().as_dict(), indent=2)

    @mcp.tool
    async def save_draft_now(ctx: Context) -> str:
        """Save the draft immediately instead of waiting for autosave."""
        try:
            await _ensure_loaded()
            saved = await editor.save_now()
        except CareLogError as exc:
            return _error(exc)
        return json.dumps(
            {
                "status": "saved" if saved else "unchanged",
                "autosave": editor.autosave.as_dict(),
            },
            indent=2,
        )

    @mcp.tool
    async def autosave_status(ctx: Context) -> str:
        """Current autosave state: idle, pending, saving or error."""
        if not editor.loaded:
            return json.dumps({"state": "not_loaded"}, indent=2)
        return json.dumps(editor.autosave.as_dict(), indent=2)

    @mcp.tool
    async def share_section(ctx: Context, section: str) -> str:
        """Share one section group of today's draft with family.

        The latest edits are saved first. Sharing a group again refreshes
        its timestamp; other groups are unaffected.

        Args:
            section: One of 'morning', 'afternoon', 'evening', 'dailySummary'.
        """
        try:
            await _ensure_loaded()
            completed = await editor.share_section(section)
        except CareLogError as exc:
            return _error(exc)
        return json.dumps(
            {
                "status": "shared",
                "section": section,
                "draft_id": editor.draft.id,
                "completedSections": dump_completed_sections(completed),
            },
            indent=2,
        )

    @mcp.tool
    async def submit_care_log(ctx: Context) -> str:
        """Submit today's care log. Locks the draft against further edits.

        Refused while any section still has missing required fields; the
        response lists them per section.
        """
        try:
            await _ensure_loaded()
            log_id = await editor.submit()
        except CareLogError as exc:
            return _error(exc)
        return json.dumps(
            {"status": "submitted", "draft_id": log_id},
            indent=2,
        )

    @mcp.tool
    async def care_log_history(ctx: Context, log_id: str = "") -> str:
        """Audit trail of a care log: who created, saved, shared and submitted it.

        Args:
            log_id: Care log id. Defaults to today's draft.
        """
        if not log_id:
            try:
                await _ensure_loaded()
            except CareLogError as exc:
                return _error(exc)
            log_id = editor.draft.id or ""
        if not log_id:
            return json.dumps(
                {"status": "not_saved", "message": "Today's draft has not been saved yet."},
                indent=2,
            )
        try:
            entries = await repository.history(log_id)
        except RepositoryNotFoundError:
            return json.dumps(
                {"status": "not_found", "log_id": log_id, "message": "No care log with that ID."},
                indent=2,
            )
        except DraftRepositoryError as exc:
            return _repository_error(exc)
        return json.dumps(
            {"log_id": log_id, "entry_count": len(entries), "history": entries},
            indent=2,
        )

    @mcp.tool
    async def family_view(
        ctx: Context,
        care_recipient_id: str = "",
        log_date: str = "",
    ) -> str:
        """What family members see for a care recipient's day.

        Submitted logs are shown in full; drafts only expose the section
        groups the caregiver has shared.

        Args:
            care_recipient_id: Defaults to the configured care recipient.
            log_date: YYYY-MM-DD. Defaults to today's draft date.
        """
        recipient = care_recipient_id or editor.session.care_recipient_id or ""
        if not recipient:
            return json.dumps(
                {"status": "error", "message": "No care recipient given or configured."},
                indent=2,
            )
        day = log_date
        if not day:
            try:
                await _ensure_loaded()
            except CareLogError as exc:
                return _error(exc)
            day = editor.draft.log_date
        try:
            document = await repository.get_by_recipient_date(recipient, day)
        except DraftRepositoryError as exc:
            return _repository_error(exc)

        view = build_family_view(document)
        if view is None:
            return json.dumps(
                {
                    "status": "nothing_shared",
                    "care_recipient_id": recipient,
                    "log_date": day,
                    "message": "No care log has been shared for this day yet.",
                },
                indent=2,
            )
        return json.dumps({"status": "ok", "log": view}, indent=2)

    @mcp.tool
    async def invalidate_care_log(
        ctx: Context,
        log_id: str,
        reason: str,
        invalidated_by: str,
    ) -> str:
        """Family admin action: hand a submitted care log back to the caregiver.

        The submitted log is kept as it was; the caregiver continues in a new
        draft for the same day carrying the previous values.

        Args:
            log_id: The submitted care log.
            reason: Why the log needs to be redone. Required.
            invalidated_by: Id of the family member taking the action.
        """
        if not reason.strip():
            return json.dumps(
                {"status": "error", "message": "An invalidation reason is required."},
                indent=2,
            )
        try:
            document = await repository.invalidate(
                log_id, reason, invalidated_by=invalidated_by
            )
        except RepositoryNotFoundError:
            return json.dumps(
                {"status": "not_found", "log_id": log_id, "message": "No care log with that ID."},
                indent=2,
            )
        except DraftRepositoryError as exc:
            return _repository_error(exc)

        logger.info("Care log %s invalidated by %s", log_id, invalidated_by)
        if editor.loaded and editor.draft.id == log_id:
            try:
                await editor.load()
            except CareLogError as exc:
                logger.warning("Could not reload care log after invalidation: %s", exc)
        return json.dumps(
            {"status": "invalidated", "log_id": log_id, "log": document},
            indent=2,
        )
