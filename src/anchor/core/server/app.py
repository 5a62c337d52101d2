"""Anchor Care Log MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run anchor/core/server/app.py:mcp`)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Callable

from fastmcp import FastMCP

from anchor.core.api.client import HttpDraftRepository
from anchor.core.audit.history import HistoryLogger
from anchor.core.config.settings import Settings, get_settings
from anchor.core.storage.database import CareLogDatabase
from anchor.core.storage.encryption import DocumentEncryptor
from anchor.core.storage.local import LocalDraftRepository
from anchor.core.storage.repository import CareLogStore
from anchor.domains.care_log.domain_logic.medication_template import (
    MedicationTemplate,
    load_medication_template,
)
from anchor.domains.care_log.domain_logic.sections import DEFAULT_SECTIONS
from anchor.domains.care_log.engine.editor import CareLogEditor
from anchor.domains.care_log.engine.repository import DraftRepository
from anchor.domains.care_log.prompts.care_log_prompts import register_care_log_prompts
from anchor.domains.care_log.resources.care_log_resources import register_care_log_resources
from anchor.domains.care_log.session import CareSession
from anchor.domains.care_log.tools.care_log_tools import register_care_log_tools

logger = logging.getLogger(__name__)

_DEFAULT_LOCAL_CAREGIVER = "local-caregiver"


def _session_from_settings(settings: Settings) -> CareSession:
    date_of_birth: date | None = None
    if settings.care_recipient_dob:
        try:
            date_of_birth = date.fromisoformat(settings.care_recipient_dob)
        except ValueError:
            logger.warning(
                "CARE_RECIPIENT_DOB %r is not YYYY-MM-DD; using adult defaults for vitals",
                settings.care_recipient_dob,
            )
    if not settings.care_recipient_id:
        logger.warning(
            "No CARE_RECIPIENT_ID configured; saving and submitting are disabled"
        )
    return CareSession(
        caregiver_id=settings.caregiver_id or _DEFAULT_LOCAL_CAREGIVER,
        care_recipient_id=settings.care_recipient_id or None,
        token=settings.anchor_api_token,
        date_of_birth=date_of_birth,
        gender=settings.care_recipient_gender or None,
    )


def _create_repository(
    settings: Settings,
    session: CareSession,
    today: Callable[[], date],
) -> DraftRepository:
    if settings.repository_backend == "http":
        logger.info("Care log API configured at %s", settings.anchor_api_url)
        return HttpDraftRepository(
            settings.anchor_api_url,
            token=settings.anchor_api_token,
            timeout=settings.anchor_api_timeout_seconds,
        )

    if not settings.encryption_key:
        raise RuntimeError(
            "REPOSITORY_BACKEND=local requires ENCRYPTION_KEY. "
            "Generate one with DocumentEncryptor.generate_key()."
        )
    encryptor = DocumentEncryptor(settings.encryption_key)
    database = CareLogDatabase(settings.db_path)
    database.initialize()
    logger.info(
        "Local care log store initialized: %s (schema v%d, %d key(s))",
        settings.db_path,
        database.get_schema_version(),
        encryptor.key_count,
    )
    return LocalDraftRepository(
        CareLogStore(database, encryptor),
        HistoryLogger(database),
        caregiver_id=session.caregiver_id,
        today=today,
    )


def _repository_lifespan(repository: DraftRepository):
    """Server lifespan that releases the repository's connections on shutdown."""

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        try:
            yield {}
        finally:
            aclose = getattr(repository, "aclose", None)
            if aclose is not None:
                await aclose()
                logger.info("Closed care log repository connections")

    return lifespan


def create_app(
    *,
    repository_override: DraftRepository | None = None,
    session_override: CareSession | None = None,
    template_override: MedicationTemplate | None = None,
    today_override: Callable[[], date] | None = None,
) -> FastMCP:
    """Create and configure the Anchor Care Log MCP server.

    This is the main application factory. It:
    1. Builds the caregiver session from settings
    2. Loads the medication template
    3. Initializes the draft repository (care log API or local encrypted store)
    4. Creates the FastMCP server instance, whose lifespan closes the repository
    5. Creates the care log editor
    6. Registers all tools, resources, and prompts
    """
    settings = get_settings()
    today = today_override or date.today

    # --- Caregiver session ---
    session = session_override or _session_from_settings(settings)

    # --- Medication template ---
    if template_override is not None:
        template = template_override
    else:
        template = load_medication_template(settings.medication_template_path or None)

    # --- Draft repository ---
    if repository_override is not None:
        repository = repository_override
    else:
        repository = _create_repository(settings, session, today)
    backend = "override" if repository_override is not None else settings.repository_backend

    # --- Server instance ---
    server = FastMCP(
        "Anchor Care Log",
        instructions=(
            "Anchor daily care log server. Lets a caregiver fill in today's care "
            "log for an elderly care recipient, flags risky vitals, shares the "
            "morning, afternoon, evening and daily summary sections with family "
            "as they are completed, and submits the finished log."
        ),
        lifespan=_repository_lifespan(repository),
    )

    # --- Editor ---
    editor = CareLogEditor(
        repository,
        session,
        template=template,
        registry=DEFAULT_SECTIONS,
        autosave_interval=settings.autosave_interval_seconds,
        autosave_debounce=settings.autosave_debounce_seconds,
        today=today,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "Anchor Care Log",
            "version": "0.1.0",
            "repository_backend": backend,
            "care_recipient_configured": session.has_recipient,
            "sections": len(DEFAULT_SECTIONS),
            "scheduled_medications": len(template),
            "draft_loaded": editor.loaded,
        }
        if editor.loaded:
            status["autosave"] = editor.autosave.state.value
        return status

    register_care_log_tools(server, editor, repository)
    logger.info("Care log tools registered (backend=%s)", backend)

    # --- Register resources ---
    register_care_log_resources(server, DEFAULT_SECTIONS, template)

    # --- Register prompts ---
    register_care_log_prompts(server)

    return server


# Module-level instance for FastMCP discovery (`fastmcp run ...app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
