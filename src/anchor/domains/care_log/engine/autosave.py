"""Autosave scheduler — debounced and periodic persistence of the draft.

State machine::

    idle ──mark_dirty──▶ pending ──debounce / tick──▶ saving ──ok──▶ idle
      ▲                     ▲                           │
      │                     └──────── mark_dirty ───────┤ (still dirty)
      └──────────── tick (retry) ◀── error ◀────fail────┘

All persist calls go through one ``asyncio.Lock``: at most one request is in
flight, and a save queued behind the first create reuses the id that create
returned instead of creating a second document. A queued save whose edits
were already sent by an earlier call is skipped.

The scheduler remembers which top-level keys the server holds. A key that
was sent before and is empty now goes out as its empty value, so clearing a
field in the draft clears it on the server too.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from anchor.domains.care_log.domain_logic.reconciler import dump_draft
from anchor.domains.care_log.engine.repository import DraftRepository, DraftRepositoryError
from anchor.domains.care_log.errors import IdentityError, TransientNetworkError
from anchor.domains.care_log.models import CareLogDraft
from anchor.domains.care_log.session import CareSession

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_DEBOUNCE_SECONDS = 2.0


class AutosaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    ERROR = "error"


class AutosaveScheduler:
    """Owns the live draft and keeps the server copy in step with it.

    Usage::

        scheduler = AutosaveScheduler(repository, session, draft)
        scheduler.start()
        scheduler.mark_dirty()      # after every edit
        await scheduler.flush()     # before submitting
        scheduler.stop()
        await scheduler.drain()
    """

    def __init__(
        self,
        repository: DraftRepository,
        session: CareSession,
        draft: CareLogDraft,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._repo = repository
        self._session = session
        self._draft = draft
        self._interval = interval
        self._debounce = debounce

        self._lock = asyncio.Lock()
        self._generation = 0
        self._saved_generation = 0
        # A hydrated draft matches the stored document
        self._held_keys: set[str] = set(dump_draft(draft)) if draft.id is not None else set()

        self._interval_task: asyncio.Task | None = None
        self._debounce_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

        self.state = AutosaveState.IDLE
        self.last_error: Exception | None = None
        self.last_saved_at: str | None = None
        self.save_count = 0

    # ------------------------------------------------------------------
    # Draft ownership
    # ------------------------------------------------------------------

    @property
    def draft(self) -> CareLogDraft:
        return self._draft

    @draft.setter
    def draft(self, value: CareLogDraft) -> None:
        self._draft = value

    @property
    def enabled(self) -> bool:
        """False once the draft is locked or no care recipient is known."""
        return (
            not self._draft.is_locked
            and self._session.has_recipient
            and bool(self._draft.care_recipient_id)
        )

    @property
    def dirty(self) -> bool:
        return self._generation > self._saved_generation

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Record an edit and restart the debounce window."""
        if not self.enabled:
            logger.debug("Autosave disabled; ignoring edit on draft %s", self._draft.id)
            return
        self._generation += 1
        if self.state != AutosaveState.SAVING:
            self.state = AutosaveState.PENDING
        self._restart_debounce()

    async def tick(self) -> bool:
        """One timer tick: save if there is anything unsent or a failure to retry.

        Failures are recorded on ``state`` / ``last_error`` and never raised.
        """
        if not (self.dirty or self.state == AutosaveState.ERROR):
            return False
        try:
            return await self._persist()
        except (TransientNetworkError, IdentityError):
            return False

    async def flush(self) -> bool:
        """Send the latest snapshot now.

        Returns:
            True if a persist call was made, False if there was nothing to send
            or the draft is locked.

        Raises:
            IdentityError: If no care recipient is associated.
            TransientNetworkError: If the repository call failed.
        """
        if not self._session.has_recipient or not self._draft.care_recipient_id:
            raise IdentityError("No care recipient is associated with this caregiver")
        return await self._persist()

    async def _persist(self) -> bool:
        async with self._lock:
            draft = self._draft
            if not self.enabled:
                if not self._draft.is_locked:
                    raise IdentityError("No care recipient is associated with this caregiver")
                return False
            generation = self._generation
            if generation <= self._saved_generation and draft.id is not None:
                # Already sent by an earlier call
                self.state = AutosaveState.IDLE
                return False

            self.state = AutosaveState.SAVING
            held = set(dump_draft(draft))
            payload = dump_draft(draft, clear=self._held_keys)
            try:
                if draft.id is None:
                    document = await self._repo.create(payload)
                    # Edits may have swapped in a new draft object meanwhile
                    self._draft.id = str(document["id"])
                    logger.info("Created care log draft %s", self._draft.id)
                else:
                    await self._repo.update(draft.id, payload)
            except DraftRepositoryError as exc:
                self.state = AutosaveState.ERROR
                self.last_error = exc
                logger.warning("Autosave failed for draft %s: %s", draft.id, exc)
                raise TransientNetworkError(f"Autosave failed: {exc}") from exc

            self._saved_generation = max(self._saved_generation, generation)
            self._held_keys = held
            self.last_error = None
            self.last_saved_at = datetime.now(timezone.utc).isoformat()
            self.save_count += 1
            self.state = AutosaveState.PENDING if self.dirty else AutosaveState.IDLE
            logger.debug("Autosaved draft %s (generation %d)", self._draft.id, generation)
            return True

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic save loop on the running event loop."""
        if self._interval_task is None or self._interval_task.done():
            self._interval_task = asyncio.get_running_loop().create_task(self._interval_loop())

    def stop(self) -> None:
        """Cancel timers. A save already in flight is left to finish."""
        for task in (self._interval_task, self._debounce_task):
            if task is not None and not task.done():
                task.cancel()
        self._interval_task = None
        self._debounce_task = None

    async def drain(self) -> None:
        """Wait for in-flight saves started by the timers."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    @property
    def running(self) -> bool:
        return self._interval_task is not None and not self._interval_task.done()

    def _restart_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller); the next tick picks the edit up
            return
        self._debounce_task = loop.create_task(self._debounce_then_save())

    async def _debounce_then_save(self) -> None:
        await asyncio.sleep(self._debounce)
        self._spawn_save()

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._spawn_save()

    def _spawn_save(self) -> None:
        task = asyncio.get_running_loop().create_task(self.tick())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def as_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "enabled": self.enabled,
            "dirty": self.dirty,
            "draft_id": self._draft.id,
            "last_saved_at": self.last_saved_at,
            "last_error": str(self.last_error) if self.last_error else None,
            "save_count": self.save_count,
        }
