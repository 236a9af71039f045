"""
Quillpost Backend — Auto-Save Controller
=========================================

What:  Per-editing-session state machine that turns a stream of content
       changes into draft snapshots: trailing-edge debounce, an independent
       periodic forced save, an unload hook, and version recovery.
How:   Runs on the asyncio event loop. The debounce is a `loop.call_later`
       handle re-armed on every change; the periodic timer is its own task.
       Both funnel into save(), which is serialized by one asyncio.Lock and
       persists through a TieredDraftWriter (server first, local fallback).
Who:   Editor sessions; exercised directly by the test suite.

State Machine:
    IDLE ──change──▶ EDITING ──arm debounce──▶ PENDING_SAVE
      ▲                                             │ debounce fires / tick
      │                                             ▼
      └──────────── IDLE ◀── success ──────────── SAVING
                     ▲                              │ server or both tiers fail
                     └──────────── SAVE_FAILED ◀────┘

Ordering:
    Saves never overlap: whichever trigger takes the lock first saves the
    content current at that moment; the next one sees the newer content.
    Bookkeeping (last_saved_content, last_saved_at) therefore reflects the
    save that completed last. has_unsaved_changes only clears when no edit
    arrived while the save was in flight.
"""

import asyncio
import inspect
import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set, Union

from quillpost.config import settings
from quillpost.exceptions import QuillpostError
from quillpost.schemas.draft import Document, DraftSnapshot
from quillpost.services.draft_writer import TieredDraftWriter, merge_versions

logger = logging.getLogger(__name__)

UNLOAD_PROMPT = "You have unsaved changes. Are you sure you want to leave?"

SaveCallback = Callable[[str], Union[None, Awaitable[None]]]
NotifyCallback = Callable[[str, str], Any]


class AutoSaveState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    PENDING_SAVE = "pending_save"
    SAVING = "saving"
    SAVE_FAILED = "save_failed"


class AutoSaveController:
    """
    Auto-save state for one Document.

    Usage:
        controller = AutoSaveController(document, writer, notify=toast)
        await controller.start()
        controller.on_change("<p>Hello</p>")
        ...
        await controller.close()

    Args:
        document:          the live Document; mutated only by edits and recovery
        writer:            two-tier writer (server primary, local fallback)
        on_save:           optional sync or async callable run before persistence
        notify:            optional callable(level, message) for transient notices
        debounce_seconds:  quiet period before a debounced save
        interval_seconds:  period of the forced-save timer
        show_indicator:    when False, successful saves are not announced
    """

    def __init__(
        self,
        document: Document,
        writer: TieredDraftWriter,
        on_save: Optional[SaveCallback] = None,
        notify: Optional[NotifyCallback] = None,
        debounce_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        show_indicator: bool = True,
    ):
        self.document = document
        self.writer = writer
        self.on_save = on_save
        self.notify = notify
        self.debounce_seconds = debounce_seconds or settings.autosave_debounce_seconds
        self.interval_seconds = interval_seconds or settings.autosave_interval_seconds
        self.show_indicator = show_indicator

        self.state = AutoSaveState.IDLE
        self.transitions: Deque[AutoSaveState] = deque([AutoSaveState.IDLE], maxlen=64)
        self.has_unsaved_changes = False
        # Content loaded into the editor counts as saved
        self.last_saved_content: str = document.serialized_content()
        self.last_saved_at: Optional[datetime] = None
        self.versions: List[DraftSnapshot] = []

        self._lock = asyncio.Lock()
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._save_tasks: Set[asyncio.Task] = set()
        self._edit_generation = 0
        self._closed = False

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load the version list and start the periodic timer."""
        await self.load_versions()
        if self._periodic_task is None:
            self._periodic_task = asyncio.create_task(self._periodic())

    async def close(self) -> None:
        """
        Cancel both timers. Saves already in flight still persist, but their
        completion no longer touches controller state.
        """
        self._closed = True
        self._cancel_debounce()
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ── Edits ─────────────────────────────────────────────────────────────

    def on_change(self, content: Union[str, dict]) -> None:
        """Record an edit and re-arm the trailing-edge debounce."""
        if self._closed:
            return
        self.document.content = content
        self._edit_generation += 1
        self.has_unsaved_changes = True
        self._set_state(AutoSaveState.EDITING)

        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce_seconds, self._on_debounce)
        self._set_state(AutoSaveState.PENDING_SAVE)

    def before_unload(self) -> Optional[str]:
        """
        Page-exit hook.

        Returns the confirmation prompt and schedules a save when there are
        unsaved changes; returns None otherwise.
        """
        if not self.has_unsaved_changes:
            return None
        self._cancel_debounce()
        self._spawn_save()
        return UNLOAD_PROMPT

    async def flush(self) -> None:
        """Wait for every save scheduled by timers or the unload hook."""
        while self._save_tasks:
            await asyncio.gather(*list(self._save_tasks), return_exceptions=True)

    # ── Timers ────────────────────────────────────────────────────────────

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _on_debounce(self) -> None:
        self._debounce_handle = None
        self._spawn_save()

    def _spawn_save(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.save())
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)
        return task

    async def _periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if not self.has_unsaved_changes:
                continue
            logger.debug("Periodic auto-save tick with unsaved changes")
            try:
                await self.save()
            except Exception as e:
                # The timer keeps running; the next tick retries
                logger.error("Periodic auto-save failed: %s", str(e), exc_info=True)

    # ── Saving ────────────────────────────────────────────────────────────

    def _set_state(self, state: AutoSaveState) -> None:
        if self._closed:
            return
        self.state = state
        self.transitions.append(state)

    def _notify(self, level: str, message: str) -> None:
        if self.notify is None or self._closed:
            return
        try:
            self.notify(level, message)
        except Exception as e:
            logger.error("Notification callback failed: %s", str(e), exc_info=True)

    async def _run_on_save(self, content: str) -> None:
        if self.on_save is None:
            return
        try:
            result = self.on_save(content)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # The callback never blocks persistence
            logger.error("Save callback failed: %s", str(e), exc_info=True)

    async def save(self) -> Optional[DraftSnapshot]:
        """
        Persist the current content once.

        Returns the new snapshot, or None when there was nothing to save or
        both tiers failed.
        """
        async with self._lock:
            content = self.document.serialized_content()
            generation = self._edit_generation

            if content == self.last_saved_content:
                if not self._closed:
                    self.has_unsaved_changes = False
                    if self._debounce_handle is None:
                        self._set_state(AutoSaveState.IDLE)
                return None

            # Captured at lock acquisition; later edits belong to the next save
            captured = self.document.model_copy(deep=True)
            self._set_state(AutoSaveState.SAVING)

            await self._run_on_save(content)

            try:
                outcome = await self.writer.save(captured)
            except QuillpostError as e:
                logger.error("Draft save failed on every tier: %s", e.message)
                self._set_state(AutoSaveState.SAVE_FAILED)
                self._notify("error", "Failed to save draft")
                self._settle(generation)
                return None

            if self._closed:
                return outcome.snapshot

            self.last_saved_content = content
            self.last_saved_at = outcome.snapshot.created_at
            if generation == self._edit_generation:
                self.has_unsaved_changes = False
            self.versions = merge_versions([outcome.snapshot], self.versions, cap=self.writer.display_cap)

            if outcome.used_fallback:
                self._set_state(AutoSaveState.SAVE_FAILED)
            if self.show_indicator:
                self._notify("success", "Draft saved")
            self._settle(generation)
            logger.info("Draft saved via %s tier (%s)", outcome.tier, outcome.snapshot.id)
            return outcome.snapshot

    def _settle(self, generation: int) -> None:
        """Leave SAVING or SAVE_FAILED for wherever newer edits put us."""
        if generation != self._edit_generation and self._debounce_handle is not None:
            self._set_state(AutoSaveState.PENDING_SAVE)
        elif generation != self._edit_generation:
            self._set_state(AutoSaveState.EDITING)
        else:
            self._set_state(AutoSaveState.IDLE)

    # ── Versions & Recovery ───────────────────────────────────────────────

    async def load_versions(self) -> List[DraftSnapshot]:
        """Merged server + local VersionList; a failing server shows local only."""
        versions = await self.writer.list(self.document.post_id)
        if not self._closed:
            self.versions = versions
        return versions

    def recover(self, snapshot: DraftSnapshot) -> bool:
        """
        Replace the live content with `snapshot`'s content.

        Snapshot history is untouched and nothing is saved: the recovered
        content becomes a new snapshot only on the next explicit save().
        """
        try:
            content = self.document.restore_content(snapshot.content)
        except ValueError as e:
            logger.error("Error recovering draft version %s: %s", snapshot.id, str(e))
            self._notify("error", "Failed to recover draft version")
            return False

        self._cancel_debounce()
        self.document.content = content
        self._edit_generation += 1
        self.has_unsaved_changes = False
        self._set_state(AutoSaveState.IDLE)
        self._notify("success", "Draft version recovered")
        logger.info("Recovered draft version %s (%s)", snapshot.id, snapshot.origin.value)
        return True

    async def recover_latest(self) -> bool:
        versions = await self.load_versions()
        if not versions:
            self._notify("error", "Failed to recover draft version")
            return False
        return self.recover(versions[0])

    async def recover_by_id(self, draft_id: str) -> bool:
        snapshot = next((v for v in self.versions if v.id == draft_id), None)
        if snapshot is None:
            versions = await self.load_versions()
            snapshot = next((v for v in versions if v.id == draft_id), None)
        if snapshot is None:
            logger.warning("Draft version %s not found for recovery", draft_id)
            self._notify("error", "Failed to recover draft version")
            return False
        return self.recover(snapshot)
