"""Per-folder progress state with publish/subscribe.

Every ``update_progress`` call merges a patch into the folder's last state
and publishes it as an ``update`` event; ``clear_progress`` drops the state
and publishes ``clear``. Milestones (``chunks:complete``,
``embedding:complete``, ``embedding:error``) go through ``emit``.

Handlers run synchronously on the caller's thread. A failing handler is
logged and never stops the others.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from folderindex.folders import folder_events

logger = logging.getLogger(__name__)

PHASES = ("idle", "parsing", "summarizing", "embedding", "completed", "error")
TERMINAL_PHASES = frozenset(["completed", "error"])

UPDATE = "update"
CLEAR = "clear"
CHUNKS_COMPLETE = "chunks:complete"
EMBEDDING_COMPLETE = "embedding:complete"
EMBEDDING_ERROR = "embedding:error"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ProgressState:
    folder_name: str
    phase: str = "idle"
    total_files: int = 0
    processed_files: int = 0
    total_tokens_output: int = 0
    message: str | None = None
    error: str | None = None
    started_at: str = dataclasses.field(default_factory=_now)
    updated_at: str = dataclasses.field(default_factory=_now)

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


@dataclass(frozen=True)
class ProgressEvent:
    """One item yielded by ``ProgressBroadcaster.listen``."""

    kind: str  # "update" | "clear"
    folder_name: str
    state: ProgressState | None = None


class ProgressBroadcaster:
    """Last-value progress store and event bus.

    Args:
        on_change: Called with the folder name when a folder reaches
            ``completed`` or ``error``.
    """

    def __init__(self, on_change: Callable[[str], None] | None = None) -> None:
        self._states: dict[str, ProgressState] = {}
        self._handlers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self._queues: dict[str, list[asyncio.Queue[ProgressEvent]]] = defaultdict(list)
        self.on_change = on_change

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def update_progress(self, folder_name: str, **patch: Any) -> ProgressState:
        """Merge *patch* into *folder_name*'s state, publish ``update`` and return it.

        Raises:
            ValueError: On an unknown field or phase.
        """
        if "phase" in patch and patch["phase"] not in PHASES:
            raise ValueError(f"Unknown phase '{patch['phase']}'")
        previous = self._states.get(folder_name) or ProgressState(folder_name=folder_name)
        try:
            state = dataclasses.replace(
                previous, **patch, folder_name=folder_name, updated_at=_now()
            )
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

        self._states[folder_name] = state
        self.emit(UPDATE, state)
        self._enqueue(ProgressEvent(UPDATE, folder_name, state))

        if patch.get("phase") in TERMINAL_PHASES and self.on_change is not None:
            try:
                self.on_change(folder_name)
            except Exception:
                logger.exception("[%s] folder change hook failed", folder_name)
        return state

    def clear_progress(self, folder_name: str) -> None:
        """Forget *folder_name*'s state and publish ``clear`` if there was one."""
        if self._states.pop(folder_name, None) is None:
            return
        self.emit(CLEAR, {"folder_name": folder_name})
        self._enqueue(ProgressEvent(CLEAR, folder_name))

    def get_progress(self, folder_name: str) -> ProgressState | None:
        return self._states.get(folder_name)

    def all_progress(self) -> list[ProgressState]:
        return list(self._states.values())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Call *handler* with the payload of every *event*; returns an unsubscribe function."""
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Progress handler for '%s' failed", event)

    async def listen(self, folder_name: str) -> AsyncIterator[ProgressEvent]:
        """Yield *folder_name*'s events until a ``clear`` or a terminal update.

        The current state, if any, is yielded first.
        """
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        self._queues[folder_name].append(queue)
        try:
            current = self._states.get(folder_name)
            if current is not None:
                yield ProgressEvent(UPDATE, folder_name, current)
                if current.is_terminal:
                    return
            while True:
                event = await queue.get()
                yield event
                if event.kind == CLEAR or (event.state is not None and event.state.is_terminal):
                    return
        finally:
            queues = self._queues.get(folder_name, [])
            if queue in queues:
                queues.remove(queue)
            if not queues:
                self._queues.pop(folder_name, None)

    def _enqueue(self, event: ProgressEvent) -> None:
        for queue in self._queues.get(event.folder_name, ()):
            queue.put_nowait(event)

    def reset(self) -> None:
        """Drop all states, handlers and listeners."""
        self._states.clear()
        self._handlers.clear()
        self._queues.clear()


# Process-wide instance used by the scheduler and the CLI.
broadcaster = ProgressBroadcaster(on_change=folder_events.notify_change)
