"""Wire protocol: decouples project/session lifecycles from the UI.

Events flow from the project manager, projects and sessions to whoever
renders them. Consumers either register a synchronous callback for one
event type with ``on()`` or subscribe an asyncio queue that receives
every event with ``subscribe()``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from sfconsole.disposable import Disposable

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    PROJECTS_CHANGED = "projects_changed"
    COMMANDS_UPDATED = "commands_updated"
    SESSION_BEGIN = "session_begin"
    SESSION_END = "session_end"
    ERROR = "error"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Single-producer, multi-consumer broadcast bus."""

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._handlers: dict[EventType, list[Callable[[WireEvent], None]]] = {}
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all handlers and subscribers.

        Silently drops events after ``close()`` has been called. A handler
        that raises is logged and does not stop delivery to the others.
        """
        if self._closed:
            return
        for handler in list(self._handlers.get(event.type, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("Error in %s handler", event.type.value)
        for q in self._subscribers:
            q.put_nowait(event)

    def send_projects_changed(self, roots: list[str]) -> None:
        self.send(WireEvent(type=EventType.PROJECTS_CHANGED, data={"roots": roots}))

    def send_commands_updated(self, root: str, names: list[str]) -> None:
        self.send(
            WireEvent(
                type=EventType.COMMANDS_UPDATED,
                data={"root": root, "names": names},
            )
        )

    def send_session_begin(self, session_id: str, root: str, command: list[str]) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_BEGIN,
                data={"session_id": session_id, "root": root, "command": command},
            )
        )

    def send_session_end(
        self,
        session_id: str,
        root: str,
        exit_code: int | None,
        signal: str | None = None,
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_END,
                data={
                    "session_id": session_id,
                    "root": root,
                    "exit_code": exit_code,
                    "signal": signal,
                },
            )
        )

    def send_error(self, error: str, root: str = "") -> None:
        self.send(WireEvent(type=EventType.ERROR, data={"error": error, "root": root}))

    def on(self, event_type: EventType, handler: Callable[[WireEvent], None]) -> Disposable:
        """Call ``handler`` for every event of ``event_type`` until disposed."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def _off() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return Disposable(_off)

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def handler_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, ()))

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        self._handlers.clear()
        for q in self._subscribers:
            q.put_nowait(None)
