"""Terminal surface: the interface a session is lent for the duration of a run."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from sfconsole.disposable import Disposable
from sfconsole.terminal.ansi import HIDE_CURSOR, SHOW_CURSOR

if TYPE_CHECKING:
    from sfconsole.pty.session import ProcessSession

logger = logging.getLogger(__name__)

# User-side events a surface emits:
#   data    (text: str)                 - typed or pasted input
#   resize  (rows: int, cols: int)      - new geometry
#   signal  (sig: str | int)            - explicit signal request
#   key     (key: KeyPress)             - raw key presses
EVENTS = frozenset({"data", "resize", "signal", "key"})


@dataclass(frozen=True)
class KeyPress:
    code: str  # DOM-style key code: "Escape", "KeyC", ...
    ctrl: bool = False

    @property
    def is_interrupt(self) -> bool:
        """Escape and Ctrl-C interrupt the running session."""
        return self.code == "Escape" or (self.code == "KeyC" and self.ctrl)


class Terminal(ABC):
    """A terminal surface shared by successive sessions.

    At most one session holds the surface at a time. ``acquire()`` hands
    the surface to a new session and returns the previous holder so the
    caller can tear it down before wiring up the new one.
    """

    def __init__(self, rows: int = 24, cols: int = 80) -> None:
        self._rows = rows
        self._cols = cols
        self._handlers: dict[str, list[Callable[..., Any]]] = {e: [] for e in EVENTS}
        self._session: ProcessSession | None = None

    # ------------------------------------------------------------------
    # Output side
    # ------------------------------------------------------------------

    @abstractmethod
    def write(self, text: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    def writeln(self, text: str) -> None:
        self.write(text + "\r\n")

    def focus(self) -> None:
        """Give keyboard focus back to the surface. No-op by default."""

    def show_cursor(self) -> None:
        self.write(SHOW_CURSOR)

    def hide_cursor(self) -> None:
        self.write(HIDE_CURSOR)

    def get_selection(self) -> str:
        return ""

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable[..., Any]) -> Disposable:
        """Register ``callback`` for a user-side event until disposed."""
        if event not in EVENTS:
            raise ValueError(f"Event {event!r} is not recognized")
        handlers = self._handlers[event]
        handlers.append(callback)

        def _off() -> None:
            if callback in handlers:
                handlers.remove(callback)

        return Disposable(_off)

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self._handlers[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in terminal %s handler", event)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._handlers[event])
        return sum(len(h) for h in self._handlers.values())

    # ------------------------------------------------------------------
    # Lease
    # ------------------------------------------------------------------

    @property
    def session(self) -> ProcessSession | None:
        """The session currently holding this surface."""
        return self._session

    def acquire(self, session: ProcessSession) -> ProcessSession | None:
        previous, self._session = self._session, session
        return previous if previous is not session else None

    def release(self, session: ProcessSession) -> None:
        if self._session is session:
            self._session = None
