"""Rolling scrollback for in-memory terminal surfaces."""

from __future__ import annotations

import asyncio
import threading
from collections import deque

from sfconsole.terminal.ansi import strip_ansi


class Scrollback:
    """Thread-safe rolling buffer of ANSI-stripped terminal output lines.

    Writes arrive as arbitrary chunks, not lines: a chunk without a
    trailing newline leaves the last line open and the next chunk
    continues it. ``\\r\\n`` (what a pty produces) counts as one line break.

    The open line is also kept raw so an escape sequence split across two
    chunks is still stripped once its tail arrives.

    An ``asyncio.Event`` is set whenever data arrives so consumers can
    ``await wait_for_data()`` instead of polling. Call ``attach_loop()``
    once from the asyncio thread to enable this.
    """

    def __init__(self, max_lines: int = 10_000) -> None:
        self._lines: deque[str] = deque([""], maxlen=max_lines)
        self._open_raw = ""
        self._lock = threading.Lock()
        self._data_event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach an asyncio event loop so ``write()`` can signal waiters."""
        self._loop = loop or asyncio.get_running_loop()
        self._data_event = asyncio.Event()

    def write(self, text: str) -> None:
        """Append a chunk of terminal output."""
        if not text:
            return
        pieces = text.replace("\r\n", "\n").split("\n")
        with self._lock:
            self._open_raw += pieces[0]
            self._lines[-1] = strip_ansi(self._open_raw)
            for piece in pieces[1:]:
                self._open_raw = piece
                self._lines.append(strip_ansi(piece))
        if self._data_event is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._data_event.set)

    async def wait_for_data(self, timeout: float | None = None) -> bool:
        """Wait until new data is written (or timeout).

        Returns True if data arrived, False on timeout.
        """
        if self._data_event is None:
            self.attach_loop()
        assert self._data_event is not None
        try:
            await asyncio.wait_for(self._data_event.wait(), timeout=timeout)
            self._data_event.clear()
            return True
        except asyncio.TimeoutError:
            return False

    def read_all(self) -> str:
        """All buffered text as a single string."""
        with self._lock:
            return "\n".join(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
            self._lines.append("")
            self._open_raw = ""
