"""Terminal surface backed by the host process's own TTY."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
import signal
import sys
import termios
import tty
from typing import Any, TextIO

from sfconsole.terminal.ansi import CLEAR_SCREEN
from sfconsole.terminal.base import KeyPress, Terminal

logger = logging.getLogger(__name__)

_CTRL_C = "\x03"
_ESCAPE = "\x1b"


class StdioTerminal(Terminal):
    """Puts stdin in raw mode and relays it as surface events.

    - stdin bytes become ``data`` events; a lone ESC or Ctrl-C becomes a
      ``key`` event (the interrupt chord)
    - ``SIGWINCH`` becomes a ``resize`` event
    - output is written straight to stdout

    ``open()`` must be called from inside the running event loop;
    ``close()`` restores the original TTY mode.
    """

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        size = shutil.get_terminal_size()
        super().__init__(rows=size.lines, cols=size.columns)
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._saved_mode: list[Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def open(self) -> StdioTerminal:
        self._loop = asyncio.get_running_loop()
        fd = self._stdin.fileno()
        if os.isatty(fd):
            self._saved_mode = termios.tcgetattr(fd)
            tty.setraw(fd)
        self._loop.add_reader(fd, self._on_input)
        try:
            self._loop.add_signal_handler(signal.SIGWINCH, self._on_winch)
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGWINCH handler unavailable; resize events disabled")
        return self

    def close(self) -> None:
        if self._loop is None:
            return
        fd = self._stdin.fileno()
        self._loop.remove_reader(fd)
        try:
            self._loop.remove_signal_handler(signal.SIGWINCH)
        except (NotImplementedError, RuntimeError):
            pass
        if self._saved_mode is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None
        self._loop = None

    def __enter__(self) -> StdioTerminal:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.show_cursor()
        self.close()

    def write(self, text: str) -> None:
        self._stdout.write(text)
        self._stdout.flush()

    def clear(self) -> None:
        self.write(CLEAR_SCREEN)

    def _on_input(self) -> None:
        fd = self._stdin.fileno()
        try:
            data = os.read(fd, 1024)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            logger.debug("stdin read failed: %s", e)
            self._stop_reading(fd)
            return
        if not data:
            logger.debug("stdin reached EOF")
            self._stop_reading(fd)
            return
        # Multi-byte characters may arrive split across reads
        text = self._decoder.decode(data)
        if not text:
            return
        if text == _ESCAPE:
            self.emit("key", KeyPress(code="Escape"))
        elif text == _CTRL_C:
            self.emit("key", KeyPress(code="KeyC", ctrl=True))
        else:
            self.emit("data", text)

    def _stop_reading(self, fd: int) -> None:
        if self._loop is not None:
            self._loop.remove_reader(fd)

    def _on_winch(self) -> None:
        size = shutil.get_terminal_size()
        self._rows, self._cols = size.lines, size.columns
        self.emit("resize", self._rows, self._cols)
