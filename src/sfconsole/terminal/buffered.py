"""In-memory terminal surface."""

from __future__ import annotations

from sfconsole.terminal.base import KeyPress, Terminal
from sfconsole.terminal.scrollback import Scrollback


class BufferedTerminal(Terminal):
    """A surface that records output into a ``Scrollback``.

    Used to capture the output of background processes (the command
    listing) and as a scriptable surface: ``type()``, ``press()``,
    ``send_signal()`` and ``resize()`` act as the user would.
    """

    def __init__(self, rows: int = 24, cols: int = 80, max_lines: int = 10_000) -> None:
        super().__init__(rows=rows, cols=cols)
        self.scrollback = Scrollback(max_lines=max_lines)
        self.cursor_visible = False
        self.focused = False
        self._selection = ""

    def write(self, text: str) -> None:
        self.scrollback.write(text)

    def show_cursor(self) -> None:
        self.cursor_visible = True
        super().show_cursor()

    def hide_cursor(self) -> None:
        self.cursor_visible = False
        super().hide_cursor()

    def clear(self) -> None:
        self.scrollback.clear()
        self._selection = ""

    def focus(self) -> None:
        self.focused = True

    def get_selection(self) -> str:
        return self._selection

    def select_all(self) -> None:
        self._selection = self.scrollback.read_all()

    @property
    def text(self) -> str:
        """Everything written so far, ANSI stripped."""
        return self.scrollback.read_all()

    # User-side actions

    def type(self, text: str) -> None:
        self.emit("data", text)

    def press(self, code: str, ctrl: bool = False) -> None:
        self.focused = False
        self.emit("key", KeyPress(code=code, ctrl=ctrl))

    def send_signal(self, sig: str | int) -> None:
        self.emit("signal", sig)

    def resize(self, rows: int, cols: int) -> None:
        self._rows, self._cols = rows, cols
        self.emit("resize", rows, cols)
