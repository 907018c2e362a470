"""Terminal surfaces: where a session's I/O is rendered and user input comes from."""

from sfconsole.terminal.base import KeyPress, Terminal
from sfconsole.terminal.buffered import BufferedTerminal
from sfconsole.terminal.scrollback import Scrollback
from sfconsole.terminal.stdio import StdioTerminal

__all__ = [
    "BufferedTerminal",
    "KeyPress",
    "Scrollback",
    "StdioTerminal",
    "Terminal",
]
