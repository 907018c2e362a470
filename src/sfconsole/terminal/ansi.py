"""ANSI escape helpers for terminal surfaces."""

from __future__ import annotations

import re

SHOW_CURSOR = "\x1b[?25h"
HIDE_CURSOR = "\x1b[?25l"
CLEAR_SCREEN = "\x1b[2J\x1b[3J\x1b[H"

_COLORS = {
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
}

# CSI sequences (including private-mode ``?`` parameters) and OSC titles
_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]|\x1b\][^\x07]*\x07")


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def colorize(text: str, color: str) -> str:
    return f"\x1b[{_COLORS[color]}m{text}\x1b[0m"
