"""Shared fixtures: fake console projects driven by /bin/sh."""

from __future__ import annotations

import asyncio
import json
import subprocess
from pathlib import Path
from typing import Callable

import pytest

from sfconsole.config import ConsoleConfig
from sfconsole.pty.session import ProcessSession, SessionState

CACHE_CLEAR_LIST = {
    "commands": [
        {
            "name": "cache:clear",
            "description": "Clears cache",
            "usage": ["cache:clear"],
            "definition": {"arguments": {}, "options": {}},
        }
    ]
}

# Every invocation is logged to calls.log next to bin/, so tests can count
# spawns. Argument handling:
#   list --format=json  -> print list.json (after LIST_DELAY seconds)
#   sleep               -> exec sleep 30 (the pid becomes sleep's)
#   echo ARGS...        -> print ARGS
#   fail N              -> exit N
CONSOLE_SCRIPT = """\
here=$(cd "$(dirname "$0")/.." && pwd)
echo "$*" >> "$here/calls.log"
case "$1" in
  list)
    sleep "${LIST_DELAY:-0}"
    if [ -f "$here/list.err" ]; then cat "$here/list.err" >&2; exit 1; fi
    cat "$here/list.json"
    ;;
  sleep) exec sleep 30 ;;
  echo) shift; echo "$*" ;;
  fail) exit "$2" ;;
  *) echo "unknown command $1" >&2; exit 1 ;;
esac
"""


class FakeConsole:
    """A project root with a shell-script console at bin/console."""

    def __init__(self, root: Path, binary: str = "bin/console") -> None:
        self.root = root
        self.binary = root / binary
        self.binary.parent.mkdir(parents=True, exist_ok=True)
        self.binary.write_text(CONSOLE_SCRIPT)
        self.set_list(CACHE_CLEAR_LIST)

    def set_list(self, payload: dict | str) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        (self.root / "list.json").write_text(text)

    def fail_list(self, message: str) -> None:
        (self.root / "list.err").write_text(message)

    def heal_list(self) -> None:
        (self.root / "list.err").unlink(missing_ok=True)

    @property
    def calls(self) -> list[str]:
        log = self.root / "calls.log"
        if not log.exists():
            return []
        return log.read_text().splitlines()


@pytest.fixture
def sh_config() -> ConsoleConfig:
    return ConsoleConfig(interpreter_path="/bin/sh", drain_timeout=2.0)


@pytest.fixture
def make_console(tmp_path: Path) -> Callable[..., FakeConsole]:
    def _make(name: str = "app", binary: str = "bin/console") -> FakeConsole:
        return FakeConsole(tmp_path / name, binary=binary)

    return _make


@pytest.fixture
def console(make_console: Callable[..., FakeConsole]) -> FakeConsole:
    return make_console()


async def wait_running(session_or_getter, timeout: float = 5.0) -> ProcessSession:
    """Wait until a session (or the session returned by a getter) is RUNNING."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        session = session_or_getter() if callable(session_or_getter) else session_or_getter
        if session is not None and session.state is SessionState.RUNNING:
            return session
        await asyncio.sleep(0.01)
    raise AssertionError("session never started")


async def wait_for_text(terminal, needle: str, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while needle not in terminal.text:
        if loop.time() > deadline:
            raise AssertionError(f"{needle!r} never appeared in {terminal.text!r}")
        await terminal.scrollback.wait_for_data(timeout=0.1)


def reap(proc: subprocess.Popen | None) -> None:
    """Make sure a child started by a test does not outlive it."""
    if proc is not None and proc.poll() is None:
        proc.kill()
        proc.wait(timeout=5)
