"""Error taxonomy for discovery, listing, and session lifecycles."""

from __future__ import annotations

import signal as _signal
from collections.abc import Sequence


class ConsoleError(Exception):
    """Base class for every error raised by sfconsole."""


class NotFoundError(ConsoleError, KeyError):
    """A project was requested for a root that is not tracked."""

    def __init__(self, root: object) -> None:
        super().__init__(f"A project for '{root}' cannot be found!")
        self.root = root

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class SpawnError(ConsoleError):
    """The OS failed to create the child process or its pty."""

    def __init__(self, command: Sequence[str], error: OSError) -> None:
        super().__init__(f"Failed to spawn {command[0] if command else '?'}: {error}")
        self.command = list(command)
        self.error = error


class ParseError(ConsoleError):
    """The ``list`` output was not a valid command catalog."""

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class ListFailure(ConsoleError):
    """Fetching the command list failed (non-zero exit or bad JSON)."""

    def __init__(
        self,
        output: str,
        exit_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        if reason:
            message = reason
        elif output:
            message = output
        elif exit_code is not None:
            message = f"The console process exited with code {exit_code}"
        else:
            message = "The console process produced no command list"
        super().__init__(message)
        self.output = output
        self.exit_code = exit_code


class SignalTermination(ConsoleError):
    """A session ended because a signal was delivered through ``kill()``."""

    def __init__(self, sig: _signal.Signals) -> None:
        super().__init__(f"Process terminated by {sig.name}")
        self.signal = sig

    @property
    def silent(self) -> bool:
        """SIGKILL is how sessions are superseded and torn down; it is not reported."""
        return self.signal == _signal.SIGKILL
