"""PTY process sessions: one interactive child process per run.

Every command runs on its own pseudo-terminal in its own process group,
streams its output to a terminal surface, and is torn down completely
(subscriptions, pty, process) when it exits or is killed.
"""

from sfconsole.pty.session import ProcessSession, SessionState, coerce_signal

__all__ = [
    "ProcessSession",
    "SessionState",
    "coerce_signal",
]
