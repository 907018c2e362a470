"""Process session: one external command attached to a pseudo-terminal."""

from __future__ import annotations

import asyncio
import codecs
import enum
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import termios
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sfconsole.disposable import CompositeDisposable, Disposable
from sfconsole.errors import SignalTermination, SpawnError
from sfconsole.terminal.base import KeyPress

if TYPE_CHECKING:
    from sfconsole.terminal.base import Terminal

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    """Lifecycle states for a process session."""

    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    TERMINATING = "terminating"  # Exited or kill requested, tearing down
    TERMINATED = "terminated"


def coerce_signal(sig: str | int | signal.Signals) -> signal.Signals:
    """Accept ``"SIGTERM"``, ``"TERM"``, ``15`` or ``signal.SIGTERM``."""
    if isinstance(sig, str):
        name = sig.upper()
        return signal.Signals[name if name.startswith("SIG") else f"SIG{name}"]
    return signal.Signals(sig)


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(): make the pty slave (fd 0) its
    # controlling terminal so resizes deliver SIGWINCH.
    try:
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)
    except OSError:
        pass


@dataclass(eq=False)
class ProcessSession:
    """A single spawn-to-exit run of one command on a pty.

    Lifecycle: ``IDLE -> SPAWNING -> RUNNING -> TERMINATING -> TERMINATED``.
    A session is never reused; every run constructs a new one.

    While running, the session holds the terminal it was given and is
    wired to it through one disposal group:

    - terminal ``data`` events are written to the pty
    - pty output is written to the terminal
    - terminal ``resize`` events resize the pty
    - terminal ``signal`` requests and the interrupt key chord kill the
      process with the requested signal (SIGINT for the chord)

    ``run()`` returns the exit code when the process exits on its own and
    raises ``SignalTermination`` when it is ended through ``kill()``.
    """

    command: list[str]
    cwd: str
    env: dict[str, str] = field(default_factory=dict)
    term: str = "xterm-256color"
    drain_timeout: float = 1.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    _state: SessionState = field(default=SessionState.IDLE, init=False)
    _master_fd: int = field(default=-1, init=False)
    _proc: subprocess.Popen | None = field(default=None, init=False)
    _pgid: int = field(default=0, init=False)
    _terminal: Terminal | None = field(default=None, init=False)
    _subscriptions: CompositeDisposable | None = field(default=None, init=False)
    _done: asyncio.Future | None = field(default=None, init=False)
    _eof: asyncio.Event | None = field(default=None, init=False)
    _exit_task: asyncio.Task | None = field(default=None, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace"),
        init=False,
    )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, terminal: Terminal) -> int:
        """Spawn, attach to ``terminal`` and wait for the process to end.

        Any session already holding ``terminal`` is killed with SIGKILL and
        fully detached before this one attaches.
        """
        if self._state is not SessionState.IDLE:
            raise RuntimeError(f"Session {self.id} has already run")

        previous = terminal.acquire(self)
        if previous is not None:
            logger.info("Session %s supersedes session %s", self.id, previous.id)
            previous.kill(signal.SIGKILL)

        try:
            self.spawn(rows=terminal.rows, cols=terminal.cols)
        except SpawnError:
            terminal.release(self)
            raise

        self.attach(terminal)
        return await self.wait()

    def spawn(self, rows: int = 24, cols: int = 80) -> None:
        """Allocate a pty and start the child process on it.

        Raises:
            SpawnError: the pty or the process could not be created. The
                session goes straight to TERMINATED.
        """
        self._state = SessionState.SPAWNING
        self._loop = asyncio.get_running_loop()
        self._done = self._loop.create_future()
        self._eof = asyncio.Event()

        env = {**os.environ, **self.env}
        env["TERM"] = self.term

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            self._fail_spawn(e)

        try:
            _set_winsize(master_fd, rows, cols)
            self._proc = subprocess.Popen(
                self.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,  # Own process group for killpg
                preexec_fn=_acquire_controlling_tty,
                env=env,
                cwd=self.cwd,
            )
        except OSError as e:
            os.close(master_fd)
            self._fail_spawn(e)
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        os.set_blocking(master_fd, False)
        self._master_fd = master_fd
        self._pgid = self._proc.pid  # setsid() makes the child its group leader

        logger.info(
            "Session %s started: pid=%d cwd=%s cmd=%s",
            self.id,
            self._proc.pid,
            self.cwd,
            " ".join(self.command),
        )

    def attach(self, terminal: Terminal) -> CompositeDisposable:
        """Wire the pty to ``terminal``; returns the disposal group for ``detach()``."""
        if self._proc is None or self._loop is None:
            raise RuntimeError(f"Session {self.id} has not been spawned")

        self._terminal = terminal
        terminal.show_cursor()

        loop, fd = self._loop, self._master_fd
        loop.add_reader(fd, self._on_readable)

        group = CompositeDisposable(
            terminal.on("data", self.write),
            Disposable(lambda: loop.remove_reader(fd)),
            terminal.on("resize", self.resize),
            terminal.on("signal", self._on_signal_request),
            terminal.on("key", self._on_key),
        )

        self._subscriptions = group
        self._state = SessionState.RUNNING
        self._exit_task = loop.create_task(self._watch_exit())
        return group

    def detach(self, subscriptions: CompositeDisposable | None = None) -> None:
        """Release every subscription made by ``attach()`` in one step."""
        group = subscriptions if subscriptions is not None else self._subscriptions
        if group is not None:
            group.dispose()
        if group is self._subscriptions:
            self._subscriptions = None

    async def wait(self) -> int:
        """Wait for the session to end; same outcome as ``run()``."""
        if self._done is None:
            raise RuntimeError(f"Session {self.id} has not been spawned")
        return await asyncio.shield(self._done)

    def kill(self, sig: str | int | signal.Signals = signal.SIGKILL) -> None:
        """Deliver ``sig`` to the process group and tear the pty down now.

        The session does not wait for the OS to report the exit: its
        outcome becomes ``SignalTermination(sig)`` immediately. SIGKILL
        additionally reaps the child before returning.
        """
        sig = coerce_signal(sig)
        if self._state not in (SessionState.RUNNING, SessionState.TERMINATING):
            return

        self._state = SessionState.TERMINATING
        if self._proc is not None and self._proc.poll() is None:
            try:
                os.killpg(self._pgid, sig)
                logger.info("Sent %s to session %s (pgid=%d)", sig.name, self.id, self._pgid)
            except ProcessLookupError:
                logger.debug("Process group already gone: %d", self._pgid)
            except OSError as e:
                logger.warning("Error signalling session %s: %s", self.id, e)

            if sig == signal.SIGKILL:
                # Reap now so no zombie outlives the kill
                try:
                    self._proc.wait(timeout=2)
                except subprocess.TimeoutExpired:
                    logger.warning("Session %s did not die after SIGKILL", self.id)

        self._finish(error=SignalTermination(sig))

    def write(self, data: str) -> None:
        """Send user input to the process."""
        if self._state is not SessionState.RUNNING:
            return
        try:
            os.write(self._master_fd, data.encode())
        except OSError as e:
            logger.debug("Write to session %s failed: %s", self.id, e)

    def resize(self, rows: int, cols: int) -> None:
        if self._state is not SessionState.RUNNING:
            return
        try:
            _set_winsize(self._master_fd, rows, cols)
        except OSError as e:
            logger.debug("Resize of session %s failed: %s", self.id, e)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def alive(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def process(self) -> subprocess.Popen | None:
        """The live child process, or None once the session has ended."""
        if self._state in (SessionState.RUNNING, SessionState.TERMINATING):
            return self._proc
        return None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions) if self._subscriptions is not None else 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fail_spawn(self, error: OSError) -> None:
        self._state = SessionState.TERMINATED
        logger.warning("Session %s failed to spawn %s: %s", self.id, self.command, error)
        spawn_error = SpawnError(self.command, error)
        assert self._done is not None
        self._done.set_exception(spawn_error)
        # Retrieved here so an un-awaited future does not log a warning
        self._done.exception()
        raise spawn_error from error

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, 65536)
        except BlockingIOError:
            return
        except OSError:
            # EIO: every slave fd is closed
            data = b""
        if not data:
            if self._loop is not None:
                self._loop.remove_reader(self._master_fd)
            if self._eof is not None:
                self._eof.set()
            return
        self._output(self._decoder.decode(data))

    def _drain(self) -> None:
        while True:
            try:
                data = os.read(self._master_fd, 65536)
            except OSError:
                return
            if not data:
                return
            self._output(self._decoder.decode(data))

    def _output(self, text: str) -> None:
        if text and self._terminal is not None:
            self._terminal.write(text)

    def _on_signal_request(self, sig: str | int) -> None:
        try:
            self.kill(sig)
        except (KeyError, ValueError):
            logger.warning("Ignoring unknown signal %r for session %s", sig, self.id)

    def _on_key(self, key: KeyPress) -> None:
        if key.is_interrupt and self._state is SessionState.RUNNING:
            terminal = self._terminal
            self.kill(signal.SIGINT)
            if terminal is not None:
                terminal.focus()

    async def _watch_exit(self) -> None:
        assert self._proc is not None and self._loop is not None
        exit_code = await self._loop.run_in_executor(None, self._proc.wait)
        if self._state is not SessionState.RUNNING:
            return  # killed; outcome already settled

        self._state = SessionState.TERMINATING
        assert self._eof is not None
        try:
            await asyncio.wait_for(self._eof.wait(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            # A grandchild still holds the slave; take what is buffered
            self._drain()

        if self._state is SessionState.TERMINATING:
            tail = self._decoder.decode(b"", final=True)
            self._output(tail)
            logger.info("Session %s exited (code=%s)", self.id, exit_code)
            self._finish(exit_code=exit_code)

    def _finish(self, exit_code: int | None = None, error: BaseException | None = None) -> None:
        terminal = self._terminal
        self.detach()
        if self._master_fd >= 0:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = -1
        if terminal is not None:
            terminal.hide_cursor()
            terminal.release(self)
        self._terminal = None
        self._state = SessionState.TERMINATED

        if self._done is not None and not self._done.done():
            if error is not None:
                self._done.set_exception(error)
            else:
                self._done.set_result(exit_code)

    def __del__(self) -> None:
        """Never leave a child behind on garbage collection."""
        if self._state in (SessionState.RUNNING, SessionState.TERMINATING):
            if self._proc is not None and self._proc.poll() is None:
                try:
                    os.killpg(self._pgid, signal.SIGKILL)
                except OSError:
                    pass
