"""Project: one discovered console binary and the commands run through it."""

from __future__ import annotations

import asyncio
import logging
import shlex
import signal
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sfconsole.catalog import CommandCatalog, CommandDescriptor, parse_catalog
from sfconsole.config import DEFAULT_DEPENDENCY_MANAGER, ConsoleConfig
from sfconsole.disposable import CompositeDisposable, Disposable
from sfconsole.errors import ListFailure, ParseError, SignalTermination
from sfconsole.platform import PlatformAdapter
from sfconsole.pty.session import ProcessSession
from sfconsole.terminal.ansi import colorize
from sfconsole.terminal.buffered import BufferedTerminal

if TYPE_CHECKING:
    import subprocess

    from sfconsole.terminal.base import Terminal
    from sfconsole.wire import Wire

logger = logging.getLogger(__name__)

# The listing process is never shown; wide enough that nothing wraps
_CAPTURE_COLS = 400


@runtime_checkable
class CommandHintSink(Protocol):
    """Anything that wants the command list pushed to it after each fetch."""

    def update_commands(self, commands: list[CommandDescriptor]) -> None: ...


class Project:
    """A workspace root with a console binary.

    Owns the cached command listing and the session currently running
    in the project's name. At most one listing process is in flight per
    project no matter how many callers ask, and at most one interactive
    session runs at a time: starting another kills the first.
    """

    def __init__(
        self,
        root: str | Path,
        binary_path: str | Path,
        config: ConsoleConfig | None = None,
        platform: PlatformAdapter | None = None,
        wire: Wire | None = None,
    ) -> None:
        self.root = Path(root)
        self.binary_path = Path(binary_path)
        self.name = self.root.name
        self._config = config or ConsoleConfig()
        self._platform = platform or PlatformAdapter.from_config(self._config)
        self._wire = wire
        self._command_cache: asyncio.Task[CommandCatalog] | None = None
        self._active_session: ProcessSession | None = None
        self._list_session: ProcessSession | None = None
        self._hint_sinks: list[CommandHintSink] = []
        self._listeners = CompositeDisposable()
        self._destroyed = False

    def __repr__(self) -> str:
        return f"Project(name={self.name!r}, root={str(self.root)!r})"

    # ------------------------------------------------------------------
    # Command listing
    # ------------------------------------------------------------------

    async def catalog(self) -> CommandCatalog:
        """The parsed command listing, fetched once and shared by all callers.

        Raises:
            ListFailure: the console exited non-zero or printed bad JSON.
                The cache is cleared so the next call tries again.
            SpawnError: the console could not be started.
        """
        if self._command_cache is None:
            task = asyncio.get_running_loop().create_task(self._fetch_commands())
            task.add_done_callback(self._on_fetch_done)
            self._command_cache = task
        # shield: one caller giving up must not cancel the shared fetch
        return await asyncio.shield(self._command_cache)

    async def list_commands(
        self, names_only: bool = False
    ) -> list[CommandDescriptor] | list[str]:
        catalog = await self.catalog()
        if names_only:
            return catalog.names()
        return list(catalog.commands)

    async def refresh_commands(
        self, names_only: bool = False
    ) -> list[CommandDescriptor] | list[str]:
        """Discard the cached listing and fetch it again.

        A listing still in flight is killed; its callers get a
        ``ListFailure``.
        """
        if self._list_session is not None:
            self._list_session.kill(signal.SIGKILL)
        self._command_cache = None
        return await self.list_commands(names_only)

    def watch_commands(self, sink: CommandHintSink) -> Disposable:
        """Push every fetched command list to ``sink`` until disposed.

        If a listing is already available it is pushed immediately.
        """
        self._hint_sinks.append(sink)
        cache = self._command_cache
        if cache is not None and cache.done() and not cache.cancelled() and cache.exception() is None:
            self._push_commands(cache.result(), [sink])

        def _unwatch() -> None:
            if sink in self._hint_sinks:
                self._hint_sinks.remove(sink)

        return self._listeners.add(Disposable(_unwatch))

    async def _fetch_commands(self) -> CommandCatalog:
        if self._destroyed:
            raise ListFailure("", reason=f"Project {self.name} has been destroyed")
        # No await until the session is recorded, so at most one listing runs
        if self._command_cache is not asyncio.current_task():
            raise ListFailure("", reason=f"Listing commands of {self.name} was superseded by a refresh")

        argv = [self._config.interpreter, str(self.binary_path), *self._config.list_args]
        capture = BufferedTerminal(cols=_CAPTURE_COLS)
        session = self._new_session(argv)
        self._list_session = session
        try:
            exit_code = await session.run(capture)
        except SignalTermination as e:
            raise ListFailure(capture.text.strip(), reason=f"Listing commands was interrupted: {e}") from e
        finally:
            if self._list_session is session:
                self._list_session = None

        output = capture.text.strip()
        if exit_code != 0:
            raise ListFailure(output, exit_code=exit_code)

        try:
            return parse_catalog(output)
        except ParseError as e:
            raise ListFailure(output, exit_code=exit_code, reason=str(e)) from e

    def _on_fetch_done(self, task: asyncio.Task[CommandCatalog]) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._command_cache is not task:
                # Superseded by a refresh, or the project was destroyed
                logger.info("Stale listing of %s ended", self.name)
                return
            self._command_cache = None
            if not task.cancelled():
                logger.warning("Listing commands of %s failed: %s", self.name, task.exception())
                if self._wire is not None:
                    self._wire.send_error(str(task.exception()), root=str(self.root))
            return

        catalog = task.result()
        logger.info("Listed %d commands for %s", len(catalog), self.name)
        if self._wire is not None:
            self._wire.send_commands_updated(str(self.root), catalog.names())
        self._push_commands(catalog, list(self._hint_sinks))

    def _push_commands(self, catalog: CommandCatalog, sinks: list[CommandHintSink]) -> None:
        for sink in sinks:
            try:
                sink.update_commands(list(catalog.commands))
            except Exception:
                logger.exception("Error pushing commands to %r", sink)

    # ------------------------------------------------------------------
    # Running commands
    # ------------------------------------------------------------------

    async def run_command(self, command: str | Sequence[str], terminal: Terminal) -> int:
        """Run a console command on ``terminal`` and return its exit code.

        A string is split on whitespace. A command line starting with the
        dependency manager's name (``composer ...``) runs the dependency
        manager instead of the console.
        """
        args = command.split() if isinstance(command, str) else list(command)
        if not args:
            raise ValueError("Empty command line")

        if args[0] == self._config.dependency_manager_name:
            return await self.run_composer_command(args[1:], terminal)

        argv = [self._config.interpreter, str(self.binary_path), *args]
        return await self._execute(argv, terminal)

    async def run_composer_command(self, args: str | Sequence[str], terminal: Terminal) -> int:
        argv = args.split() if isinstance(args, str) else list(args)
        if self._config.dependency_manager_path:
            argv.insert(0, self._config.dependency_manager_path)
            if self._config.interpreter_path:
                argv.insert(0, self._config.interpreter_path)
        else:
            argv.insert(0, DEFAULT_DEPENDENCY_MANAGER)
        return await self._execute(argv, terminal)

    async def update_composer(self, terminal: Terminal) -> int:
        """Run ``composer update`` in the project root."""
        return await self.run_composer_command(["update"], terminal)

    def get_sub_process(self) -> subprocess.Popen | None:
        """The running child process, for out-of-band signal delivery."""
        if self._active_session is None:
            return None
        return self._active_session.process

    @property
    def active_session(self) -> ProcessSession | None:
        return self._active_session

    async def _execute(self, argv: list[str], terminal: Terminal) -> int:
        if self._destroyed:
            raise RuntimeError(f"Project {self.name} has been destroyed")

        # One session per project, one session per surface
        for holder in (self._active_session, terminal.session):
            if holder is not None:
                holder.kill(signal.SIGKILL)

        session = self._new_session(argv)
        self._active_session = session
        terminal.writeln(f"{colorize(f'[{self.root}]$', 'yellow')} {shlex.join(argv)}")
        if self._wire is not None:
            self._wire.send_session_begin(session.id, str(self.root), argv)

        exit_code: int | None = None
        signal_name: str | None = None
        try:
            exit_code = await session.run(terminal)
        except SignalTermination as e:
            signal_name = e.signal.name
            if not e.silent:
                terminal.writeln(colorize(str(e), "red"))
            return -e.signal.value
        finally:
            if self._active_session is session:
                self._active_session = None
            if self._wire is not None:
                self._wire.send_session_end(session.id, str(self.root), exit_code, signal_name)

        self._report_exit(exit_code, terminal)
        return exit_code

    def _report_exit(self, exit_code: int, terminal: Terminal) -> None:
        if exit_code > 0:
            terminal.writeln(colorize(f"Process exited with code {exit_code}", "red"))
        elif exit_code < 0:
            # Signalled from outside, e.g. through get_sub_process()
            sig = signal.Signals(-exit_code)
            if sig != signal.SIGKILL:
                terminal.writeln(colorize(f"Process terminated by {sig.name}", "red"))

    def _new_session(self, argv: list[str]) -> ProcessSession:
        return ProcessSession(
            command=self._platform.wrap(argv),
            cwd=str(self.root),
            term=self._config.term,
            drain_timeout=self._config.drain_timeout,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Kill every process started for this project and drop all state.

        Synchronous: when this returns no child process of the project is
        alive and no subscription is left.
        """
        if self._destroyed:
            return
        self._destroyed = True

        for session in (self._active_session, self._list_session):
            if session is not None:
                session.kill(signal.SIGKILL)
        self._active_session = None
        self._list_session = None
        self._command_cache = None
        self._listeners.dispose()
        logger.info("Project %s destroyed", self.name)
