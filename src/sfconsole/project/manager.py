"""Project manager: keeps the tracked projects in step with the workspace roots."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Callable

from sfconsole.config import ConsoleConfig
from sfconsole.discovery import BinaryLocator
from sfconsole.disposable import CompositeDisposable, Disposable
from sfconsole.errors import NotFoundError
from sfconsole.platform import PlatformAdapter
from sfconsole.project.project import Project
from sfconsole.project.roots import RootSource
from sfconsole.wire import EventType, Wire, WireEvent

logger = logging.getLogger(__name__)


def _root_key(root: str | os.PathLike[str]) -> Path:
    return Path(os.path.abspath(os.path.expanduser(os.fspath(root))))


class ProjectManager:
    """Owns one ``Project`` per workspace root that has a console binary.

    The manager ensures:
    - a root is tracked exactly while it is in the root set and its
      binary exists
    - removed projects are destroyed (processes killed, listeners
      released) before ``reconcile()`` returns
    - observers hear about a change only when the tracked set changed
    """

    def __init__(
        self,
        config: ConsoleConfig | None = None,
        locator: BinaryLocator | None = None,
        wire: Wire | None = None,
        platform: PlatformAdapter | None = None,
    ) -> None:
        self._config = config or ConsoleConfig()
        self._locator = locator or BinaryLocator(tuple(self._config.binary_candidates))
        self._wire = wire or Wire()
        self._platform = platform or PlatformAdapter.from_config(self._config)
        self._projects: dict[Path, Project] = {}
        self._disposables = CompositeDisposable()

    @property
    def wire(self) -> Wire:
        return self._wire

    def track(self, source: RootSource) -> Disposable:
        """Reconcile against ``source`` now and every time its roots change."""
        self.reconcile(source.get_paths())
        return self._disposables.add(source.on_did_change_paths(self.reconcile))

    def reconcile(self, roots: Iterable[str | os.PathLike[str]]) -> bool:
        """Sync the tracked projects with ``roots``.

        Returns True when a project was added or removed. Never raises:
        a root that cannot be probed simply has no project.
        """
        keep: set[Path] = set()
        added: list[Path] = []

        for root in roots:
            key = _root_key(root)
            if key in keep:
                continue
            binary = self._locator.locate(key)
            if binary is None:
                continue
            keep.add(key)
            if key not in self._projects:
                self._projects[key] = Project(
                    key,
                    binary,
                    config=self._config,
                    platform=self._platform,
                    wire=self._wire,
                )
                added.append(key)
                logger.info("Tracking project %s (%s)", key.name, binary)

        removed = [key for key in self._projects if key not in keep]
        for key in removed:
            self._destroy_project(self._projects.pop(key))

        changed = bool(added or removed)
        if changed:
            self._wire.send_projects_changed([str(k) for k in self._projects])
        return changed

    def get_project(self, root: str | os.PathLike[str]) -> Project:
        key = _root_key(root)
        try:
            return self._projects[key]
        except KeyError:
            raise NotFoundError(root) from None

    def get_projects(self) -> dict[Path, Project]:
        """A snapshot; mutating it does not affect the tracked set."""
        return dict(self._projects)

    def observe(self, callback: Callable[[dict[Path, Project]], None]) -> Disposable:
        """Call ``callback`` with the current projects now and after every change."""
        callback(self.get_projects())

        def _on_change(event: WireEvent) -> None:
            callback(self.get_projects())

        return self._disposables.add(self._wire.on(EventType.PROJECTS_CHANGED, _on_change))

    def destroy(self) -> None:
        """Stop tracking roots and destroy every project."""
        self._disposables.dispose()
        self._disposables = CompositeDisposable()
        projects, self._projects = self._projects, {}
        for project in projects.values():
            self._destroy_project(project)

    def _destroy_project(self, project: Project) -> None:
        try:
            project.destroy()
        except Exception:
            logger.exception("Error destroying project %s", project.name)
        logger.info("Stopped tracking project %s", project.name)

    def __len__(self) -> int:
        return len(self._projects)
