"""Workspace root sources."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Callable, Protocol, runtime_checkable

from sfconsole.disposable import Disposable

logger = logging.getLogger(__name__)


@runtime_checkable
class RootSource(Protocol):
    """Supplies the workspace roots and announces when they change."""

    def get_paths(self) -> list[str]: ...

    def on_did_change_paths(self, callback: Callable[[list[str]], None]) -> Disposable: ...


class RootSet:
    """A mutable, ordered set of workspace roots."""

    def __init__(self, paths: Iterable[str | os.PathLike[str]] = ()) -> None:
        self._paths: list[str] = list(dict.fromkeys(os.fspath(p) for p in paths))
        self._callbacks: list[Callable[[list[str]], None]] = []

    def get_paths(self) -> list[str]:
        return list(self._paths)

    def add(self, path: str | os.PathLike[str]) -> None:
        path = os.fspath(path)
        if path not in self._paths:
            self._paths.append(path)
            self._notify()

    def remove(self, path: str | os.PathLike[str]) -> None:
        path = os.fspath(path)
        if path in self._paths:
            self._paths.remove(path)
            self._notify()

    def set_paths(self, paths: Iterable[str | os.PathLike[str]]) -> None:
        new_paths = list(dict.fromkeys(os.fspath(p) for p in paths))
        if new_paths != self._paths:
            self._paths = new_paths
            self._notify()

    def on_did_change_paths(self, callback: Callable[[list[str]], None]) -> Disposable:
        self._callbacks.append(callback)

        def _off() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return Disposable(_off)

    def _notify(self) -> None:
        paths = self.get_paths()
        for callback in list(self._callbacks):
            try:
                callback(paths)
            except Exception:
                logger.exception("Error in root change callback")
