"""Disposables: handles that release a subscription exactly once."""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Disposable:
    """Wraps a release callback; ``dispose()`` runs it at most once."""

    def __init__(self, callback: Callable[[], Any] | None = None) -> None:
        self._callback = callback
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        callback, self._callback = self._callback, None
        if callback is not None:
            callback()

    def __enter__(self) -> Disposable:
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()


class CompositeDisposable(Disposable):
    """A disposal group.

    Members are released together, newest first, when the group is
    disposed. A member that fails to release is logged and the rest are
    still released. Adding to an already-disposed group releases the new
    member immediately so late subscriptions cannot leak.
    """

    def __init__(self, *members: Disposable) -> None:
        super().__init__()
        self._members: list[Disposable] = []
        for member in members:
            self.add(member)

    def add(self, member: Disposable) -> Disposable:
        if self.disposed:
            member.dispose()
        else:
            self._members.append(member)
        return member

    def remove(self, member: Disposable) -> None:
        if member in self._members:
            self._members.remove(member)

    def dispose(self) -> None:
        if self.disposed:
            return
        super().dispose()
        members, self._members = self._members, []
        for member in reversed(members):
            try:
                member.dispose()
            except Exception:
                logger.exception("Error releasing %r", member)

    def __len__(self) -> int:
        return sum(1 for m in self._members if not m.disposed)
