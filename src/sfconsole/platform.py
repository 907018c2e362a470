"""Platform adapter: the command-vector transform applied before spawning."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import dataclass

from sfconsole.config import ConsoleConfig


@dataclass(frozen=True)
class PlatformAdapter:
    """Prepends a wrapper executable on Linux; identity everywhere else."""

    platform: str = sys.platform
    wrapper: str | None = None

    @classmethod
    def from_config(cls, config: ConsoleConfig, platform: str | None = None) -> PlatformAdapter:
        return cls(platform=platform or sys.platform, wrapper=config.wrapper_path)

    @property
    def wraps(self) -> bool:
        return self.wrapper is not None and self.platform.startswith("linux")

    def wrap(self, argv: Sequence[str]) -> list[str]:
        """Return a new argument vector; ``argv`` is never modified."""
        if self.wraps:
            return [self.wrapper, *argv]  # type: ignore[list-item]
        return list(argv)
