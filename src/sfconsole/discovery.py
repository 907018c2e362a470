"""Console binary discovery.

A workspace root is a project only if it contains one of a known, ordered
list of relative console paths:

    <root>/
      bin/console     <- current layout
      app/console     <- legacy layout

The first candidate that is a regular file wins. Absence is a normal
outcome: probing never raises, whatever the filesystem says.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATES = ("bin/console", "app/console")


def locate_binary(root: str | os.PathLike[str], candidates: Sequence[str]) -> Path | None:
    """Return the absolute path of the first candidate that is a regular file."""
    for candidate in candidates:
        path = Path(root) / candidate
        try:
            if path.is_file():
                return path.absolute()
        except OSError as e:
            # Permission errors and the like mean "not here"
            logger.debug("Cannot probe %s: %s", path, e)
    return None


@dataclass(frozen=True)
class BinaryLocator:
    """Probes roots for a console binary using a fixed candidate order."""

    candidates: tuple[str, ...] = field(default=DEFAULT_CANDIDATES)

    def locate(self, root: str | os.PathLike[str]) -> Path | None:
        return locate_binary(root, self.candidates)
