"""Projects: discovered console binaries and their lifecycles.

A ``ProjectManager`` reconciles workspace roots against tracked
``Project`` instances; each project lists its console's commands
(cached, one fetch in flight at a time) and runs commands in
``ProcessSession``s on a terminal surface.
"""

from sfconsole.project.manager import ProjectManager
from sfconsole.project.project import CommandHintSink, Project
from sfconsole.project.roots import RootSet, RootSource

__all__ = [
    "CommandHintSink",
    "Project",
    "ProjectManager",
    "RootSet",
    "RootSource",
]
