"""Configuration: Pydantic model for sfconsole settings."""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, Field

DEFAULT_INTERPRETER = "php"
DEFAULT_DEPENDENCY_MANAGER = "composer"


class ConsoleConfig(BaseModel):
    """How console binaries are found and how their commands are spawned.

    ``interpreter_path`` and ``dependency_manager_path`` also accept the
    camelCase names used by editor settings files (``interpreterPath``,
    ``phpPath``, ``dependencyManagerPath``, ``composerPath``).
    """

    interpreter_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("interpreter_path", "interpreterPath", "phpPath"),
        description="Interpreter used to run the console binary (default: php)",
    )
    dependency_manager_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "dependency_manager_path", "dependencyManagerPath", "composerPath"
        ),
        description="Explicit path to the dependency manager (run through the interpreter)",
    )
    dependency_manager_name: str = Field(
        default=DEFAULT_DEPENDENCY_MANAGER,
        description="First token that routes a command line to the dependency manager",
    )
    binary_candidates: list[str] = Field(
        default_factory=lambda: ["bin/console", "app/console"],
        description="Relative console paths probed in order; first match wins",
    )
    term: str = Field(default="xterm-256color", description="TERM for spawned children")
    wrapper_path: str | None = Field(
        default=None,
        description="Executable prepended to every spawned command line on Linux",
    )
    list_args: list[str] = Field(default_factory=lambda: ["list", "--format=json"])
    drain_timeout: float = Field(
        default=1.0,
        description="Seconds to wait for trailing pty output after the child exits",
    )

    model_config = {"populate_by_name": True}

    @property
    def interpreter(self) -> str:
        return self.interpreter_path or DEFAULT_INTERPRETER

    @classmethod
    def load(cls, config_path: str | None = None) -> ConsoleConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            SFCONSOLE_PHP_PATH       - Interpreter used to run console binaries
            SFCONSOLE_COMPOSER_PATH  - Explicit dependency manager path
            SFCONSOLE_WRAPPER        - Wrapper executable prepended on Linux
            SFCONSOLE_TERM           - TERM value for spawned children
        """
        # .env wins over whatever was exported in the shell
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            import json

            with open(config_path) as f:
                config_data = json.load(f)

        env_overrides = {
            "SFCONSOLE_PHP_PATH": "interpreter_path",
            "SFCONSOLE_COMPOSER_PATH": "dependency_manager_path",
            "SFCONSOLE_WRAPPER": "wrapper_path",
            "SFCONSOLE_TERM": "term",
        }
        for env_var, key in env_overrides.items():
            value = os.environ.get(env_var)
            if value:
                config_data[key] = value

        return cls.model_validate(config_data)
