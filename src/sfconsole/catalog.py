"""Command catalog: the JSON printed by ``<console> list --format=json``.

Wire format (only ``commands`` is required):

    {
        "application": {"name": "...", "version": "..."},
        "commands": [
            {
                "name": "cache:clear",
                "description": "Clears the cache",
                "usage": ["cache:clear [--no-warmup]"],
                "help": "...",
                "hidden": false,
                "definition": {
                    "arguments": {"<key>": {"name", "is_required", "is_array", "description", "default"}},
                    "options": {"<key>": {"name", "shortcut", "accept_value", "is_value_required",
                                          "is_multiple", "description", "default"}}
                }
            }
        ],
        "namespaces": [{"id": "cache", "commands": ["cache:clear"]}]
    }

PHP encodes an empty associative array as ``[]``, so ``arguments`` and
``options`` may arrive as empty lists.

All models are frozen: a refresh produces a new catalog, never an
in-place update.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from sfconsole.errors import ParseError

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ArgumentDescriptor(_Frozen):
    name: str
    description: str = ""
    is_required: bool = False
    is_array: bool = False
    default: Any = None


class OptionDescriptor(_Frozen):
    name: str
    shortcut: str | None = None
    accepts_value: bool = Field(
        default=False, validation_alias=AliasChoices("accepts_value", "accept_value")
    )
    value_required: bool = Field(
        default=False, validation_alias=AliasChoices("value_required", "is_value_required")
    )
    allows_multiple: bool = Field(
        default=False, validation_alias=AliasChoices("allows_multiple", "is_multiple")
    )
    default_value: Any = Field(
        default=None, validation_alias=AliasChoices("default_value", "default")
    )
    description: str = ""

    @field_validator("shortcut", mode="before")
    @classmethod
    def _empty_shortcut(cls, value: Any) -> Any:
        return value or None

    @property
    def synopsis(self) -> str:
        """``-e, --env[=ENV]`` style, as printed by ``help``."""
        text = f"{self.shortcut}, {self.name}" if self.shortcut else self.name
        if self.accepts_value:
            value = "=" + self.name.lstrip("-").upper()
            text += value if self.value_required else f"[{value}]"
        return text

    @property
    def default_display(self) -> str:
        """The default value as shown next to the option, or ``""``."""
        if not self.accepts_value:
            return ""
        if isinstance(self.default_value, (list, tuple)):
            if self.default_value:
                return "{ " + ", ".join(str(v) for v in self.default_value) + "}"
            return ""
        if self.default_value:
            return str(self.default_value)
        return ""


class CommandDefinition(_Frozen):
    arguments: Mapping[str, ArgumentDescriptor] = Field(default_factory=dict)
    options: Mapping[str, OptionDescriptor] = Field(default_factory=dict)

    @field_validator("arguments", "options", mode="before")
    @classmethod
    def _php_empty_array(cls, value: Any) -> Any:
        if value is None or value == []:
            return {}
        return value


class CommandDescriptor(_Frozen):
    name: str
    description: str = ""
    usage: tuple[str, ...] = ()
    help: str = ""
    hidden: bool = False
    aliases: tuple[str, ...] = ()
    definition: CommandDefinition = Field(default_factory=CommandDefinition)

    @field_validator("usage", mode="before")
    @classmethod
    def _usage_string(cls, value: Any) -> Any:
        # Symfony 2.x printed a single usage string
        if isinstance(value, str):
            return [value] if value else []
        return value or []


class ApplicationInfo(_Frozen):
    name: str = ""
    version: str = ""


class Namespace(_Frozen):
    id: str
    commands: tuple[str, ...] = ()


class CommandCatalog(_Frozen):
    commands: tuple[CommandDescriptor, ...] = ()
    application: ApplicationInfo | None = None
    namespaces: tuple[Namespace, ...] = ()

    def names(self) -> list[str]:
        return [c.name for c in self.commands]

    def get(self, name: str) -> CommandDescriptor | None:
        for command in self.commands:
            if command.name == name or name in command.aliases:
                return command
        return None

    def __len__(self) -> int:
        return len(self.commands)


def parse_catalog(text: str) -> CommandCatalog:
    """Parse ``list --format=json`` output.

    Raises:
        ParseError: the text is not JSON or does not describe a command list.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse json output of \"list\" command: {e}", text) from e

    if not isinstance(data, dict) or "commands" not in data:
        raise ParseError("The \"list\" output has no \"commands\" entry", text)

    try:
        return CommandCatalog.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid command list: {e}", text) from e


def load_catalog(
    text: str,
    on_error: Callable[[ParseError], None] | None = None,
) -> CommandCatalog:
    """Lenient ``parse_catalog``: report the error and return an empty catalog."""
    try:
        return parse_catalog(text)
    except ParseError as e:
        logger.warning("%s", e)
        if on_error is not None:
            on_error(e)
        return CommandCatalog()


def format_command_help(command: CommandDescriptor) -> str:
    """Render Usage / Arguments / Options / Help sections as plain text."""
    lines: list[str] = []
    if command.description:
        lines += ["Description:", f"  {command.description}", ""]

    lines.append("Usage:")
    lines += [f"  {use}" for use in command.usage] or [f"  {command.name}"]

    arguments = list(command.definition.arguments.values())
    if arguments:
        width = max(len(a.name) for a in arguments)
        lines += ["", "Arguments:"]
        for arg in arguments:
            lines.append(f"  {arg.name.ljust(width)}  {arg.description}".rstrip())

    options = list(command.definition.options.values())
    if options:
        width = max(len(o.synopsis) for o in options)
        lines += ["", "Options:"]
        for opt in options:
            text = f"  {opt.synopsis.ljust(width)}  {opt.description}"
            if opt.default_display:
                text += f" [default: {opt.default_display}]"
            if opt.allows_multiple:
                text += " (multiple values allowed)"
            lines.append(text.rstrip())

    if command.help:
        lines += ["", "Help:", *(f"  {h}" for h in command.help.splitlines())]

    return "\n".join(lines)
