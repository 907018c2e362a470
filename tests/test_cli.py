"""Tests for the sfconsole CLI (typer app)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import FakeConsole
from sfconsole.cli import app

runner = CliRunner()

ROUTER_LIST = {
    "commands": [
        {"name": "about", "description": "Display information about the current project"},
        {
            "name": "debug:router",
            "description": "Display current routes for an application",
            "usage": ["debug:router [--show-controllers] [<name>]"],
            "definition": {
                "arguments": {
                    "name": {"name": "name", "description": "A route name"},
                },
                "options": {
                    "show-controllers": {
                        "name": "--show-controllers",
                        "description": "Show assigned controllers in overview",
                    }
                },
            },
        },
        {"name": "_complete", "hidden": True},
    ]
}


@pytest.fixture(autouse=True)
def _sh_interpreter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SFCONSOLE_PHP_PATH", "/bin/sh")


class TestProjects:
    def test_lists_found_projects(self, make_console, tmp_path: Path) -> None:
        one = make_console("one")
        (tmp_path / "plain").mkdir()
        result = runner.invoke(app, ["projects", str(one.root), str(tmp_path / "plain")])
        assert result.exit_code == 0
        assert result.output.strip() == f"one\t{one.root}\t{one.binary}"

    def test_none_found(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["projects", str(tmp_path)])
        assert result.exit_code == 1


class TestCommands:
    def test_table_hides_hidden_commands(self, console: FakeConsole) -> None:
        console.set_list(ROUTER_LIST)
        result = runner.invoke(app, ["commands", str(console.root)])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0].split() == ["about", "Display", "information", "about", "the", "current", "project"]
        assert lines[1].startswith("  debug:router")
        assert "_complete" not in result.output

    def test_names(self, console: FakeConsole) -> None:
        console.set_list(ROUTER_LIST)
        result = runner.invoke(app, ["commands", str(console.root), "--names"])
        assert result.output.splitlines() == ["about", "debug:router", "_complete"]

    def test_json(self, console: FakeConsole) -> None:
        result = runner.invoke(app, ["commands", str(console.root), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["commands"][0]["name"] == "cache:clear"

    def test_listing_failure(self, console: FakeConsole) -> None:
        console.fail_list("Fatal error")
        result = runner.invoke(app, ["commands", str(console.root)])
        assert result.exit_code == 1
        assert "Fatal error" in result.output

    def test_not_a_project(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["commands", str(tmp_path)])
        assert result.exit_code == 1
        assert "No console binary" in result.output


class TestDescribe:
    def test_help_sections(self, console: FakeConsole) -> None:
        console.set_list(ROUTER_LIST)
        result = runner.invoke(app, ["describe", "debug:router", "--root", str(console.root)])
        assert result.exit_code == 0, result.output
        assert "Usage:\n  debug:router [--show-controllers] [<name>]" in result.output
        assert "Arguments:\n  name  A route name" in result.output
        assert "--show-controllers  Show assigned controllers in overview" in result.output

    def test_unknown_command(self, console: FakeConsole) -> None:
        result = runner.invoke(app, ["describe", "nope", "--root", str(console.root)])
        assert result.exit_code == 1
        assert 'Command "nope" is not defined.' in result.output


class TestRun:
    def test_requires_a_command(self, console: FakeConsole) -> None:
        result = runner.invoke(app, ["run", "--root", str(console.root)])
        assert result.exit_code == 2
