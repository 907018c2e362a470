"""CLI entry point for sfconsole."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

import typer

from sfconsole.catalog import format_command_help
from sfconsole.config import ConsoleConfig
from sfconsole.errors import ConsoleError
from sfconsole.project import Project, ProjectManager
from sfconsole.terminal import StdioTerminal

app = typer.Typer(
    name="sfconsole",
    help="Discover project console binaries, list their commands and run them in a pty.",
    no_args_is_help=True,
)

_VERBOSE = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")
_CONFIG = typer.Option(None, "--config", "-c", help="Config file path.")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _open_project(root: str, config: ConsoleConfig) -> tuple[ProjectManager, Project]:
    """Track a single root and return its project, or exit with an error."""
    manager = ProjectManager(config=config)
    manager.reconcile([root])
    try:
        return manager, manager.get_project(root)
    except ConsoleError:
        candidates = ", ".join(config.binary_candidates)
        typer.echo(f"Error: No console binary ({candidates}) found in {os.path.abspath(root)}", err=True)
        raise typer.Exit(1)


@app.command()
def projects(
    roots: list[str] = typer.Argument(help="Workspace roots to probe."),
    verbose: bool = _VERBOSE,
    config_file: str | None = _CONFIG,
) -> None:
    """List the roots that contain a console binary."""
    setup_logging(verbose)
    config = ConsoleConfig.load(config_file)

    manager = ProjectManager(config=config)
    manager.reconcile(roots)
    found = manager.get_projects()
    if not found:
        typer.echo("No projects found.", err=True)
        raise typer.Exit(1)
    for root, project in found.items():
        typer.echo(f"{project.name}\t{root}\t{project.binary_path}")
    manager.destroy()


@app.command()
def commands(
    root: str = typer.Argument(".", help="Project root."),
    names: bool = typer.Option(False, "--names", "-n", help="Print command names only."),
    as_json: bool = typer.Option(False, "--json", help="Print the parsed catalog as JSON."),
    verbose: bool = _VERBOSE,
    config_file: str | None = _CONFIG,
) -> None:
    """List the commands a project's console exposes."""
    setup_logging(verbose)
    config = ConsoleConfig.load(config_file)
    manager, project = _open_project(root, config)

    try:
        catalog = asyncio.run(project.catalog())
    except ConsoleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        manager.destroy()

    if as_json:
        typer.echo(json.dumps(catalog.model_dump(mode="json"), indent=2))
    elif names:
        for name in catalog.names():
            typer.echo(name)
    else:
        visible = [c for c in catalog.commands if not c.hidden]
        width = max((len(c.name) for c in visible), default=0)
        for command in visible:
            typer.echo(f"  {command.name.ljust(width)}  {command.description}".rstrip())


@app.command()
def describe(
    name: str = typer.Argument(help="Command name."),
    root: str = typer.Option(".", "--root", "-r", help="Project root."),
    verbose: bool = _VERBOSE,
    config_file: str | None = _CONFIG,
) -> None:
    """Show usage, arguments and options of one command."""
    setup_logging(verbose)
    config = ConsoleConfig.load(config_file)
    manager, project = _open_project(root, config)

    try:
        catalog = asyncio.run(project.catalog())
    except ConsoleError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        manager.destroy()

    command = catalog.get(name)
    if command is None:
        typer.echo(f"Error: Command \"{name}\" is not defined.", err=True)
        raise typer.Exit(1)
    typer.echo(format_command_help(command))


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    ctx: typer.Context,
    root: str = typer.Option(".", "--root", "-r", help="Project root."),
    verbose: bool = _VERBOSE,
    config_file: str | None = _CONFIG,
) -> None:
    """Run a console command interactively (e.g. `sfconsole run -- cache:clear`).

    Esc or Ctrl-C interrupts the command.
    """
    setup_logging(verbose)
    config = ConsoleConfig.load(config_file)
    args = list(ctx.args)
    if not args:
        typer.echo("Error: No command given.", err=True)
        raise typer.Exit(2)

    manager, project = _open_project(root, config)
    exit_code = asyncio.run(_run_interactive(project, args))
    manager.destroy()
    raise typer.Exit(exit_code if exit_code >= 0 else 128 - exit_code)


@app.command()
def update(
    root: str = typer.Option(".", "--root", "-r", help="Project root."),
    verbose: bool = _VERBOSE,
    config_file: str | None = _CONFIG,
) -> None:
    """Run the dependency manager's update in the project root."""
    setup_logging(verbose)
    config = ConsoleConfig.load(config_file)
    manager, project = _open_project(root, config)
    exit_code = asyncio.run(_run_interactive(project, None))
    manager.destroy()
    raise typer.Exit(exit_code if exit_code >= 0 else 128 - exit_code)


async def _run_interactive(project: Project, args: list[str] | None) -> int:
    """Run on the host TTY; ``args=None`` runs the dependency manager update."""
    with StdioTerminal() as terminal:
        try:
            if args is None:
                return await project.update_composer(terminal)
            return await project.run_command(args, terminal)
        except ConsoleError as e:
            terminal.writeln(f"Error: {e}")
            return 1


def main() -> None:
    app()


if __name__ == "__main__":
    main()
