"""Typer-powered command line for ``neo4jctl``.

Each command maps one-to-one onto a :class:`~neo4jctl.manager.ServerManager`
method. This module only parses arguments, confirms destructive commands,
renders results and translates errors into exit codes.
"""
from __future__ import annotations

import json
import textwrap
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .manager import ServerManager
from .permissions import PermissionDenied
from .platform import PlatformError
from .ports import PortError
from .providers import (
    CommandFailed,
    DownloadError,
    InstallError,
    PasswordChangeError,
    StopOutcome,
    VersionResolutionError,
)
from .providers.password import MissingNewPassword
from .version_policy import VersionUndetected

console = Console()

T = TypeVar("T")

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to neo4jctl's YAML config file.",
)

PATH_OPTION = typer.Option(
    None,
    "--path",
    file_okay=False,
    help="Neo4j installation directory (defaults to install_path from config).",
)

ERROR_EXIT_CODES: tuple[tuple[type[Exception], ExitCode], ...] = (
    (MissingNewPassword, ExitCode.VALIDATION),
    (VersionResolutionError, ExitCode.VALIDATION),
    (ConfigError, ExitCode.VALIDATION),
    (PortError, ExitCode.VALIDATION),
    (PlatformError, ExitCode.VALIDATION),
    (PermissionDenied, ExitCode.ENVIRONMENT),
    (VersionUndetected, ExitCode.ENVIRONMENT),
    (InstallError, ExitCode.ENVIRONMENT),
    (DownloadError, ExitCode.PROVIDER),
    (CommandFailed, ExitCode.PROVIDER),
    (PasswordChangeError, ExitCode.PROVIDER),
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Neo4j server installation and lifecycle manager.

        Installs a Neo4j edition into a directory, controls the server process
        and edits its configuration file in place.
        """
    ).strip(),
)
config_app = typer.Typer(help="Inspect neo4jctl configuration.")
app.add_typer(config_app, name="config")


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    manager: ServerManager


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    path: Path | None,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    config = load_config(config_file=config_file)
    manager = ServerManager.from_config(config, install_path=path, console=console)
    runtime = RuntimeContext(config=config, manager=manager)
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None, None)


def _fail(message: str, code: ExitCode) -> NoReturn:
    console.print(f"[red]{message}[/red]", highlight=False)
    raise typer.Exit(code=int(code))


def exit_code_for(exc: Exception) -> ExitCode | None:
    """Return the exit code for a known neo4jctl error, else ``None``."""
    for error_type, code in ERROR_EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return None


def _run(action: Callable[[], T]) -> T:
    """Invoke *action*, converting known errors into exit codes."""
    try:
        return action()
    except Exception as exc:
        code = exit_code_for(exc)
        if code is None:
            raise
        _fail(str(exc), code)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the neo4jctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    path: Path | None = PATH_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"neo4jctl {__version__}")
        raise typer.Exit(code=0)

    _run(lambda: _ensure_runtime(ctx, config_file, path))

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def install(
    ctx: typer.Context,
    edition: str = typer.Argument(
        "community-latest",
        help="Edition and version, e.g. community-latest or enterprise-3.0.1.",
    ),
) -> None:
    """Download and install a Neo4j edition."""
    manager = _get_runtime(ctx).manager
    result = _run(lambda: manager.install(edition))
    if result.already_installed:
        console.print("[yellow]Already installed[/yellow]; nothing to do.")


@app.command()
def start(
    ctx: typer.Context,
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Block until the server reports it is ready.",
    ),
) -> None:
    """Start the server."""
    manager = _get_runtime(ctx).manager
    pid = _run(lambda: manager.start(wait))
    if pid is not None:
        console.print(f"Server running with pid {pid}.")


@app.command()
def stop(
    ctx: typer.Context,
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        min=0,
        help="Seconds to wait for a graceful shutdown before killing the process.",
    ),
) -> None:
    """Stop the server."""
    manager = _get_runtime(ctx).manager
    outcome = _run(lambda: manager.stop(timeout))
    if outcome is StopOutcome.TIMED_OUT:
        console.print("[yellow]Shutdown timed out and no process id was known.[/yellow]")


@app.command("console")
def console_command(ctx: typer.Context) -> None:
    """Run the server in the foreground."""
    manager = _get_runtime(ctx).manager
    _run(manager.console_mode)


@app.command()
def shell(ctx: typer.Context) -> None:
    """Open the interactive Neo4j shell."""
    manager = _get_runtime(ctx).manager
    _run(manager.shell)


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the server's status report."""
    manager = _get_runtime(ctx).manager
    _run(manager.info)


@app.command()
def restart(ctx: typer.Context) -> None:
    """Restart the server."""
    manager = _get_runtime(ctx).manager
    _run(manager.restart)


@app.command()
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt.",
    ),
) -> None:
    """Stop the server, delete all data and logs, then start it again."""
    manager = _get_runtime(ctx).manager
    if not yes:
        typer.confirm(
            f"This deletes every database file under {manager.install_path / 'data'}. Continue?",
            abort=True,
        )
    removed = _run(manager.reset)
    console.print(f"Removed {len(removed)} entries.")


@app.command("set-auth-enabled")
def set_auth_enabled(
    ctx: typer.Context,
    enabled: bool = typer.Option(
        True,
        "--enable/--disable",
        help="Whether the server should require authentication.",
    ),
) -> None:
    """Enable or disable authentication in the server config."""
    manager = _get_runtime(ctx).manager
    written = _run(lambda: manager.config_auth_enabled(enabled))
    if not written:
        console.print("[yellow]No authentication settings found in the config file.[/yellow]")


@app.command("set-port")
def set_port(
    ctx: typer.Context,
    port: int = typer.Argument(..., help="HTTP port; HTTPS is configured on port - 1."),
) -> None:
    """Configure the HTTP port and disable the HTTPS connector."""
    manager = _get_runtime(ctx).manager
    _run(lambda: manager.config_port(port))


@app.command("change-password")
def change_password(ctx: typer.Context) -> None:
    """Interactively change the server's neo4j user password."""
    manager = _get_runtime(ctx).manager
    result = _run(manager.change_password)
    if not result.success:
        raise typer.Exit(code=int(ExitCode.PROVIDER))


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit configuration as JSON instead of a table.",
    ),
) -> None:
    """Display the effective configuration after merges."""
    data = _get_runtime(ctx).config.to_dict()
    if json_output:
        console.print_json(data=data)
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        if isinstance(value, dict):
            rendered = json.dumps(value, indent=2, sort_keys=True)
        else:
            rendered = str(value)
        table.add_row(key, rendered)
    console.print(table)


def main() -> None:
    """Console-script entry point."""
    app()


__all__ = ["RuntimeContext", "app", "exit_code_for", "main"]
