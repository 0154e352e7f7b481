"""Typer application and console-script entry point for axmtoken.

The root callback sets up output and logging and records the global flags
in ``ctx.obj``. Services are built lazily on first use by
:func:`axmtoken.commands.get_services`, so ``--help`` and ``config`` work
even when the configuration is broken.

:func:`main` is the entry point declared in ``pyproject.toml``. Known
:class:`~axmtoken.exceptions.AxmTokenError` failures exit with their
``exit_code``; anything else writes a crash log under the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from axmtoken import __version__
from axmtoken.exit_codes import EXIT_GENERIC_FAILURE

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="axmtoken",
    help="Issue and manage OAuth access tokens for Apple Business and School Manager.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"axmtoken {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    token_url: Optional[str] = typer.Option(
        None, "--token-url", help="Override the OAuth token endpoint."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="HTTP timeout in seconds."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the :class:`~axmtoken.output.OutputManager` and the logging
    handler, then stores the connection overrides in ``ctx.obj`` for
    :func:`~axmtoken.commands.get_services`.
    """
    from axmtoken.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(verbose=verbose, console=output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["token_url"] = token_url
    ctx.obj["timeout"] = timeout
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Exit with 130 on Ctrl-C instead of printing a traceback."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback to ``<data_dir>/logs`` and return its path."""
    from axmtoken.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def _register_commands() -> None:
    from axmtoken.commands import config, devices, tokens

    for name, command in tokens.COMMANDS:
        app.command(name)(command)
    app.command("devices")(devices.devices_command)
    app.add_typer(config.config_app, name="config", help="Global configuration.")


_register_commands()


def main() -> None:
    """CLI entry point invoked by the ``axmtoken`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from axmtoken.exceptions import AxmTokenError
        from axmtoken.output import error

        if isinstance(exc, AxmTokenError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        logger.debug("Unhandled exception", exc_info=True)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
