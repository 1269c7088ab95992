"""Command-line entry point for depdoctor.

The ``cli`` group sets up logging from ``-v`` flags, loads ``depdoctor.toml``
(or ``[tool.depdoctor]``) once, and hands a :class:`DepDoctorContext` to the
snapshot commands: ``detect``, ``suggest``, ``trace`` and ``analyze``.
:func:`main` maps every outcome to a process exit code.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from depdoctor.config import load_config
from depdoctor.__version__ import __version__
from depdoctor.context import DepDoctorContext
from depdoctor.commands.trace import trace
from depdoctor.commands.analyze import analyze
from depdoctor.commands.detect import detect
from depdoctor.commands.suggest import suggest
from depdoctor.exceptions import ConfigError, DepDoctorError
from depdoctor.utils.logger import get_logger, setup_logging
from depdoctor.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a depdoctor.toml (or pyproject.toml) to use instead of discovery.",
    envvar="DEPDOCTOR_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPDOCTOR_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="depdoctor",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """depdoctor: diagnose and fix npm, pnpm and yarn dependency conflicts.

    \b
    Available commands:
      depdoctor detect SNAPSHOT            Classify dependency problems
      depdoctor suggest SNAPSHOT           Propose ranked fixes
      depdoctor trace SNAPSHOT PACKAGE     Explain why a package is installed
      depdoctor analyze SNAPSHOT           Summarize the installed tree

    \b
    Examples:
      depdoctor detect snapshot.json --with-solutions
      depdoctor suggest snapshot.json --package react
      depdoctor -v trace snapshot.json lodash

    Use ``depdoctor COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    depdoctor_ctx = DepDoctorContext()
    depdoctor_ctx.config_path = config or loaded_config.source_path
    depdoctor_ctx.color = color
    depdoctor_ctx.verbose = verbose
    depdoctor_ctx.config = loaded_config
    ctx.obj = depdoctor_ctx

    # Rich reads NO_COLOR when the console is rebuilt
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("depdoctor v%s", __version__)
    logger.debug("Config path: %s", depdoctor_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Map ``-v`` counts to WARNING, INFO and DEBUG."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(detect)
cli.add_command(suggest)
cli.add_command(trace)
cli.add_command(analyze)


def main() -> int:
    """Run the CLI and return the process exit code.

    Returns:
        Exit code:
            0   No error-severity issue, or a successful report
            1   Error-severity issues, an untraceable package, or a failure
                (bad snapshot, bad config, registry trouble)
            2   Usage error reported by Click
            130 Interrupted (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except DepDoctorError as exc:
        print_error(str(exc))
        logger.debug(
            "Failure details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
