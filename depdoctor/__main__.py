"""
Executable module for depdoctor.

Running:
    python -m depdoctor

is equivalent to:
    depdoctor

This module simply forwards execution to the CLI entrypoint defined in
`depdoctor.cli`.
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Explain why the CLI could not be imported."""
    sys.stderr.write("depdoctor CLI could not be loaded.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    try:
        from depdoctor.__version__ import __version__

        sys.stderr.write(f"depdoctor version: {__version__}\n")
    except ImportError:
        sys.stderr.write("depdoctor version: <unknown>\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Main entrypoint when executing `python -m depdoctor`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from depdoctor.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
