"""Trace command implementation for depdoctor.

Shows where a package is installed, which chains pull it in, and how far
a change to it would reach. Tracing reads only the snapshot; it never
queries the registry.

Typical usage::

    $ depdoctor trace snapshot.json lodash
    $ depdoctor trace snapshot.json @types/react -f json
"""

from __future__ import annotations

import sys
import click
from pathlib import Path

from depdoctor.exceptions import DepDoctorError
from depdoctor.core.advisor import DependencyAdvisor
from depdoctor.context import pass_context, DepDoctorContext
from depdoctor.models.trace import DependencyPath, DependencyTrace
from depdoctor.commands._shared import load_snapshot, print_json
from depdoctor.utils import (
    colorize_severity,
    get_logger,
    get_raw_console,
    print_error,
    print_table,
    print_warning,
)

logger = get_logger("commands.trace")


@click.command()
@click.argument(
    "snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.argument("package")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def trace(
    ctx: DepDoctorContext,
    snapshot: Path,
    package: str,
    format: str,
) -> None:
    """Trace why PACKAGE is installed.

    Exits with 1 when the package is not installed at all.
    """
    try:
        result = DependencyAdvisor().trace(load_snapshot(snapshot), package)
    except DepDoctorError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        print_json(result.to_json())
    else:
        _display_trace(result)

    sys.exit(0 if result.found else 1)


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _format_path(path: DependencyPath) -> str:
    return " > ".join(
        f"{link.package}@{link.version}" if link.version else link.package
        for link in path.chain
    )


def _display_trace(result: DependencyTrace) -> None:
    if not result.found:
        print_warning(f"{result.package} is not installed")
        return

    print_table(
        [
            {
                "Version": copy.version,
                "Locations": "\n".join(copy.locations),
                "Used By": ", ".join(copy.used_by) or "(root)",
            }
            for copy in result.installed_versions
        ],
        title=f"Installed copies of {result.package}",
        column_styles={"Version": {"style": "bold cyan", "no_wrap": True}},
        show_row_lines=True,
    )

    console = get_raw_console()
    console.print("\n[bold]Dependency paths:[/bold]")
    for path in result.paths:
        console.print(f"  {_format_path(path)}")

    console.print(
        f"\n[bold]Impact:[/bold] {colorize_severity(result.estimated_impact)} "
        f"({len(result.direct_dependents)} direct dependent(s), "
        f"depth {result.transitive_depth})"
    )
    for line in result.recommendation:
        console.print(f"  - {line}")
