"""Analyze command implementation for depdoctor.

Summarizes the installed dependency tree of a project snapshot: size
figures, every installed package with its versions and locations, the
root's direct dependencies, workspace members and overrides. Like
``trace``, it reads only the snapshot.

Typical usage::

    $ depdoctor analyze snapshot.json
    $ depdoctor analyze snapshot.json --duplicates-only
    $ depdoctor analyze snapshot.json -f json
"""

from __future__ import annotations

import sys
import click
from pathlib import Path

from depdoctor.exceptions import DepDoctorError
from depdoctor.core.advisor import DependencyAdvisor
from depdoctor.core.normalizer import DependencyGraph
from depdoctor.context import pass_context, DepDoctorContext
from depdoctor.commands._shared import load_snapshot, print_json
from depdoctor.utils import get_logger, print_error, print_table, print_warning

logger = get_logger("commands.analyze")


@click.command()
@click.argument(
    "snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--duplicates-only",
    is_flag=True,
    help="List only packages installed at more than one version.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def analyze(
    ctx: DepDoctorContext,
    snapshot: Path,
    duplicates_only: bool,
    format: str,
) -> None:
    """Summarize the installed dependency tree."""
    try:
        graph = DependencyAdvisor().analyze(load_snapshot(snapshot))
    except DepDoctorError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        data = graph.to_json()
        if duplicates_only:
            data["flatList"] = [r.to_json() for r in graph.duplicated]
        print_json(data)
    else:
        _display_analysis(graph, duplicates_only)


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_analysis(graph: DependencyGraph, duplicates_only: bool) -> None:
    if not graph.has_signal:
        print_warning("No dependency information found in the snapshot")
        return

    stats = graph.stats
    root = f"{graph.root_name}@{graph.root_version}" if graph.root_version else graph.root_name
    print_table(
        [
            {"Metric": "Project", "Value": root or "-"},
            {"Metric": "Package manager", "Value": graph.package_manager.value},
            {"Metric": "Installed copies", "Value": str(stats.total_packages)},
            {"Metric": "Unique packages", "Value": str(stats.unique_packages)},
            {"Metric": "Duplicated packages", "Value": str(stats.duplicate_packages)},
            {"Metric": "Max depth", "Value": str(stats.max_depth)},
            {"Metric": "Workspace members", "Value": str(len(graph.workspaces))},
            {"Metric": "Overrides", "Value": str(len(graph.overrides))},
        ],
        title="Dependency Overview",
        column_styles={"Value": {"justify": "right", "style": "bold"}},
    )

    records = graph.duplicated if duplicates_only else list(graph.records.values())
    if not records:
        return

    print_table(
        [
            {
                "Package": record.name,
                "Versions": ", ".join(record.versions),
                "Copies": str(len(record.occurrences)),
                "Direct": "yes" if graph.is_direct(record.name) else "",
            }
            for record in records
        ],
        title="Duplicated Packages" if duplicates_only else "Installed Packages",
        column_styles={
            "Package": {"style": "bold cyan", "no_wrap": True},
            "Copies": {"justify": "right"},
        },
    )
