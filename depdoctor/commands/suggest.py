"""Suggest command implementation for depdoctor.

Proposes ranked remediation plans, either for one package (upgrade,
force-pin, workspace unification) or for the whole graph (dedupe, lock
regeneration, bulk update).

Typical usage::

    # Ranked fixes for one package
    $ depdoctor suggest snapshot.json --package react

    # Aim at a specific version and allow major upgrades
    $ depdoctor suggest snapshot.json -p react --target-version 18.2.0 --allow-major

    # Preferred versions, as in the config file's preferred_versions table
    $ depdoctor suggest snapshot.json -p lodash --prefer lodash=4.17.21

    # Graph-wide suggestions as JSON
    $ depdoctor suggest snapshot.json --strategy aggressive -f json
"""

from __future__ import annotations

import sys
import click
import asyncio
from pathlib import Path
from typing import Dict, Optional

from depdoctor.constants import STRATEGIES
from depdoctor.exceptions import DepDoctorError
from depdoctor.context import pass_context, DepDoctorContext
from depdoctor.models.solution import SolutionCandidate, SolutionReport
from depdoctor.commands._shared import (
    advisor_session,
    constraints_from,
    load_snapshot,
    parse_preferences,
    print_json,
)
from depdoctor.utils import (
    colorize_severity,
    get_logger,
    get_raw_console,
    print_error,
    print_table,
    print_warning,
)

logger = get_logger("commands.suggest")


@click.command()
@click.argument(
    "snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--package",
    "-p",
    default=None,
    help="Package to fix. Omit for graph-wide suggestions.",
)
@click.option(
    "--target-version",
    default=None,
    help="Version to aim for instead of the latest release.",
)
@click.option(
    "--strategy",
    type=click.Choice(list(STRATEGIES)),
    default=None,
    help="Remediation strategy.",
)
@click.option(
    "--prefer",
    "preferred",
    multiple=True,
    metavar="NAME=VERSION",
    callback=parse_preferences,
    help="Preferred target version for a package (repeatable).",
)
@click.option(
    "--allow-major",
    is_flag=True,
    help="Propose upgrades that cross a major version.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.option(
    "--offline",
    is_flag=True,
    help="Do not query the package registry.",
)
@pass_context
def suggest(
    ctx: DepDoctorContext,
    snapshot: Path,
    package: Optional[str],
    target_version: Optional[str],
    strategy: Optional[str],
    allow_major: bool,
    preferred: Dict[str, str],
    format: str,
    offline: bool,
) -> None:
    """Suggest ranked solutions for dependency problems."""
    config = ctx.config
    try:
        report = asyncio.run(
            _suggest_async(
                ctx,
                snapshot,
                package=package,
                target_version=target_version,
                strategy=strategy or config.strategy,
                allow_major=allow_major,
                preferred=preferred,
                offline=offline or config.offline,
            )
        )
    except DepDoctorError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        print_json(report.to_json())
    else:
        _display_report(report)


async def _suggest_async(
    ctx: DepDoctorContext,
    snapshot_path: Path,
    *,
    package: Optional[str],
    target_version: Optional[str],
    strategy: str,
    allow_major: bool,
    preferred: Dict[str, str],
    offline: bool,
) -> SolutionReport:
    snapshot = load_snapshot(snapshot_path)
    constraints = constraints_from(
        ctx.config,
        allow_major=allow_major,
        preferred=preferred,
    )
    async with advisor_session(
        ctx.config,
        offline=offline,
        constraints=constraints,
        strategy=strategy,
    ) as advisor:
        return await advisor.suggest_solutions(
            snapshot,
            package=package,
            target_version=target_version,
        )


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_report(report: SolutionReport) -> None:
    for warning in report.warnings:
        print_warning(warning)

    if not report.solutions:
        return

    recommended_id = report.comparison.recommended_id
    data = [
        {
            "#": str(position),
            "Solution": ("* " if c.id == recommended_id else "") + c.title,
            "Kind": c.kind.value,
            "Risk": colorize_severity(c.risk.level.value),
            "Effort": colorize_severity(c.estimated_effort.value),
            "Score": str(c.score),
        }
        for position, c in enumerate(report.solutions, start=1)
    ]
    title = (
        f"Solutions for {report.target_package}"
        if report.target_package
        else "General Solutions"
    )
    print_table(
        data,
        title=title,
        caption=report.comparison.reason,
        column_styles={
            "#": {"justify": "right", "style": "dim"},
            "Solution": {"style": "bold"},
            "Score": {"justify": "right", "style": "bold green"},
        },
    )

    if report.recommended is not None:
        _display_steps(report.recommended)


def _display_steps(candidate: SolutionCandidate) -> None:
    console = get_raw_console()
    console.print(f"\n[bold]Steps for:[/bold] {candidate.title}")
    for position, step in enumerate(candidate.steps, start=1):
        if step.command:
            detail = f"[cyan]{step.command}[/cyan]"
        else:
            change = f" -> {step.to_version}" if step.to_version else ""
            where = f" ({step.field})" if step.field else ""
            detail = f"edit {step.file}{where}: {step.target}{change}"
        console.print(f"  {position}. {detail}")

    for factor in candidate.risk.factors:
        console.print(f"  [yellow]![/yellow] {factor}")
