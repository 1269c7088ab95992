"""Detect command implementation for depdoctor.

Classifies every dependency problem in a project snapshot: unmet and
missing peers, duplicate installed versions, workspace drift, risky
overrides, engine mismatches, out-of-range installs and deprecated
releases.

Typical usage::

    # Every issue, as a table
    $ depdoctor detect snapshot.json

    # Only peer problems, errors only, as JSON
    $ depdoctor detect snapshot.json --check peer_dependency --severity error -f json

    # Skip the registry; only what the snapshot itself says
    $ depdoctor detect snapshot.json --offline

    # Every issue with its best-ranked fix
    $ depdoctor detect snapshot.json --with-solutions
"""

from __future__ import annotations

import sys
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from depdoctor.exceptions import DepDoctorError
from depdoctor.constants import CONFLICT_TYPES, SEVERITY_FILTERS
from depdoctor.context import pass_context, DepDoctorContext
from depdoctor.models.conflict import ConflictRecord, DetectionReport
from depdoctor.models.solution import ConflictResolution
from depdoctor.commands._shared import advisor_session, load_snapshot, print_json
from depdoctor.utils import (
    colorize_severity,
    get_logger,
    print_error,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.detect")


@click.command()
@click.argument(
    "snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--check",
    "check_types",
    multiple=True,
    type=click.Choice(list(CONFLICT_TYPES)),
    help="Conflict type to detect (repeatable). Defaults to all.",
)
@click.option(
    "--severity",
    type=click.Choice(list(SEVERITY_FILTERS)),
    default=None,
    help="Minimum severity to report.",
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
@click.option(
    "--with-solutions",
    is_flag=True,
    help="Also rank candidate fixes for every reported issue.",
)
@pass_context
def detect(
    ctx: DepDoctorContext,
    snapshot: Path,
    check_types: Tuple[str, ...],
    severity: Optional[str],
    format: str,
    offline: bool,
    with_solutions: bool,
) -> None:
    """Detect dependency conflicts in a project snapshot.

    Exits with 1 when at least one error-severity issue is found, 0
    otherwise.
    """
    config = ctx.config
    try:
        report = asyncio.run(
            _detect_async(
                ctx,
                snapshot,
                check_types=list(check_types) or config.check_types,
                severity=severity or config.severity,
                offline=offline or config.offline,
                with_solutions=with_solutions,
            )
        )
    except DepDoctorError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        print_json(report.to_json())
    else:
        _display_report(report)
        if report.resolutions:
            _display_resolutions(report.resolutions)

    sys.exit(1 if report.has_errors else 0)


async def _detect_async(
    ctx: DepDoctorContext,
    snapshot_path: Path,
    *,
    check_types: Optional[List[str]],
    severity: str,
    offline: bool,
    with_solutions: bool,
) -> DetectionReport:
    snapshot = load_snapshot(snapshot_path)
    async with advisor_session(ctx.config, offline=offline) as advisor:
        return await advisor.detect_conflicts(
            snapshot,
            check_types=check_types,
            severity=severity,
            with_solutions=with_solutions,
        )


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_report(report: DetectionReport) -> None:
    for warning in report.warnings:
        print_warning(warning)

    if not report.has_issues:
        if not report.warnings:
            print_success("No dependency issues found")
        return

    column_styles: Dict[str, Dict[str, Any]] = {
        "Severity": {"justify": "center", "no_wrap": True},
        "Type": {"no_wrap": True},
        "Package": {"style": "bold cyan", "no_wrap": True},
        "Issue": {"no_wrap": False},
        "Suggested Action": {"style": "dim", "no_wrap": False},
    }
    print_table(
        [_create_table_row(record) for record in report.issues],
        title="Dependency Issues",
        column_styles=column_styles,
        show_row_lines=True,
    )

    summary = report.summary
    line = (
        f"{summary.total} issue(s): {summary.errors} error(s), "
        f"{summary.warnings} warning(s), {summary.infos} info"
    )
    (print_error if report.has_errors else print_warning)(line)


def _create_table_row(record: ConflictRecord) -> Dict[str, str]:
    return {
        "Severity": colorize_severity(record.severity.value),
        "Type": record.type.value,
        "Package": record.package,
        "Issue": record.message,
        "Suggested Action": record.suggested_action or "-",
    }


def _display_resolutions(resolutions: List[ConflictResolution]) -> None:
    rows = []
    for resolution in resolutions:
        best = resolution.recommended
        if best is None:
            continue
        rows.append(
            {
                "Package": resolution.package,
                "Issue": resolution.issue_type,
                "Recommended Fix": best.title,
                "Risk": colorize_severity(best.risk.level.value),
                "Score": str(best.score),
                "Alternatives": str(len(resolution.solutions) - 1),
            }
        )

    print_table(
        rows,
        title="Recommended Fixes",
        column_styles={
            "Package": {"style": "bold cyan", "no_wrap": True},
            "Score": {"justify": "right", "style": "bold green"},
            "Alternatives": {"justify": "right", "style": "dim"},
        },
    )
