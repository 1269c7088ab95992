"""Plumbing shared by the snapshot subcommands."""

from __future__ import annotations

import json
import click
from pathlib import Path
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from depdoctor.config import DepDoctorConfig
from depdoctor.utils.http import HTTPClient
from depdoctor.utils.logger import get_logger
from depdoctor.utils.filesystem import load_json_file
from depdoctor.core.advisor import DependencyAdvisor
from depdoctor.models.project import ProjectSnapshot
from depdoctor.core.solutions import SolutionConstraints
from depdoctor.core.registry import MetadataCache, RegistryMetadataStore

logger = get_logger("commands")


def load_snapshot(path: Path) -> ProjectSnapshot:
    """Read and parse the snapshot document at *path*.

    Raises:
        FileOperationError: The file cannot be read.
        ParseError: The file is not a JSON object.
    """
    logger.info("Loading snapshot %s", path)
    return ProjectSnapshot.from_dict(load_json_file(path), source=str(path))


def constraints_from(
    config: DepDoctorConfig,
    *,
    allow_major: bool = False,
    preferred: Optional[Dict[str, str]] = None,
) -> SolutionConstraints:
    """Build generator constraints from *config*.

    CLI flags can only widen the major-upgrade permission; CLI preferences
    replace config preferences for the same package.
    """
    preferred_versions = dict(config.preferred_versions)
    preferred_versions.update(preferred or {})
    return SolutionConstraints(
        allow_major_upgrade=config.allow_major_upgrade or allow_major,
        preferred_versions=preferred_versions,
        exclude_packages=frozenset(config.exclude_packages),
    )


def parse_preferences(
    ctx: click.Context,
    param: click.Parameter,
    values: Tuple[str, ...],
) -> Dict[str, str]:
    """Click callback turning repeated ``NAME=VERSION`` values into a dict."""
    preferences: Dict[str, str] = {}
    for value in values:
        name, sep, version = value.partition("=")
        if not sep or not name.strip() or not version.strip():
            raise click.BadParameter(f"expected NAME=VERSION, got {value!r}")
        preferences[name.strip()] = version.strip()
    return preferences


@asynccontextmanager
async def advisor_session(
    config: DepDoctorConfig,
    *,
    offline: bool,
    constraints: Optional[SolutionConstraints] = None,
    strategy: Optional[str] = None,
) -> AsyncIterator[DependencyAdvisor]:
    """Yield an advisor, backed by the registry unless *offline*.

    The HTTP client is closed when the block exits.
    """
    options: Dict[str, Any] = {
        "strategy": strategy or config.strategy,
        "constraints": constraints or constraints_from(config),
    }

    if offline:
        logger.info("Offline mode: registry lookups disabled")
        yield DependencyAdvisor(None, **options)
        return

    async with HTTPClient() as http:
        store = RegistryMetadataStore(
            http,
            MetadataCache(ttl=config.cache_ttl),
            registry_url=config.registry_url,
        )
        yield DependencyAdvisor(store, **options)


def print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))
