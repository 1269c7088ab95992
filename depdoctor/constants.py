"""
Centralized constants for depdoctor.

This module defines immutable configuration values used across depdoctor,
including network settings, package-manager conventions, scoring tables,
and logging formats. All values are intended to be treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "depdoctor/{version}"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Default npm-compatible registry.
DEFAULT_REGISTRY_URL: Final[str] = "https://registry.npmjs.org"

#: Seconds a registry packument stays fresh in the metadata cache.
DEFAULT_CACHE_TTL: Final[int] = 300

#: Maximum number of registry lookups in flight at once.
DEFAULT_CONCURRENT_LIMIT: Final[int] = 10

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 10

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 2

# ---------------------------------------------------------------------------
# Package-manager conventions
# ---------------------------------------------------------------------------

#: Lock file written by each supported package manager.
LOCK_FILES: Final[Mapping[str, str]] = {
    "npm": "package-lock.json",
    "pnpm": "pnpm-lock.yaml",
    "yarn": "yarn.lock",
}

#: Manifest field that holds forced versions for each package manager.
OVERRIDE_FIELDS: Final[Mapping[str, str]] = {
    "npm": "overrides",
    "pnpm": "pnpm.overrides",
    "yarn": "resolutions",
}

#: Separator used when flattening nested override maps into one key.
OVERRIDE_PATH_SEPARATOR: Final[str] = ">"

#: Manifest file name.
MANIFEST_FILE: Final[str] = "package.json"

#: Directory holding installed packages.
INSTALL_DIR: Final[str] = "node_modules"

# ---------------------------------------------------------------------------
# Analysis defaults
# ---------------------------------------------------------------------------

#: Every conflict type the classifier knows how to emit, in check order.
CONFLICT_TYPES: Final[Sequence[str]] = (
    "version_conflict",
    "peer_dependency",
    "missing_dependency",
    "multiple_versions",
    "workspace_mismatch",
    "override_risk",
    "engine_mismatch",
    "deprecated",
)

#: Accepted remediation strategies.
STRATEGIES: Final[Sequence[str]] = ("conservative", "balanced", "aggressive")

#: Accepted severity filters for reports.
SEVERITY_FILTERS: Final[Sequence[str]] = ("all", "error", "warning")

DEFAULT_STRATEGY: Final[str] = "balanced"
DEFAULT_SEVERITY_FILTER: Final[str] = "all"
DEFAULT_ALLOW_MAJOR_UPGRADE: Final[bool] = False
DEFAULT_OFFLINE: Final[bool] = False

#: Workspace-unify candidates touching more members than this are "major" effort.
WORKSPACE_UNIFY_MAJOR_THRESHOLD: Final[int] = 3

# ---------------------------------------------------------------------------
# Recommendation scores (0-100)
# ---------------------------------------------------------------------------

SCORE_UPGRADE_LATEST: Final[int] = 90
SCORE_UPGRADE_LATEST_BREAKING: Final[int] = 60
SCORE_UPGRADE_TARGET: Final[int] = 75
SCORE_FORCE_PIN: Final[int] = 65
SCORE_WORKSPACE_UNIFY: Final[int] = 85
SCORE_DEDUPE: Final[int] = 95
SCORE_REGENERATE_LOCK: Final[int] = 70
SCORE_UPDATE_ALL: Final[int] = 40

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading snapshot files.
MAX_FILE_SIZE: Final[int] = 50 * 1024 * 1024  # 50 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
