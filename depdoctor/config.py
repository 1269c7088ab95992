"""Configuration file loader for depdoctor.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``depdoctor.toml``: settings under ``[depdoctor]`` table
- ``pyproject.toml``: settings under ``[tool.depdoctor]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPDOCTOR_CONFIG``
2. ``depdoctor.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.depdoctor]`` section

Configuration precedence: defaults < config file < CLI args.

Example (``depdoctor.toml``)::

    [depdoctor]
    strategy = "conservative"
    check_types = ["peer_dependency", "multiple_versions"]
    exclude_packages = ["typescript"]
    cache_ttl = 600

    [depdoctor.preferred_versions]
    react = "18.2.0"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

import tomli as tomllib

from depdoctor.exceptions import ConfigError
from depdoctor.utils.logger import get_logger
from depdoctor.constants import (
    CONFLICT_TYPES,
    DEFAULT_ALLOW_MAJOR_UPGRADE,
    DEFAULT_CACHE_TTL,
    DEFAULT_OFFLINE,
    DEFAULT_REGISTRY_URL,
    DEFAULT_SEVERITY_FILTER,
    DEFAULT_STRATEGY,
    SEVERITY_FILTERS,
    STRATEGIES,
)

logger = get_logger("config")

CONFIG_FILE_NAME = "depdoctor.toml"
SECTION_NAME = "depdoctor"


@dataclass
class DepDoctorConfig:
    """Parsed and validated depdoctor configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        strategy: Remediation strategy (``conservative``, ``balanced``,
            ``aggressive``).
        allow_major_upgrade: Propose upgrades that cross a major version
            even outside the aggressive strategy.
        check_types: Conflict types to detect, or ``None`` for all.
        severity: Minimum severity shown in detection reports.
        registry_url: Base URL of the npm-compatible registry.
        cache_ttl: Seconds a registry response stays cached.
        offline: Skip registry lookups entirely.
        exclude_packages: Packages never proposed for remediation.
        preferred_versions: Package → version used as the upgrade target
            when the caller names none.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    strategy: str = DEFAULT_STRATEGY
    allow_major_upgrade: bool = DEFAULT_ALLOW_MAJOR_UPGRADE
    check_types: Optional[List[str]] = None
    severity: str = DEFAULT_SEVERITY_FILTER
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_ttl: int = DEFAULT_CACHE_TTL
    offline: bool = DEFAULT_OFFLINE
    exclude_packages: List[str] = field(default_factory=list)
    preferred_versions: Dict[str, str] = field(default_factory=dict)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "strategy": self.strategy,
            "allow_major_upgrade": self.allow_major_upgrade,
            "check_types": self.check_types,
            "severity": self.severity,
            "registry_url": self.registry_url,
            "cache_ttl": self.cache_ttl,
            "offline": self.offline,
            "exclude_packages": self.exclude_packages,
            "preferred_versions": self.preferred_versions,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    own_file = cwd / CONFIG_FILE_NAME
    if own_file.is_file():
        logger.debug("Found %s: %s", CONFIG_FILE_NAME, own_file)
        return own_file

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_depdoctor_section(pyproject_toml):
        logger.debug("Found [tool.depdoctor] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_depdoctor_section(path: Path) -> bool:
    """Return ``True`` if *path* parses and has a ``[tool.depdoctor]`` table.

    Parse errors fall back to ``False`` so an unrelated broken
    pyproject.toml does not stop the CLI.
    """
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring unreadable %s: %s", path, exc)
        return False
    return SECTION_NAME in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> DepDoctorConfig:
    """Load and validate depdoctor configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`DepDoctorConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepDoctorConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get(SECTION_NAME, {})
    else:
        section = raw.get(SECTION_NAME, {})

    if not section:
        logger.debug("Config file found but no depdoctor section, using defaults")
        return DepDoctorConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _expect(value: Any, expected: type, option: str, config_path: str) -> Any:
    # bool is a subclass of int; an int option must not accept true/false
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigError(
            f"{option} must be {_TYPE_NAMES[expected]}, got {type(value).__name__}",
            config_path=config_path,
            option=option,
        )
    return value


_TYPE_NAMES = {
    bool: "a boolean",
    int: "an integer",
    str: "a string",
    list: "a list",
    dict: "a table",
}


def _expect_choice(value: Any, choices: Any, option: str, config_path: str) -> str:
    _expect(value, str, option, config_path)
    if value not in choices:
        raise ConfigError(
            f"{option} must be one of {', '.join(choices)}, got {value!r}",
            config_path=config_path,
            option=option,
        )
    return value


def _expect_str_list(value: Any, option: str, config_path: str) -> List[str]:
    _expect(value, list, option, config_path)
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(
                f"{option} entries must be strings, got {type(item).__name__}",
                config_path=config_path,
                option=option,
            )
    return list(value)


def _expect_version_table(value: Any, option: str, config_path: str) -> Dict[str, str]:
    _expect(value, dict, option, config_path)
    for name, version in value.items():
        if not isinstance(version, str) or not version.strip():
            raise ConfigError(
                f"{option}.{name} must be a non-empty version string",
                config_path=config_path,
                option=option,
            )
    return {name: version.strip() for name, version in value.items()}


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> DepDoctorConfig:
    """Parse and validate the ``[depdoctor]`` or ``[tool.depdoctor]`` table.

    Args:
        section: Raw config dictionary from TOML file.
        config_path: Path string for error messages.

    Returns:
        Validated :class:`DepDoctorConfig` with values from section and defaults.

    Raises:
        ConfigError: Unknown keys, incorrect types or out-of-range values.
    """
    config = DepDoctorConfig()

    known_top = set(config.to_log_dict())
    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "strategy" in section:
        config.strategy = _expect_choice(section["strategy"], STRATEGIES, "strategy", config_path)

    if "severity" in section:
        config.severity = _expect_choice(
            section["severity"], SEVERITY_FILTERS, "severity", config_path
        )

    if "allow_major_upgrade" in section:
        config.allow_major_upgrade = _expect(
            section["allow_major_upgrade"], bool, "allow_major_upgrade", config_path
        )

    if "offline" in section:
        config.offline = _expect(section["offline"], bool, "offline", config_path)

    if "registry_url" in section:
        url = _expect(section["registry_url"], str, "registry_url", config_path)
        config.registry_url = url.rstrip("/")

    if "cache_ttl" in section:
        ttl = _expect(section["cache_ttl"], int, "cache_ttl", config_path)
        if ttl < 0:
            raise ConfigError(
                f"cache_ttl must not be negative, got {ttl}",
                config_path=config_path,
                option="cache_ttl",
            )
        config.cache_ttl = ttl

    if "check_types" in section:
        types = _expect_str_list(section["check_types"], "check_types", config_path)
        unknown_types = [t for t in types if t not in CONFLICT_TYPES]
        if unknown_types:
            raise ConfigError(
                f"Unknown conflict types: {', '.join(unknown_types)}",
                config_path=config_path,
                option="check_types",
            )
        config.check_types = types

    if "exclude_packages" in section:
        config.exclude_packages = _expect_str_list(
            section["exclude_packages"], "exclude_packages", config_path
        )

    if "preferred_versions" in section:
        config.preferred_versions = _expect_version_table(
            section["preferred_versions"], "preferred_versions", config_path
        )

    return config
