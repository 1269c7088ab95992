"""
Version and range helpers for depdoctor.

npm range syntax (caret, tilde, x-ranges, hyphen ranges, ``||``) is
evaluated with :class:`semantic_version.NpmSpec`. Every helper here fails
closed: a malformed version or range yields ``False`` / ``None`` instead of
raising, so one bad manifest entry never aborts an analysis pass.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

import semantic_version

_LEADING_NUMBER = re.compile(r"\d+")
_VERSION_LIKE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_ENGINE_MIN_MAJOR = re.compile(r"^\s*>=\s*v?(\d+)")
_RUNTIME_MAJOR = re.compile(r"^\s*v?(\d+)")


def parse_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Parse a concrete semver string, tolerating a leading ``v`` or ``=``.

    Returns:
        Parsed version, or ``None`` for anything that is not a full
        ``MAJOR.MINOR.PATCH[-pre][+build]`` version.
    """
    if not value:
        return None
    cleaned = value.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(cleaned)
    except ValueError:
        return None


def parse_range(expression: Optional[str]) -> Optional[semantic_version.NpmSpec]:
    """Parse an npm range expression. An empty expression means ``*``."""
    if expression is None:
        return None
    cleaned = expression.strip() or "*"
    try:
        return semantic_version.NpmSpec(cleaned)
    except ValueError:
        return None


def satisfies(version: Optional[str], range_expr: Optional[str]) -> bool:
    """Return True if *version* satisfies the npm range *range_expr*.

    Examples:
        >>> satisfies("1.3.0", "^1.2.0")
        True
        >>> satisfies("2.0.0", "^1.2.0")
        False
        >>> satisfies("1.0.0", "not-a-range")
        False
    """
    parsed = parse_version(version)
    spec = parse_range(range_expr)
    if parsed is None or spec is None:
        return False
    return spec.match(parsed)


def max_satisfying(
    versions: Iterable[str],
    range_expr: Optional[str],
) -> Optional[str]:
    """Return the greatest version in *versions* meeting *range_expr*.

    The original string is returned (not the normalised form), so callers
    can look it up in their own collections.

    Examples:
        >>> max_satisfying(["1.2.0", "1.3.0", "2.0.0"], "^1.2.0")
        '1.3.0'
        >>> max_satisfying(["1.0.0"], "^2.0.0") is None
        True
    """
    spec = parse_range(range_expr)
    if spec is None:
        return None

    best: Optional[Tuple[semantic_version.Version, str]] = None
    for raw in versions:
        parsed = parse_version(raw)
        if parsed is None or not spec.match(parsed):
            continue
        if best is None or parsed > best[0]:
            best = (parsed, raw)

    return best[1] if best else None


def is_major_bump(from_version: Optional[str], to_version: Optional[str]) -> bool:
    """Return True if moving *from_version* → *to_version* raises the major.

    Only the leading numeric component of each string is compared, so raw
    requirements such as ``^4.17.0`` work too. An absent *from_version*
    reports no breaking change.

    Examples:
        >>> is_major_bump("1.9.0", "2.0.0")
        True
        >>> is_major_bump(None, "2.0.0")
        False
    """
    if not from_version or not to_version:
        return False

    from_match = _LEADING_NUMBER.search(from_version)
    to_match = _LEADING_NUMBER.search(to_version)
    if not from_match or not to_match:
        return False

    return int(to_match.group()) > int(from_match.group())


def coerce_version(text: Optional[str]) -> Optional[str]:
    """Extract a ``MAJOR.MINOR.PATCH`` version from a raw requirement.

    This is the syntactic fallback used when no registry facts are
    available. Missing components are filled with zero.

    Examples:
        >>> coerce_version("^4.17.0")
        '4.17.0'
        >>> coerce_version("~2")
        '2.0.0'
        >>> coerce_version("latest") is None
        True
    """
    if not text:
        return None
    match = _VERSION_LIKE.search(text)
    if not match:
        return None
    major, minor, patch = match.groups()
    return f"{int(major)}.{int(minor or 0)}.{int(patch or 0)}"


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Return the parseable entries of *versions* in ascending semver order."""
    parsed = [(parse_version(v), v) for v in versions]
    valid = [(p, v) for p, v in parsed if p is not None]
    valid.sort(key=lambda item: item[0])
    return [v for _, v in valid]


def engine_satisfied(current: Optional[str], required: Optional[str]) -> bool:
    """Check a runtime version against an ``engines`` range, leniently.

    Only ranges that start with ``>=`` followed by a numeric major are
    evaluated, and only the major numbers are compared. Any other syntax,
    and any unparseable runtime version, counts as satisfied.

    Examples:
        >>> engine_satisfied("16.20.0", ">=18")
        False
        >>> engine_satisfied("16.20.0", "^18 || ^20")
        True
    """
    if not required or not current:
        return True

    required_match = _ENGINE_MIN_MAJOR.match(required)
    if not required_match:
        return True

    current_match = _RUNTIME_MAJOR.match(current)
    if not current_match:
        return True

    return int(current_match.group(1)) >= int(required_match.group(1))


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Args:
        current_version: Currently installed version, or ``None``.
        target_version: Target version to compare against.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` (pre-release or build-only
        change) or ``"unknown"``.

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    current = parse_version(current_version)
    target = parse_version(target_version)
    if current is None or target is None:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    if target.major != current.major:
        return "major"

    if target.minor != current.minor:
        return "minor"

    if target.patch != current.patch:
        return "patch"

    return "update"
