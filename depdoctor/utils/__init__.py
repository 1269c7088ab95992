"""
Utility helpers for depdoctor.

This package provides reusable utilities used across depdoctor, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Snapshot file loading
- Async HTTP client utilities
- npm version and range helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from depdoctor.utils.filesystem import load_json_file, safe_read_file

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from depdoctor.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from depdoctor.utils.console import (
    colorize_severity,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from depdoctor.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from depdoctor.utils.version_utils import (
    is_major_bump,
    max_satisfying,
    satisfies,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_severity",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "load_json_file",
    # HTTP
    "HTTPClient",
    # Version utilities
    "satisfies",
    "max_satisfying",
    "is_major_bump",
]
