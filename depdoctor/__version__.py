"""
depdoctor version information.

The package version, shown by the CLI ``--version`` option and sent in
the registry client's User-Agent header. Keep it in step with ``pyproject.toml``.
"""

from __future__ import annotations

__version__ = "0.1.0.dev0"
