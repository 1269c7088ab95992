"""
Shared context object for depdoctor CLI commands.

This module defines the global Click context used to share configuration
and runtime options across CLI subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from depdoctor.config import DepDoctorConfig


class DepDoctorContext:
    """Global context object for depdoctor CLI commands.

    Attributes:
        config_path: Path to the depdoctor configuration file, if provided.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration; defaults until the group callback runs.
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: DepDoctorConfig = DepDoctorConfig()


#: Click decorator for injecting :class:`DepDoctorContext` into commands.
pass_context = click.make_pass_decorator(DepDoctorContext, ensure=True)
