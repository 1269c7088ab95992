from __future__ import annotations

import logging
from typing import Generator

import pytest

import depdoctor.utils.logger as logger_module
from depdoctor.utils.console import reconfigure_console


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Undo logging and console changes made by a CLI run in another test."""
    yield
    root = logging.getLogger(logger_module.ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True
    logger_module._logging_configured = False
    reconfigure_console()
