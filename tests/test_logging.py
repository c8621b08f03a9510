from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from credstore.core.config import StoreSettings
from credstore.core.logging import setup_logging

pytestmark = pytest.mark.unit


def test_setup_logging_installs_rich_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(
            StoreSettings(
                _env_file=None, database_url="postgresql://localhost/db", log_level="debug"
            )
        )
        assert any(isinstance(h, RichHandler) for h in root.handlers)
        assert root.level == logging.DEBUG
        assert logging.getLogger("asyncpg").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
