import logging
import logging.handlers

from outline_sidebar.logging_config import setup_logging


def test_setup_logging_uses_packaged_config(tmp_path):
    setup_logging()

    pkg = logging.getLogger("outline_sidebar")
    assert pkg.level == logging.INFO
    file_handlers = [h for h in pkg.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert file_handlers
    assert file_handlers[0].baseFilename == str(tmp_path / "logs" / "outline_sidebar.log")


def test_debug_modules_override(monkeypatch):
    monkeypatch.setenv("OUTLINE_SIDEBAR_DEBUG_MODULES", "outline_sidebar.core.query, outline_sidebar.cli")
    setup_logging()
    assert logging.getLogger("outline_sidebar.core.query").level == logging.DEBUG
    assert logging.getLogger("outline_sidebar.cli").level == logging.DEBUG
