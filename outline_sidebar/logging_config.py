from __future__ import annotations

"""Central logging configuration for the outline sidebar.

Import and call :func:`setup_logging` at application start-up.
"""

import logging
import logging.config
import os
from typing import Optional

from outline_sidebar.config import ConfigManager

__all__ = ["setup_logging"]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging from the ``logging`` config section.

    ``verbose`` lowers the console handler to INFO.
    """
    log_dir = os.environ.get("OUTLINE_SIDEBAR_LOG_DIR", "logs")
    log_file = os.path.join(log_dir, "outline_sidebar.log")

    try:
        logging_config = ConfigManager().get_logging_config()

        if logging_config and isinstance(logging_config, dict) and logging_config.get("version"):
            handlers = logging_config.get("handlers") or {}
            if "file" in handlers:
                os.makedirs(log_dir, exist_ok=True)
                handlers["file"]["filename"] = log_file
            if verbose and "console" in handlers:
                handlers["console"]["level"] = "INFO"
            logging.config.dictConfig(logging_config)
            logging.getLogger(__name__).info("===== Logging initialised from config files =====")
        else:
            _setup_minimal_logging(verbose)
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        # dictConfig wraps bad handler/formatter definitions in ValueError
        _setup_minimal_logging(verbose, error=exc)

    _apply_debug_overrides()


def _setup_minimal_logging(verbose: bool, error: Optional[BaseException] = None) -> None:
    """Set up console-only logging when the config is unusable."""
    minimal_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": "INFO" if verbose else "WARNING",
            },
        },
        "root": {
            "level": "INFO",
            "handlers": ["console"],
        },
    }
    logging.config.dictConfig(minimal_config)
    if error is not None:
        logging.getLogger(__name__).error(
            "===== Logging initialised with minimal fallback (config error: %s) =====", error
        )


def _apply_debug_overrides() -> None:
    """Apply environment-driven module-specific debug overrides.

    ``OUTLINE_SIDEBAR_DEBUG_MODULES=comma,separated,logger,names`` switches the
    listed loggers to DEBUG.
    """
    extra_modules = os.environ.get("OUTLINE_SIDEBAR_DEBUG_MODULES", "").strip()
    targets = [m.strip() for m in extra_modules.split(",") if m.strip()]
    for name in targets:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        # Ensure at least one handler emits DEBUG for this logger
        has_debug_handler = any(h.level <= logging.DEBUG for h in logger.handlers)
        if not has_debug_handler:
            h = logging.StreamHandler()
            h.setLevel(logging.DEBUG)
            h.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            logger.addHandler(h)
        logger.info("Debug override active for logger '%s'", name)
