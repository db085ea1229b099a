from __future__ import annotations

"""Configuration loading and access helpers.

Declarative settings (sidebar views, keywords, window sides, logging) live in
YAML files packaged with *outline_sidebar*. They are merged with user
overrides found in the user configuration directory:

``$OUTLINE_SIDEBAR_CONFIG_DIR/*.yml`` when the variable is set, otherwise
``~/.outline_sidebar/*.yml``.
"""

import importlib.resources as pkg_resources
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

__all__ = ["ConfigManager", "user_config_dir"]


def user_config_dir() -> Path:
    """Return the user configuration directory."""
    override = os.environ.get("OUTLINE_SIDEBAR_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".outline_sidebar"


def _read_packaged(filename: str) -> str:
    return pkg_resources.files(__package__).joinpath(filename).read_text(encoding="utf-8")


def _ensure_user_configs_exist(config_dir: Path, default_filenames: Dict[str, str]) -> None:
    """Copy default config files to the user directory if they don't exist."""
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Could not create user config directory %s: %s", config_dir, e)
        return

    for filename in default_filenames.values():
        user_path = config_dir / filename
        if user_path.exists():
            continue
        try:
            user_path.write_text(_read_packaged(filename), encoding="utf-8")
            logger.info("Created user config: %s", user_path)
        except (FileNotFoundError, OSError) as e:
            logger.warning("Could not copy default config %s: %s", filename, e)


class _Singleton(type):
    _instance: "ConfigManager" | None = None

    def __call__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__call__(*args, **kwargs)
        return cls._instance


class ConfigManager(metaclass=_Singleton):
    """Lazy-loads and exposes configuration sections as dictionaries."""

    _DEFAULT_FILENAMES = {
        "sidebar": "sidebar.yml",
        "logging": "logging.yml",
    }

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._status: Dict[str, str] = {}
        self._ensure_loaded()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def get_sidebar_config(self) -> Dict[str, Any]:
        return self._data.get("sidebar", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self._data.get("logging", {})

    def status(self, key: str) -> str:
        """Return how section *key* was loaded (``loaded``, ``loaded+overrides``, ...)."""
        return self._status.get(key, "missing")

    # ------------------------------------------------------------------
    # Internal loading logic
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> None:
        if self._data:
            return  # already loaded

        startup_summary = []
        config_dir = user_config_dir()
        _ensure_user_configs_exist(config_dir, self._DEFAULT_FILENAMES)

        for key, filename in self._DEFAULT_FILENAMES.items():
            merged_cfg: Dict[str, Any] = {}
            status = "missing"

            # 1. packaged default
            try:
                packaged_data = yaml.safe_load(_read_packaged(filename)) or {}
                merged_cfg.update(packaged_data)
                status = "loaded"
            except (FileNotFoundError, OSError):
                logger.error("Missing packaged config for %s (%s)", key, filename)
            except yaml.YAMLError as exc:
                logger.error("Invalid packaged config for %s (%s): %s", key, filename, exc)
                status = "invalid"

            # 2. user overrides
            user_path = config_dir / filename
            if user_path.exists():
                try:
                    user_data = yaml.safe_load(user_path.read_text(encoding="utf-8")) or {}
                    if not isinstance(user_data, dict):
                        raise yaml.YAMLError(f"top level must be a mapping, got {type(user_data).__name__}")
                    if key == "sidebar" and isinstance(user_data.get("views"), dict):
                        views = dict(merged_cfg.get("views") or {})
                        views.update(user_data["views"])
                        user_data = {**user_data, "views": views}
                    merged_cfg.update(user_data)
                    if status == "loaded":
                        status = "loaded+overrides"
                except (OSError, yaml.YAMLError) as exc:
                    logger.error("Could not parse user config %s: %s", user_path, exc)

            self._data[key] = merged_cfg
            self._status[key] = status
            startup_summary.append(f"{key}: {status}")

        logger.info("Config startup: %s", " | ".join(startup_summary))
