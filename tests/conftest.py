"""Shared fixtures for the outline sidebar test-suite.

Every test runs against an isolated user config directory and log directory,
with the configuration singleton and logger state reset afterwards.
"""

import datetime as dt
import logging

import pytest

from outline_sidebar.config import ConfigManager
from outline_sidebar.core.buffers import Workspace
from outline_sidebar.core.models import EntryMeta, EntryRef, SidebarSettings

SAMPLE = """#+CATEGORY: work
* TODO [#A] Write report  :office:
SCHEDULED: <2024-05-02 Thu>
Report body.
** NEXT Collect numbers
** DONE Draft outline
* Home
:PROPERTIES:
:CATEGORY: home
:END:
** TODO Fix sink  :house:
DEADLINE: <2024-05-01 Wed>
** TODO [#B] Call plumber
*** Notes
Some notes.
* Someday
Just text.
"""

TODAY = dt.date(2024, 5, 1)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("OUTLINE_SIDEBAR_CONFIG_DIR", str(tmp_path / "user_config"))
    monkeypatch.setenv("OUTLINE_SIDEBAR_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("OUTLINE_SIDEBAR_DEBUG_MODULES", raising=False)
    ConfigManager._instance = None
    yield
    ConfigManager._instance = None


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo any dictConfig performed by a test."""
    root = logging.getLogger()
    root_handlers, root_level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in root_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(root_level)
    for name in list(logging.Logger.manager.loggerDict):
        if name == "outline_sidebar" or name.startswith("outline_sidebar."):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(logging.NOTSET)
            logger.propagate = True
            logger.disabled = False


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def sample_text():
    return SAMPLE


@pytest.fixture
def workspace():
    return Workspace()


@pytest.fixture
def source(workspace):
    return workspace.create_buffer("notes.org", SAMPLE)


@pytest.fixture
def settings():
    return SidebarSettings()


@pytest.fixture
def make_ref(workspace):
    """Factory for EntryRefs pointing into a scratch buffer."""
    scratch = workspace.create_buffer("scratch.org", "* scratch\n")

    def _make(title="Entry", **meta):
        return EntryRef(scratch.make_marker(0), EntryMeta(title=title, **meta))

    return _make
