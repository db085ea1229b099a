from __future__ import annotations

"""Top-level package for the outline sidebar.

Front-ends (the CLI, editor integrations, tests) should depend on the public
API exposed here rather than importing internal modules directly.
"""

from .core.buffers import Buffer, Workspace
from .core.exceptions import (
    ConfigurationError,
    ConflictError,
    NoEntryAtLineError,
    QueryError,
    SidebarError,
    SourceGoneError,
    StaleReferenceError,
)
from .core.models import EntryRef, SidebarSettings, ViewDescriptor
from .core.services import SidebarService, TreeMirrorService

__version__ = "0.1.0"

__all__: list[str] = [
    "Buffer",
    "Workspace",
    "EntryRef",
    "SidebarSettings",
    "ViewDescriptor",
    "SidebarService",
    "TreeMirrorService",
    "SidebarError",
    "QueryError",
    "StaleReferenceError",
    "SourceGoneError",
    "ConflictError",
    "ConfigurationError",
    "NoEntryAtLineError",
]
