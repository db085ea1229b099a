from __future__ import annotations

"""High-level sidebar services: rendering, session tracking, composition and
tree mirrors.
"""

from .render_service import DisplayText, RenderService, format_entry  # noqa: F401
from .session_registry import SessionRegistry  # noqa: F401
from .sidebar_service import SidebarService  # noqa: F401
from .tree_service import (  # noqa: F401
    Depth,
    MirrorState,
    SubtreeView,
    TreeMirror,
    TreeMirrorService,
    depth_from_count,
    depth_from_prefix,
)

__all__: list[str] = [
    "DisplayText",
    "RenderService",
    "format_entry",
    "SessionRegistry",
    "SidebarService",
    "Depth",
    "MirrorState",
    "SubtreeView",
    "TreeMirror",
    "TreeMirrorService",
    "depth_from_count",
    "depth_from_prefix",
]
