from __future__ import annotations

"""Tree-outline mirror of a source buffer.

The tree is an indirect buffer sharing the source's text but folding it on
its own: an outline skeleton without body text, shown in a side window.
From a tree position the user can toggle a heading's children or jump to a
*subtree view*, a narrower indirect buffer limited to one heading and
unfolded to the requested depth.

Depths
------
``none``      the entry only (heading and body)
``children``  the subtree with immediate child headings shown
``branches``  the subtree with every descendant heading shown, no bodies
``entries``   the subtree with every heading and body shown, drawers folded
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from outline_sidebar.core import outline
from outline_sidebar.core.buffers import Buffer, Workspace
from outline_sidebar.core.exceptions import ConflictError, SidebarError, StaleReferenceError
from outline_sidebar.core.models import SidebarSettings

logger = logging.getLogger(__name__)

__all__ = [
    "Depth",
    "MirrorState",
    "TreeMirror",
    "SubtreeView",
    "TreeMirrorService",
    "depth_from_count",
    "depth_from_prefix",
]


class Depth(str, Enum):
    NONE = "none"
    CHILDREN = "children"
    BRANCHES = "branches"
    ENTRIES = "entries"


class MirrorState(Enum):
    ABSENT = "absent"
    BUILDING = "building"
    READY = "ready"


def depth_from_count(count: int) -> Depth:
    """Map a repeated-trigger count (1, 2, 3, 4+) to a depth."""
    if count <= 1:
        return Depth.NONE
    if count == 2:
        return Depth.CHILDREN
    if count == 3:
        return Depth.BRANCHES
    return Depth.ENTRIES


def depth_from_prefix(value: Optional[int]) -> Depth:
    """Map a multiplied prefix value (none/1, 4, 16, 64) to a depth."""
    if not value or value < 4:
        return Depth.NONE
    if value < 16:
        return Depth.CHILDREN
    if value < 64:
        return Depth.BRANCHES
    return Depth.ENTRIES


@dataclass(eq=False)
class TreeMirror:
    """A tree buffer and the source it mirrors."""

    buffer: Buffer
    source: Buffer
    state: MirrorState = MirrorState.BUILDING

    @property
    def name(self) -> str:
        return self.buffer.name


@dataclass(eq=False)
class SubtreeView:
    """An indirect buffer narrowed to one heading."""

    buffer: Buffer
    heading: int
    depth: Depth

    @property
    def name(self) -> str:
        return self.buffer.name


class TreeMirrorService:
    """Build tree mirrors and navigate from them.

    Parameters
    ----------
    workspace
        Buffer registry and display layout.
    settings
        Provides ``tree_prefix`` and ``tree_side``; loaded from
        :class:`ConfigManager` when omitted.
    """

    def __init__(self, workspace: Workspace, settings: Optional[SidebarSettings] = None) -> None:
        if settings is None:
            from outline_sidebar.config import ConfigManager

            settings = SidebarSettings.from_config(ConfigManager().get_sidebar_config())
        self.workspace = workspace
        self.settings = settings
        self._mirrors: Dict[str, TreeMirror] = {}
        workspace.add_kill_hook(self._on_kill)

    # -------------------------------------------------------------------------
    # Mirror lifecycle
    # -------------------------------------------------------------------------

    def mirror_name(self, source: Buffer) -> str:
        return f"{self.settings.tree_prefix}{source.name}"

    def state(self, source: Buffer) -> MirrorState:
        mirror = self._mirrors.get(self.mirror_name(source))
        return mirror.state if mirror is not None else MirrorState.ABSENT

    def mirror_for(self, source: Buffer) -> Optional[TreeMirror]:
        return self._mirrors.get(self.mirror_name(source))

    def open(self, source: Buffer) -> TreeMirror:
        """Build (or rebuild) the tree mirror of *source* and display it.

        Raises
        ------
        ConflictError
            When the mirror's name is taken by a buffer that is not a mirror
            of *source*; that buffer is left untouched.
        """
        if not source.live:
            raise StaleReferenceError("Cannot mirror a killed buffer", source.name)
        name = self.mirror_name(source)
        existing = self.workspace.get_buffer(name)
        if existing is not None:
            if existing.indirect and existing.storage is source.storage:
                logger.debug("Tree: replacing existing mirror %s", name)
                self.workspace.kill_buffer(existing)
            else:
                logger.warning("Tree FAIL: %s exists and is not a mirror of %s", name, source.name)
                self.workspace.message(f"Buffer {name} exists and is not a tree of {source.name}",
                                       logging.WARNING)
                raise ConflictError(f"Buffer {name!r} is not a mirror of {source.name!r}", name)

        buf = self.workspace.clone_indirect(source, name)
        mirror = TreeMirror(buf, source, MirrorState.BUILDING)
        self._mirrors[name] = mirror
        self._build(buf)
        buf.header_line = f"Tree: {source.base_buffer.name}"
        buf.local["tree-mirror"] = True
        self.workspace.layout.display_side([buf], self.settings.tree_side)
        mirror.state = MirrorState.READY
        logger.info("Tree OK: opened %s", name)
        return mirror

    def _build(self, buf: Buffer) -> None:
        """Fold *buf* to a skeleton; expand the heading the range starts at."""
        outline.overview(buf)
        begin, _end = buf.restriction
        active = outline.back_to_heading(buf.text, begin)
        if active is not None and active >= begin:
            outline.show_children(buf, active)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def toggle_or_jump(self, mirror: TreeMirror, pos: int,
                       depth: Union[Depth, str, None] = None) -> Optional[SubtreeView]:
        """Toggle children when *pos* is on heading stars, else jump."""
        self._check(mirror)
        if outline.on_heading_stars(mirror.buffer.text, pos):
            self.toggle_children(mirror, pos)
            return None
        return self.jump(mirror, pos, depth)

    def toggle_children(self, mirror: TreeMirror, pos: int) -> bool:
        """Show or hide the child headings at *pos*; returns True if now expanded.

        Entry text is never shown by this toggle.
        """
        self._check(mirror)
        buf = mirror.buffer
        h = self._heading(buf, pos)
        children = outline.child_headings(buf.text, h)
        if not children:
            return False
        expanded = any(not buf.visibility.is_invisible(c) for c in children)
        if expanded:
            outline.hide_subtree(buf, h)
        else:
            outline.show_children(buf, h)
        logger.debug("Tree: %s children at %d", "collapsed" if expanded else "expanded", h)
        return not expanded

    def jump(self, mirror: TreeMirror, pos: int,
             depth: Union[Depth, str, None] = None) -> SubtreeView:
        """Open a subtree view for the heading at *pos* and display it.

        An indirect view of the same base document that is already shown
        gives up its window to the new view; otherwise a new main window is
        used.
        """
        self._check(mirror)
        view = self.subtree_view(mirror.buffer, pos, depth)
        layout = self.workspace.layout
        window = None
        for buf in self.workspace.indirect_buffers(view.buffer.base_buffer):
            if buf is view.buffer or buf.local.get("tree-mirror"):
                continue
            window = layout.window_for(buf)
            if window is not None:
                break
        if window is not None:
            layout.switch_to(window, view.buffer)
        else:
            layout.pop_to_buffer(view.buffer)
        logger.info("Tree OK: jump to %s depth=%s", view.name, view.depth.value)
        return view

    def jump_source(self, mirror: TreeMirror, pos: int) -> Tuple[Buffer, int]:
        """Display the source buffer at the heading under *pos*."""
        self._check(mirror)
        h = self._heading(mirror.buffer, pos)
        source = mirror.source
        if not source.live:
            raise StaleReferenceError("Source buffer no longer exists", source.name)
        begin, end = source.restriction
        if not begin <= h <= end:
            source.widen()
        source.point = h
        outline.reveal(source, h)
        self.workspace.layout.pop_to_buffer(source)
        return source, h

    def children_present(self, buffer: Buffer, pos: int) -> bool:
        return outline.children_present(buffer.text, pos)

    def subtree_view(self, buffer: Buffer, pos: int,
                     depth: Union[Depth, str, None] = None) -> SubtreeView:
        """Create the subtree view for the heading at *pos* without displaying it.

        Without an explicit depth, ``children`` is used when the heading has
        child headings, else ``none``. A previous view of the same name is
        replaced.
        """
        text = buffer.text
        h = self._heading(buffer, pos)
        if depth is None:
            depth = Depth.CHILDREN if outline.children_present(text, h) else Depth.NONE
        depth = Depth(depth)

        title = text[h:outline.line_end(text, h)].lstrip("*").strip()
        name = f"{buffer.base_buffer.name}: {title}"
        existing = self.workspace.get_buffer(name)
        if existing is not None:
            if not existing.indirect:
                raise ConflictError(f"Buffer {name!r} is not a subtree view", name)
            self.workspace.kill_buffer(existing)

        view = self.workspace.clone_indirect(buffer, name)
        view.widen()
        end = outline.entry_end(text, h) if depth is Depth.NONE else outline.subtree_end(text, h)
        view.narrow(h, end)
        view.point = h
        view.header_line = title
        if depth is Depth.NONE:
            outline.show_entry(view, h)
        elif depth is Depth.CHILDREN:
            outline.show_children(view, h)
        elif depth is Depth.BRANCHES:
            outline.show_branches(view, h)
        else:
            outline.show_subtree(view, h)
        return SubtreeView(view, h, depth)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _heading(buffer: Buffer, pos: int) -> int:
        h = outline.back_to_heading(buffer.text, pos)
        if h is None:
            raise SidebarError(f"No heading at position {pos}", buffer.name)
        return h

    @staticmethod
    def _check(mirror: TreeMirror) -> None:
        if not mirror.buffer.live or mirror.state is not MirrorState.READY:
            raise StaleReferenceError("Tree mirror is not available", mirror.buffer.name)

    def _on_kill(self, buf: Buffer) -> None:
        mirror = self._mirrors.get(buf.name)
        if mirror is not None and mirror.buffer is buf:
            mirror.state = MirrorState.ABSENT
            del self._mirrors[buf.name]
