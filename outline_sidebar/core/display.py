from __future__ import annotations

"""Placement of buffers into display windows.

The layout has main windows (the editing area) and side windows attached to
the ``left`` or ``right`` edge, each in a numbered slot. It knows nothing
about sidebars; callers decide which buffers go where.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from outline_sidebar.core.buffers import Buffer

logger = logging.getLogger(__name__)

__all__ = ["Window", "DisplayLayout", "SIDES"]

SIDES = ("left", "right")


@dataclass(eq=False)
class Window:
    """A display slot showing one buffer.

    ``side`` is ``None`` for main windows.
    """

    buffer: "Buffer"
    side: Optional[str] = None
    slot: Optional[int] = None

    @property
    def is_side(self) -> bool:
        return self.side is not None


class DisplayLayout:
    """Ordered collection of main and side windows."""

    def __init__(self) -> None:
        self._windows: List[Window] = []
        self.selected: Optional[Window] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def windows(self) -> List[Window]:
        return list(self._windows)

    def main_windows(self) -> List[Window]:
        return [w for w in self._windows if not w.is_side]

    def side_windows(self, side: str) -> List[Window]:
        return sorted((w for w in self._windows if w.side == side), key=lambda w: w.slot or 0)

    def window_for(self, buffer: "Buffer") -> Optional[Window]:
        for w in self._windows:
            if w.buffer is buffer:
                return w
        return None

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    def display_side(self, buffers: Sequence["Buffer"], side: str) -> List[Window]:
        """Show *buffers* on *side* in slots ``0..n-1``, evicting that side first."""
        if side not in SIDES:
            raise ValueError(f"Unknown side {side!r}; expected one of {SIDES}")
        self.close_side(side)
        created = []
        for slot, buf in enumerate(buffers):
            win = Window(buf, side=side, slot=slot)
            self._windows.append(win)
            created.append(win)
        if created:
            self.selected = created[0]
        logger.debug("Display: %d buffer(s) on %s side", len(created), side)
        return created

    def close_side(self, side: str) -> int:
        before = len(self._windows)
        self._windows = [w for w in self._windows if w.side != side]
        if self.selected is not None and self.selected.side == side:
            self.selected = None
        return before - len(self._windows)

    def pop_to_buffer(self, buffer: "Buffer") -> Window:
        """Select a window showing *buffer*, opening a main window if needed."""
        win = self.window_for(buffer)
        if win is None:
            win = Window(buffer)
            self._windows.append(win)
        self.selected = win
        return win

    def switch_to(self, window: Window, buffer: "Buffer") -> Window:
        """Show *buffer* in an existing *window* and select it."""
        window.buffer = buffer
        self.selected = window
        return window

    def forget_buffer(self, buffer: "Buffer") -> None:
        """Delete every window showing a buffer that is being killed."""
        self._windows = [w for w in self._windows if w.buffer is not buffer]
        if self.selected is not None and self.selected.buffer is buffer:
            self.selected = None
