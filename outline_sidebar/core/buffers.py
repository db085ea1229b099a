from __future__ import annotations

"""In-memory host model: shared text storage, buffers, markers and workspace.

A :class:`Buffer` is a displayable surface. Several buffers may share one
:class:`TextStorage` (an *indirect* buffer mirrors its base buffer's text)
while keeping their own point, narrowing and :class:`Visibility` state.
Edits made through any buffer are visible in all buffers sharing the
storage; markers and per-buffer spans shift with those edits.

The model is single-threaded. Concurrent mutation of one storage from
several mirrors is not guarded; visibility spans of the other mirrors are
shifted but otherwise left as they were.
"""

import logging
import weakref
from bisect import bisect_left
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from outline_sidebar.core.display import DisplayLayout
from outline_sidebar.core.exceptions import StaleReferenceError

logger = logging.getLogger(__name__)

__all__ = ["TextStorage", "Marker", "Visibility", "Buffer", "Workspace"]

EditListener = Callable[[int, int, int], None]


def _shift(pos: int, start: int, end: int, new_len: int) -> int:
    """Return *pos* adjusted for replacing ``[start, end)`` with *new_len* chars.

    A position sitting exactly at an insertion point stays before the new text.
    """
    if pos <= start:
        return pos
    if pos >= end:
        return pos + new_len - (end - start)
    return start


class TextStorage:
    """Mutable text shared by a base buffer and its indirect buffers."""

    def __init__(self, text: str = "") -> None:
        self._text = text
        self._markers: "weakref.WeakSet[Marker]" = weakref.WeakSet()
        self._listeners: List[EditListener] = []

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def replace(self, start: int, end: int, new_text: str) -> None:
        """Replace ``[start, end)`` with *new_text*, shifting markers and spans."""
        if not 0 <= start <= end <= len(self._text):
            raise ValueError(f"Invalid range {start}..{end} for storage of length {len(self._text)}")
        self._text = self._text[:start] + new_text + self._text[end:]
        n = len(new_text)
        for marker in list(self._markers):
            marker.position = _shift(marker.position, start, end, n)
        for listener in list(self._listeners):
            listener(start, end, n)

    def add_listener(self, listener: EditListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EditListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _register_marker(self, marker: "Marker") -> None:
        self._markers.add(marker)


class Marker:
    """A position in a buffer that follows edits of the shared text.

    Once its buffer is killed the marker is permanently stale.
    """

    __slots__ = ("buffer", "position", "__weakref__")

    def __init__(self, buffer: "Buffer", position: int) -> None:
        self.buffer: Optional[Buffer] = buffer
        self.position = position

    @property
    def live(self) -> bool:
        return self.buffer is not None and self.buffer.live

    def resolve(self) -> Tuple["Buffer", int]:
        """Return ``(buffer, position)`` or raise :class:`StaleReferenceError`."""
        buf = self.buffer
        if buf is None or not buf.live:
            raise StaleReferenceError("Marker points into a killed buffer",
                                      buf.name if buf is not None else None)
        return buf, self.position

    def __repr__(self) -> str:
        name = self.buffer.name if self.buffer is not None else "<dead>"
        return f"<Marker at {self.position} in {name}>"


class Visibility:
    """Set of hidden character spans, kept sorted and merged.

    Spans never overlap or touch, so both their starts and their ends are
    sorted and updates only rewrite the slice they affect.
    """

    def __init__(self) -> None:
        self._hidden: List[Tuple[int, int]] = []

    def hide(self, start: int, end: int) -> None:
        if end <= start:
            return
        spans = self._hidden
        lo = bisect_left(spans, (start,))
        if lo and spans[lo - 1][1] >= start:
            lo -= 1
        hi = bisect_left(spans, (end + 1,))
        if lo < hi:
            start = min(start, spans[lo][0])
            end = max(end, spans[hi - 1][1])
        spans[lo:hi] = [(start, end)]

    def show(self, start: int, end: int) -> None:
        if end <= start:
            return
        spans = self._hidden
        lo = bisect_left(spans, (start,))
        if lo and spans[lo - 1][1] > start:
            lo -= 1
        hi = bisect_left(spans, (end,))
        out: List[Tuple[int, int]] = []
        for s, e in spans[lo:hi]:
            if s < start:
                out.append((s, start))
            if e > end:
                out.append((end, e))
        spans[lo:hi] = out

    def show_all(self) -> None:
        self._hidden = []

    def is_invisible(self, pos: int) -> bool:
        idx = bisect_left(self._hidden, (pos + 1,)) - 1
        return idx >= 0 and self._hidden[idx][1] > pos

    def spans(self) -> List[Tuple[int, int]]:
        return list(self._hidden)

    def shift(self, start: int, end: int, new_len: int) -> None:
        shifted = []
        for s, e in self._hidden:
            ns = _shift(s, start, end, new_len)
            ne = _shift(e, start, end, new_len)
            if ne <= ns:
                continue
            if shifted and ns <= shifted[-1][1]:
                shifted[-1] = (shifted[-1][0], ne)
            else:
                shifted.append((ns, ne))
        self._hidden = shifted


class Buffer:
    """A named surface over a :class:`TextStorage`.

    Attributes
    ----------
    name
        Unique name inside its workspace.
    base
        Base buffer for indirect buffers (mirrors), else ``None``.
    visibility
        Hidden spans local to this buffer.
    point
        Cursor position.
    header_line
        Title shown above the content (sidebars and trees).
    line_properties
        Out-of-band per-line properties (back-references of rendered views).
    local
        Free-form buffer-local values.
    """

    def __init__(self, name: str, storage: Optional[TextStorage] = None,
                 base: Optional["Buffer"] = None) -> None:
        self.name = name
        self.storage = storage if storage is not None else TextStorage()
        self.base = base
        self.visibility = Visibility()
        self.point = 0
        self.header_line = ""
        self.line_properties: List[Dict[str, Any]] = []
        self.local: Dict[str, Any] = {}
        self.live = True
        self._begin: Optional[int] = None
        self._end: Optional[int] = None
        self.storage.add_listener(self._on_edit)

    # ------------------------------------------------------------------
    # Text access
    # ------------------------------------------------------------------
    @property
    def text(self) -> str:
        return self.storage.text

    def __len__(self) -> int:
        return len(self.storage)

    @property
    def base_buffer(self) -> "Buffer":
        """Return the buffer owning the storage (self for non-indirect buffers)."""
        return self.base if self.base is not None else self

    @property
    def indirect(self) -> bool:
        return self.base is not None

    def insert(self, pos: int, text: str) -> None:
        self._check_live()
        self.storage.replace(pos, pos, text)

    def delete(self, start: int, end: int) -> None:
        self._check_live()
        self.storage.replace(start, end, "")

    def set_contents(self, text: str, line_properties: Optional[List[Dict[str, Any]]] = None) -> None:
        """Replace the whole text, dropping narrowing and visibility state."""
        self._check_live()
        self.widen()
        self.visibility.show_all()
        self.storage.replace(0, len(self.storage), text)
        self.line_properties = list(line_properties or [])
        self.point = 0

    def lines(self) -> List[str]:
        return self.text.split("\n")

    def make_marker(self, pos: int) -> Marker:
        self._check_live()
        marker = Marker(self, pos)
        self.storage._register_marker(marker)
        return marker

    # ------------------------------------------------------------------
    # Narrowing
    # ------------------------------------------------------------------
    @property
    def restriction(self) -> Tuple[int, int]:
        """Return the accessible ``(begin, end)`` range."""
        length = len(self.storage)
        begin = 0 if self._begin is None else min(self._begin, length)
        end = length if self._end is None else min(self._end, length)
        return begin, end

    @property
    def narrowed(self) -> bool:
        return self._begin is not None or self._end is not None

    def narrow(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self.storage):
            raise ValueError(f"Invalid narrowing {start}..{end}")
        self._begin, self._end = start, end
        self.point = min(max(self.point, start), end)

    def widen(self) -> None:
        self._begin = self._end = None

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------
    def visible_text(self) -> str:
        """Return the accessible text with hidden spans removed."""
        begin, end = self.restriction
        text = self.text
        parts = []
        pos = begin
        for s, e in self.visibility.spans():
            if e <= pos:
                continue
            if s >= end:
                break
            if s > pos:
                parts.append(text[pos:s])
            pos = max(pos, e)
        if pos < end:
            parts.append(text[pos:end])
        return "".join(parts)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_edit(self, start: int, end: int, new_len: int) -> None:
        self.visibility.shift(start, end, new_len)
        if self._begin is not None:
            self._begin = _shift(self._begin, start, end, new_len)
        if self._end is not None:
            self._end = _shift(self._end, start, end, new_len, advance=True)
        self.point = _shift(self.point, start, end, new_len)

    def _check_live(self) -> None:
        if not self.live:
            raise StaleReferenceError("Buffer has been killed", self.name)

    def __repr__(self) -> str:
        state = "" if self.live else " killed"
        return f"<Buffer {self.name!r}{state}>"


class Workspace:
    """Registry of live buffers plus the display layout they are shown in."""

    def __init__(self, layout: Optional[DisplayLayout] = None) -> None:
        self._buffers: Dict[str, Buffer] = {}
        self.layout = layout if layout is not None else DisplayLayout()
        self.messages: List[str] = []
        self._kill_hooks: List[Callable[[Buffer], None]] = []

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get_buffer(self, name: str) -> Optional[Buffer]:
        return self._buffers.get(name)

    def buffers(self) -> List[Buffer]:
        return list(self._buffers.values())

    def __iter__(self) -> Iterator[Buffer]:
        return iter(self.buffers())

    def indirect_buffers(self, base: Buffer) -> List[Buffer]:
        root = base.base_buffer
        return [b for b in self._buffers.values() if b.base is root]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_buffer(self, name: str, text: str = "") -> Buffer:
        if name in self._buffers:
            raise ValueError(f"Buffer {name!r} already exists")
        buf = Buffer(name, TextStorage(text))
        self._buffers[name] = buf
        logger.debug("Workspace: created buffer %s", name)
        return buf

    def get_or_create_buffer(self, name: str) -> Buffer:
        existing = self._buffers.get(name)
        if existing is not None:
            return existing
        return self.create_buffer(name)

    def clone_indirect(self, base: Buffer, name: str) -> Buffer:
        """Create an indirect buffer sharing *base*'s text.

        The clone starts with *base*'s narrowing and point but its own, fully
        visible, visibility state.
        """
        if name in self._buffers:
            raise ValueError(f"Buffer {name!r} already exists")
        if not base.live:
            raise StaleReferenceError("Cannot clone a killed buffer", base.name)
        root = base.base_buffer
        clone = Buffer(name, root.storage, base=root)
        if base.narrowed:
            clone.narrow(*base.restriction)
        clone.point = base.point
        self._buffers[name] = clone
        logger.debug("Workspace: cloned %s as indirect buffer %s", base.name, name)
        return clone

    def open_file(self, path: Path | str) -> Buffer:
        """Visit a file: create (or return) a buffer named after it."""
        path = Path(path)
        existing = self._buffers.get(path.name)
        if existing is not None and existing.local.get("file") == str(path):
            return existing
        buf = self.create_buffer(path.name, path.read_text(encoding="utf-8"))
        buf.local["file"] = str(path)
        return buf

    # ------------------------------------------------------------------
    # Destruction
    # ------------------------------------------------------------------
    def add_kill_hook(self, hook: Callable[[Buffer], None]) -> None:
        self._kill_hooks.append(hook)

    def kill_buffer(self, buf: Buffer) -> None:
        """Kill *buf*; killing a base buffer kills its indirect buffers first."""
        if not buf.live:
            return
        if buf.base is None:
            for child in self.indirect_buffers(buf):
                self.kill_buffer(child)
        for hook in list(self._kill_hooks):
            hook(buf)
        self.layout.forget_buffer(buf)
        buf.storage.remove_listener(buf._on_edit)
        buf.live = False
        if self._buffers.get(buf.name) is buf:
            del self._buffers[buf.name]
        logger.debug("Workspace: killed buffer %s", buf.name)

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------
    def message(self, text: str, level: int = logging.INFO) -> None:
        """Record a user-visible notice."""
        self.messages.append(text)
        logger.log(level, "Notice: %s", text)
