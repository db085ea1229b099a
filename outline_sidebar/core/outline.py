from __future__ import annotations

"""Outline structure helpers for Org-style text.

Two groups of UI-agnostic functions live here:

* navigation and parsing on plain text (heading positions, entry and subtree
  boundaries, planning lines, property drawers);
* folding operations that hide or show spans in a buffer's own
  :class:`~outline_sidebar.core.buffers.Visibility`.

A heading is a line starting with one or more ``*`` followed by whitespace.
A folded region always starts at the end of a heading line and stops before
the newline that precedes the next visible heading, so visible text keeps one
heading per line.
"""

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from outline_sidebar.core.buffers import Buffer

__all__ = [
    "HeadingInfo",
    "iter_headings",
    "back_to_heading",
    "heading_level",
    "line_end",
    "entry_end",
    "subtree_end",
    "child_headings",
    "descendant_headings",
    "children_present",
    "on_heading_stars",
    "drawer_spans",
    "parse_outline",
    "file_category",
    "hide_subtree",
    "show_entry",
    "show_children",
    "show_branches",
    "show_subtree",
    "overview",
    "reveal",
]

HEADING_RE = re.compile(r"^(\*+)[ \t]+", re.M)
_TAGS_RE = re.compile(r"[ \t]+(:(?:[\w@#%]+:)+)[ \t]*$")
_PRIORITY_RE = re.compile(r"^\[#([A-Z0-9])\][ \t]*")
_PLANNING_RE = re.compile(r"\b(SCHEDULED|DEADLINE):[ \t]*<(\d{4}-\d{2}-\d{2})[^>]*>")
_PLANNING_LINE_RE = re.compile(r"^[ \t]*(?:SCHEDULED|DEADLINE|CLOSED):")
_DRAWER_START_RE = re.compile(r"^[ \t]*:([\w-]+):[ \t]*$", re.M)
_DRAWER_END_RE = re.compile(r"^[ \t]*:END:[ \t]*$", re.M)
_PROPERTY_RE = re.compile(r"^[ \t]*:([\w-]+):[ \t]*(.*?)[ \t]*$")
_FILE_CATEGORY_RE = re.compile(r"^#\+CATEGORY:[ \t]*(\S.*?)[ \t]*$", re.M | re.I)


@dataclass
class HeadingInfo:
    """Metadata parsed from one heading and its planning/property lines."""

    start: int
    level: int
    title: str
    todo: Optional[str] = None
    done: bool = False
    priority: Optional[str] = None
    tags: Tuple[str, ...] = ()
    scheduled: Optional[dt.date] = None
    deadline: Optional[dt.date] = None
    properties: Dict[str, str] = field(default_factory=dict)
    parent: Optional[int] = None  # index into the parse result
    category: Optional[str] = None


# ----------------------------------------------------------------------
# Navigation
# ----------------------------------------------------------------------

def line_start(text: str, pos: int) -> int:
    return text.rfind("\n", 0, pos) + 1


def line_end(text: str, pos: int) -> int:
    """Return the index of the newline ending *pos*'s line (or ``len(text)``)."""
    idx = text.find("\n", pos)
    return len(text) if idx < 0 else idx


def _fold_end(text: str, end: int) -> int:
    if end > 0 and text[end - 1] == "\n":
        return end - 1
    return end


def iter_headings(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[int, int]]:
    """Yield ``(position, level)`` for every heading starting in ``[start, end)``."""
    stop = len(text) if end is None else end
    for m in HEADING_RE.finditer(text, start):
        if m.start() >= stop:
            break
        yield m.start(), len(m.group(1))


def heading_level(text: str, pos: int) -> int:
    m = HEADING_RE.match(text, line_start(text, pos))
    return len(m.group(1)) if m else 0


def back_to_heading(text: str, pos: int) -> Optional[int]:
    """Return the start of the heading whose entry contains *pos*, if any.

    Walks backwards line by line, so the cost is bounded by the entry size.
    """
    start = line_start(text, min(pos, len(text)))
    while True:
        if HEADING_RE.match(text, start):
            return start
        if start == 0:
            return None
        start = line_start(text, start - 1)


def entry_end(text: str, pos: int) -> int:
    """Return where the entry at *pos* ends: at the next heading of any level."""
    for hpos, _level in iter_headings(text, line_end(text, pos)):
        return hpos
    return len(text)


def subtree_end(text: str, pos: int) -> int:
    """Return where the subtree of the heading at *pos* ends."""
    level = heading_level(text, pos)
    for hpos, lvl in iter_headings(text, line_end(text, pos)):
        if lvl <= level:
            return hpos
    return len(text)


def descendant_headings(text: str, pos: int) -> List[Tuple[int, int]]:
    return list(iter_headings(text, line_end(text, pos), subtree_end(text, pos)))


def child_headings(text: str, pos: int) -> List[int]:
    """Return direct children of the heading at *pos*.

    Skipped levels are tolerated: a ``***`` heading directly under ``*`` is a
    child, as is a following ``**`` sibling of it.
    """
    children = []
    last_level = None
    for hpos, lvl in descendant_headings(text, pos):
        if last_level is None or lvl <= last_level:
            children.append(hpos)
            last_level = lvl
    return children


def children_present(text: str, pos: int) -> bool:
    """True if another heading occurs before the end of *pos*'s subtree."""
    h = back_to_heading(text, pos)
    if h is None:
        return False
    return any(True for _ in iter_headings(text, line_end(text, h), subtree_end(text, h)))


def on_heading_stars(text: str, pos: int) -> bool:
    """True if *pos* lies on the leading stars of a heading line."""
    start = line_start(text, pos)
    m = HEADING_RE.match(text, start)
    return bool(m) and pos < start + len(m.group(1))


def ancestors(text: str, pos: int) -> List[int]:
    """Return heading starts of the ancestors of *pos*'s heading, outermost first."""
    h = back_to_heading(text, pos)
    if h is None:
        return []
    level = heading_level(text, h)
    found: List[int] = []
    for hpos, lvl in reversed(list(iter_headings(text, 0, h))):
        if lvl < level:
            found.append(hpos)
            level = lvl
    return list(reversed(found))


def drawer_spans(text: str, start: int, end: int) -> List[Tuple[int, int]]:
    """Return ``(drawer line start, END line end)`` for drawers in ``[start, end)``."""
    spans = []
    pos = start
    while True:
        m = _DRAWER_START_RE.search(text, pos, end)
        if m is None or m.group(1).upper() == "END":
            if m is None:
                break
            pos = m.end()
            continue
        close = _DRAWER_END_RE.search(text, m.end(), end)
        if close is None:
            break
        spans.append((m.start(), close.end()))
        pos = close.end()
    return spans


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

def file_category(text: str) -> Optional[str]:
    m = _FILE_CATEGORY_RE.search(text)
    return m.group(1) if m else None


def _parse_headline(rest: str, todo_keywords: Sequence[str], done_keywords: Sequence[str]):
    todo = None
    done = False
    words = rest.split(None, 1)
    if words and (words[0] in todo_keywords or words[0] in done_keywords):
        todo = words[0]
        done = todo in done_keywords
        rest = words[1] if len(words) > 1 else ""
    priority = None
    m = _PRIORITY_RE.match(rest)
    if m:
        priority = m.group(1)
        rest = rest[m.end():]
    tags: Tuple[str, ...] = ()
    m = _TAGS_RE.search(rest)
    if m:
        tags = tuple(t for t in m.group(1).split(":") if t)
        rest = rest[:m.start()]
    elif rest.startswith(":") and rest.rstrip().endswith(":") and " " not in rest.strip():
        tags = tuple(t for t in rest.strip().split(":") if t)
        rest = ""
    return todo, done, priority, rest.strip(), tags


def _parse_meta(text: str, heading_pos: int) -> Tuple[Optional[dt.date], Optional[dt.date], Dict[str, str]]:
    scheduled = deadline = None
    properties: Dict[str, str] = {}
    end = entry_end(text, heading_pos)
    pos = line_end(text, heading_pos) + 1
    if pos >= end:
        return scheduled, deadline, properties
    planning = text[pos:line_end(text, pos)]
    if _PLANNING_LINE_RE.match(planning):
        for kind, value in _PLANNING_RE.findall(planning):
            try:
                day = dt.date.fromisoformat(value)
            except ValueError:
                continue
            if kind == "SCHEDULED":
                scheduled = day
            else:
                deadline = day
        pos = line_end(text, pos) + 1
    if pos < end:
        first = text[pos:line_end(text, pos)].strip().upper()
        if first == ":PROPERTIES:":
            for s, e in drawer_spans(text, pos, end)[:1]:
                for line in text[s:e].split("\n")[1:-1]:
                    m = _PROPERTY_RE.match(line)
                    if m:
                        properties[m.group(1).upper()] = m.group(2)
    return scheduled, deadline, properties


def parse_outline(text: str, todo_keywords: Sequence[str] = ("TODO",),
                  done_keywords: Sequence[str] = ("DONE",),
                  default_category: Optional[str] = None) -> List[HeadingInfo]:
    """Parse every heading of *text* in document order.

    Category is the nearest ``CATEGORY`` property on the heading or an
    ancestor, else the ``#+CATEGORY:`` keyword, else *default_category*.
    """
    fallback = file_category(text) or default_category
    result: List[HeadingInfo] = []
    stack: List[int] = []
    for hpos, level in iter_headings(text):
        rest = text[hpos + level:line_end(text, hpos)].strip()
        todo, done, priority, title, tags = _parse_headline(rest, todo_keywords, done_keywords)
        scheduled, deadline, properties = _parse_meta(text, hpos)
        while stack and result[stack[-1]].level >= level:
            stack.pop()
        parent = stack[-1] if stack else None
        info = HeadingInfo(
            start=hpos,
            level=level,
            title=title,
            todo=todo,
            done=done,
            priority=priority,
            tags=tags,
            scheduled=scheduled,
            deadline=deadline,
            properties=properties,
            parent=parent,
        )
        if "CATEGORY" in properties:
            info.category = properties["CATEGORY"]
        elif parent is not None:
            info.category = result[parent].category
        else:
            info.category = fallback
        stack.append(len(result))
        result.append(info)
    return result


# ----------------------------------------------------------------------
# Folding
# ----------------------------------------------------------------------

def _heading(buf: "Buffer", pos: int) -> int:
    h = back_to_heading(buf.text, pos)
    if h is None:
        raise ValueError(f"Position {pos} in {buf.name!r} is before the first heading")
    return h


def _show_heading_line(buf: "Buffer", hpos: int) -> None:
    buf.visibility.show(max(hpos - 1, 0), line_end(buf.text, hpos))


def _hide_drawers(buf: "Buffer", start: int, end: int) -> None:
    text = buf.text
    for s, e in drawer_spans(text, start, end):
        buf.visibility.hide(line_end(text, s), e)


def _fold_subtree(buf: "Buffer", h: int) -> None:
    text = buf.text
    buf.visibility.hide(line_end(text, h), _fold_end(text, subtree_end(text, h)))


def hide_subtree(buf: "Buffer", pos: int) -> None:
    """Fold everything below the heading line at *pos*."""
    _fold_subtree(buf, _heading(buf, pos))


def show_entry(buf: "Buffer", pos: int) -> None:
    """Show the heading and its body; drawers stay folded."""
    text = buf.text
    h = _heading(buf, pos)
    end = _fold_end(text, entry_end(text, h))
    buf.visibility.show(max(h - 1, 0), end)
    _hide_drawers(buf, h, end)


def show_children(buf: "Buffer", pos: int) -> None:
    """Show direct child headings only, no entry text."""
    h = _heading(buf, pos)
    _fold_subtree(buf, h)
    _show_heading_line(buf, h)
    for child in child_headings(buf.text, h):
        _show_heading_line(buf, child)


def show_branches(buf: "Buffer", pos: int) -> None:
    """Show every descendant heading, no entry text."""
    h = _heading(buf, pos)
    _fold_subtree(buf, h)
    _show_heading_line(buf, h)
    for child, _level in descendant_headings(buf.text, h):
        _show_heading_line(buf, child)


def show_subtree(buf: "Buffer", pos: int) -> None:
    """Show all descendant headings and their bodies; drawers stay folded."""
    text = buf.text
    h = _heading(buf, pos)
    end = _fold_end(text, subtree_end(text, h))
    buf.visibility.show(max(h - 1, 0), end)
    _hide_drawers(buf, h, end)


def overview(buf: "Buffer") -> None:
    """Leave only the shallowest headings of the accessible range visible."""
    begin, end = buf.restriction
    headings = list(iter_headings(buf.text, begin, end))
    if not headings:
        return
    top = min(level for _pos, level in headings)
    for hpos, level in headings:
        if level == top:
            _show_heading_line(buf, hpos)
            _fold_subtree(buf, hpos)


def reveal(buf: "Buffer", pos: int) -> None:
    """Make the entry at *pos* visible together with its ancestors' headings."""
    h = back_to_heading(buf.text, pos)
    if h is None:
        return
    for anc in ancestors(buf.text, h):
        _show_heading_line(buf, anc)
    show_entry(buf, h)
