from __future__ import annotations

"""Renderer: assemble a view's entries into display text.

The renderer does not know how an entry looks; a formatter turns each
:class:`EntryRef` into a :class:`TaggedText`. The renderer only orders lines,
adds group headers and keeps every line's properties (the back-references
jump commands resolve) out of the visible text.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from outline_sidebar.core.grouping import GroupingEngine
from outline_sidebar.core.models import EntryRef, Group, TaggedText, ViewDescriptor

logger = logging.getLogger(__name__)

__all__ = ["DisplayText", "RenderService", "format_entry", "MARKER_PROPERTY", "HD_MARKER_PROPERTY"]

MARKER_PROPERTY = "org-marker"
HD_MARKER_PROPERTY = "org-hd-marker"

Formatter = Callable[[EntryRef], TaggedText]


def format_entry(ref: EntryRef) -> TaggedText:
    """Default formatter: ``TODO [#A] Title  :tag:  (scheduled D, due D)``."""
    meta = ref.meta
    parts = [meta.todo, f"[#{meta.priority}]" if meta.priority else None, meta.title]
    line = " ".join(p for p in parts if p)
    if meta.tags:
        line += "  :" + ":".join(meta.tags) + ":"
    dates = []
    if meta.scheduled is not None:
        dates.append(f"scheduled {meta.scheduled.isoformat()}")
    if meta.deadline is not None:
        dates.append(f"due {meta.deadline.isoformat()}")
    if dates:
        line += f"  ({', '.join(dates)})"
    return TaggedText(
        text=line,
        ref=ref,
        properties={
            MARKER_PROPERTY: ref.marker,
            HD_MARKER_PROPERTY: ref.marker,
            "todo-state": meta.todo,
            "priority": meta.priority,
            "category": meta.category,
        },
    )


@dataclass(frozen=True)
class DisplayText:
    """Rendered view: visible lines plus one property mapping per line."""

    lines: Tuple[str, ...]
    line_properties: Tuple[Dict[str, Any], ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def ref_at(self, line: int) -> Optional[EntryRef]:
        if 0 <= line < len(self.line_properties):
            return self.line_properties[line].get("entry")
        return None

    def entry_lines(self) -> List[int]:
        return [i for i, props in enumerate(self.line_properties) if MARKER_PROPERTY in props]


class RenderService:
    """Render :class:`ViewDescriptor` objects into :class:`DisplayText`.

    Parameters
    ----------
    formatter
        Per-entry formatter; defaults to :func:`format_entry`.
    grouping
        Grouping engine used for grouped views.

    Examples
    --------
    >>> service = RenderService()
    >>> text = service.render(ViewDescriptor("Tasks", items=refs))
    >>> text.text.splitlines()[0]
    'TODO First task'
    """

    def __init__(self, formatter: Optional[Formatter] = None,
                 grouping: Optional[GroupingEngine] = None) -> None:
        self.formatter: Formatter = formatter or format_entry
        self.grouping = grouping or GroupingEngine()

    # -----------------------------
    # Public API
    # -----------------------------

    def render(self, view: ViewDescriptor) -> DisplayText:
        """Render *view*; grouping mode is decided before any formatting."""
        mode = self.grouping.mode(view)
        logger.debug("Render: view=%s items=%d mode=%s", view.name, len(view.items), mode or "plain")
        lines: List[str] = []
        props: List[Dict[str, Any]] = []

        if mode is None:
            for ref in view.items:
                self._emit(self._format(ref), lines, props)
            return DisplayText(tuple(lines), tuple(props))

        if mode == "rules":
            formatted = [self._format(ref) for ref in view.items]
            groups = self.grouping.group_lines(formatted, view.super_groups or ())
        else:
            groups = [
                Group(g.name, [self._format(ref) for ref in g.items])
                for g in self.grouping.group_entries(view.items, view.group_fn)
            ]

        for i, group in enumerate(groups):
            if i:
                lines.append("")
                props.append({})
            lines.append(group.label)
            props.append({"group-header": group.label})
            for tagged in group.items:
                self._emit(tagged, lines, props)
        return DisplayText(tuple(lines), tuple(props))

    # -----------------------------
    # Internals
    # -----------------------------

    def _format(self, ref: EntryRef) -> TaggedText:
        tagged = self.formatter(ref)
        if tagged.ref is None:
            tagged = TaggedText(tagged.text, ref, tagged.properties)
        return tagged

    @staticmethod
    def _emit(tagged: TaggedText, lines: List[str], props: List[Dict[str, Any]]) -> None:
        line_props = dict(tagged.properties)
        if tagged.ref is not None:
            line_props.setdefault(MARKER_PROPERTY, tagged.ref.marker)
            line_props.setdefault(HD_MARKER_PROPERTY, tagged.ref.marker)
            line_props["entry"] = tagged.ref
        lines.append(tagged.text.replace("\n", " "))
        props.append(line_props)
