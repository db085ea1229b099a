from __future__ import annotations

"""Query evaluation over outline buffers.

The evaluator parses each buffer into an lxml *outline index*: an
``<outline>`` root holding nested ``<entry>`` elements, one per heading, whose
attributes mirror the heading metadata::

    <outline buffer="notes.org">
      <entry idx="0" level="1" title="Project" todo="TODO" done="0"
             priority="A" tags=" work urgent " category="notes"
             scheduled="2024-05-02" scheduled-day="738643">
        <entry idx="1" level="2" title="Subtask" .../>
      </entry>
    </outline>

Predicates are XPath 1.0 expressions selecting ``entry`` elements (dates can
be compared numerically through the ``*-day`` ordinal attributes) or plain
callables taking an :class:`EntryRef`. :class:`ItemSource` is the thin
adapter the sidebar uses on top of the evaluator.
"""

import logging
import re
from pathlib import PurePath
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from lxml import etree as ET

from outline_sidebar.core.buffers import Buffer
from outline_sidebar.core.exceptions import QueryError, StaleReferenceError
from outline_sidebar.core.models import EntryMeta, EntryRef
from outline_sidebar.core.outline import HeadingInfo, parse_outline

logger = logging.getLogger(__name__)

__all__ = [
    "ACTIONS",
    "SORT_KEYS",
    "OutlineQueryEvaluator",
    "ItemSource",
    "build_index",
    "sort_entries",
]

ACTIONS = ("element-with-markers", "element")
SORT_KEYS = ("date", "deadline", "scheduled", "priority", "todo", "title")

Predicate = Union[None, str, Callable[[EntryRef], bool]]
Documents = Union[Buffer, Iterable[Buffer]]

_XML_UNSAFE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _xml_safe(value: str) -> str:
    return _XML_UNSAFE_RE.sub("", value)


def build_index(buffer_name: str, headings: Sequence[HeadingInfo]) -> ET._Element:
    """Return the lxml outline index for parsed *headings*."""
    root = ET.Element("outline")
    root.set("buffer", _xml_safe(buffer_name))
    elements: List[ET._Element] = []
    for idx, info in enumerate(headings):
        parent = root if info.parent is None else elements[info.parent]
        el = ET.SubElement(parent, "entry")
        el.set("idx", str(idx))
        el.set("level", str(info.level))
        el.set("title", _xml_safe(info.title))
        el.set("done", "1" if info.done else "0")
        if info.todo:
            el.set("todo", info.todo)
        if info.priority:
            el.set("priority", info.priority)
        el.set("tags", " " + " ".join(info.tags) + " " if info.tags else "")
        if info.category:
            el.set("category", _xml_safe(info.category))
        for attr, day in (("scheduled", info.scheduled), ("deadline", info.deadline)):
            if day is not None:
                el.set(attr, day.isoformat())
                el.set(f"{attr}-day", str(day.toordinal()))
        elements.append(el)
    return root


def _sort_value(key: str, meta: EntryMeta, keyword_rank: Dict[str, int]) -> Any:
    if key == "date":
        return meta.planning_date
    if key == "deadline":
        return meta.deadline
    if key == "scheduled":
        return meta.scheduled
    if key == "priority":
        return meta.priority
    if key == "todo":
        return keyword_rank.get(meta.todo) if meta.todo else None
    if key == "title":
        return meta.title.lower()
    raise QueryError(f"Unknown sort key {key!r}; expected one of {SORT_KEYS}")


def sort_entries(items: Sequence[Any], keys: Sequence[str],
                 keywords: Sequence[str] = ()) -> List[Any]:
    """Stable multi-key sort of EntryRefs (or EntryMetas).

    A ``-`` prefix reverses a key. Entries lacking a key's value sort after
    those having it, whatever the direction.
    """
    keyword_rank = {kw: i for i, kw in enumerate(keywords)}
    parsed: List[Tuple[str, bool]] = []
    for raw in keys:
        if not isinstance(raw, str) or not raw:
            raise QueryError(f"Invalid sort key {raw!r}")
        reverse = raw.startswith("-")
        key = raw[1:] if reverse else raw
        if key not in SORT_KEYS:
            raise QueryError(f"Unknown sort key {key!r}; expected one of {SORT_KEYS}")
        parsed.append((key, reverse))

    result = list(items)
    for key, reverse in reversed(parsed):
        def value(item: Any, _key: str = key) -> Any:
            meta = item.meta if isinstance(item, EntryRef) else item
            return _sort_value(_key, meta, keyword_rank)

        present = [it for it in result if value(it) is not None]
        missing = [it for it in result if value(it) is None]
        present.sort(key=value, reverse=reverse)
        result = present + missing
    return result


class OutlineQueryEvaluator:
    """Evaluate predicates against outline buffers.

    Parameters
    ----------
    todo_keywords, done_keywords
        Keyword sets recognised in headlines.
    """

    def __init__(self, todo_keywords: Sequence[str] = ("TODO",),
                 done_keywords: Sequence[str] = ("DONE",)) -> None:
        self.todo_keywords = tuple(todo_keywords)
        self.done_keywords = tuple(done_keywords)

    def evaluate(self, documents: Documents, predicate: Predicate, *,
                 action: str = "element-with-markers", narrow: bool = False,
                 sort: Sequence[str] = ()) -> List[Any]:
        """Return matching entries across *documents*, in document order unless sorted.

        ``action="element-with-markers"`` yields :class:`EntryRef` objects with
        live markers; ``action="element"`` yields bare :class:`EntryMeta`
        snapshots. With ``narrow`` only entries starting inside each buffer's
        narrowing are considered.

        Raises
        ------
        QueryError
            For malformed predicates, unknown actions or unknown sort keys.
        StaleReferenceError
            When one of the documents has been killed.
        """
        if action not in ACTIONS:
            raise QueryError(f"Unknown query action {action!r}; expected one of {ACTIONS}")
        xpath = self._compile(predicate)
        buffers = [documents] if isinstance(documents, Buffer) else list(documents)

        refs: List[EntryRef] = []
        for buf in buffers:
            refs.extend(self._evaluate_buffer(buf, predicate, xpath, narrow))
        if sort:
            refs = sort_entries(refs, sort, self.todo_keywords + self.done_keywords)
        logger.debug("Query: %d match(es) in %d buffer(s)", len(refs), len(buffers))
        if action == "element":
            return [ref.meta for ref in refs]
        return refs

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _compile(predicate: Predicate) -> Optional[ET.XPath]:
        if predicate is None or callable(predicate):
            return None
        if not isinstance(predicate, str) or not predicate.strip():
            raise QueryError(f"Unsupported predicate {predicate!r}", predicate)
        try:
            return ET.XPath(predicate)
        except ET.XPathSyntaxError as exc:
            raise QueryError(f"Malformed XPath predicate {predicate!r}: {exc}", predicate, cause=exc) from exc

    def _evaluate_buffer(self, buf: Buffer, predicate: Predicate,
                         xpath: Optional[ET.XPath], narrow: bool) -> List[EntryRef]:
        if not buf.live:
            raise StaleReferenceError("Cannot query a killed buffer", buf.name)
        text = buf.text
        headings = parse_outline(text, self.todo_keywords, self.done_keywords,
                                 default_category=PurePath(buf.name).stem)
        if narrow:
            begin, end = buf.restriction
            allowed = [begin <= h.start < end for h in headings]
        else:
            allowed = [True] * len(headings)

        if xpath is not None:
            root = build_index(buf.name, headings)
            try:
                selected = xpath(root)
            except ET.XPathError as exc:
                raise QueryError(f"Cannot evaluate predicate: {exc}", predicate, buf.name, exc) from exc
            if not isinstance(selected, list) or any(
                not isinstance(el, ET._Element) or el.tag != "entry" for el in selected
            ):
                raise QueryError("Predicate must select entry elements", predicate, buf.name)
            indices = sorted({int(el.get("idx")) for el in selected})
            return [self._ref(buf, headings, i) for i in indices if allowed[i]]

        refs = [self._ref(buf, headings, i) for i, ok in enumerate(allowed) if ok]
        if predicate is None:
            return refs
        return [ref for ref in refs if predicate(ref)]

    @staticmethod
    def _ref(buf: Buffer, headings: Sequence[HeadingInfo], idx: int) -> EntryRef:
        info = headings[idx]
        meta = EntryMeta(
            title=info.title,
            level=info.level,
            todo=info.todo,
            done=info.done,
            priority=info.priority,
            scheduled=info.scheduled,
            deadline=info.deadline,
            category=info.category,
            tags=info.tags,
            parent=headings[info.parent].title if info.parent is not None else None,
        )
        return EntryRef(buf.make_marker(info.start), meta)


class ItemSource:
    """Item Source Adapter: forwards queries to an evaluator, returns EntryRefs."""

    def __init__(self, evaluator: Optional[OutlineQueryEvaluator] = None) -> None:
        self.evaluator = evaluator or OutlineQueryEvaluator()

    def query(self, documents: Documents, predicate: Predicate, *,
              restrict_to_visible_range: bool = False,
              sort_keys: Sequence[str] = ()) -> List[EntryRef]:
        return self.evaluator.evaluate(
            documents,
            predicate,
            action="element-with-markers",
            narrow=restrict_to_visible_range,
            sort=sort_keys,
        )
