from __future__ import annotations

"""Grouping engine: key grouping and rule-list ("super-group") grouping.

Key grouping buckets entries by the value of one classifier function, in
first-encounter order; entries whose key is ``None`` share one ``None``
bucket. Rule-list grouping routes formatted lines through an ordered list of
declarative rules; the first matching rule wins and leftovers land in a
trailing catch-all group.

A rule is a mapping. Selector keys (a rule matches when ANY selector does):

``todo``            ``true`` (any not-done keyword), a keyword or a list
``done``            ``true``
``priority``        a priority letter or a list
``tag``             a tag or a list (any tag matches)
``category``        a category or a list
``scheduled``       ``today`` / ``past`` / ``future`` / ``true``
``deadline``        same as ``scheduled``
``heading_regexp``  regular expression searched in the title
``pred``            callable taking the :class:`EntryRef`

Auto keys (``auto_category``, ``auto_todo``, ``auto_priority``,
``auto_parent``, ``auto_planning``, ``auto_tags``) create one group per
distinct value, in sorted order. ``name`` sets the header of a selector rule.
"""

import datetime as dt
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from outline_sidebar.core.exceptions import ConfigurationError
from outline_sidebar.core.models import EntryMeta, EntryRef, Group, TaggedText, ViewDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    "CATCH_ALL_NAME",
    "GroupingEngine",
    "SuperGroupClassifier",
    "group_by_key",
    "grouping_mode",
]

CATCH_ALL_NAME = "Other items"

SELECTOR_KEYS = ("todo", "done", "priority", "tag", "category", "scheduled",
                 "deadline", "heading_regexp", "pred")
_DATE_WORDS = ("today", "past", "future")

Today = Union[dt.date, Callable[[], dt.date], None]


def grouping_mode(view: ViewDescriptor) -> Optional[str]:
    """Return ``"rules"``, ``"key"`` or ``None`` for *view*.

    Views declaring both modes are rejected rather than resolved by
    precedence.
    """
    has_fn = getattr(view, "group_fn", None) is not None
    has_rules = getattr(view, "super_groups", None) is not None
    if has_fn and has_rules:
        raise ConfigurationError(
            f"View {getattr(view, 'name', '?')!r} sets both a group function and super-groups",
            ["group_fn", "super_groups"],
        )
    if has_rules:
        return "rules"
    if has_fn:
        return "key"
    return None


def group_by_key(items: Sequence[Any], key_fn: Callable[[Any], Any]) -> List[Group]:
    """Bucket *items* by ``key_fn(item)`` in first-occurrence order."""
    groups: List[Group] = []
    index: Dict[Any, Group] = {}
    for item in items:
        key = key_fn(item)
        try:
            group = index.get(key)
        except TypeError:  # unhashable key
            group = next((g for g in groups if g.name == key), None)
        if group is None:
            group = Group(key)
            groups.append(group)
            try:
                index[key] = group
            except TypeError:
                pass
        group.items.append(item)
    return groups


def _as_list(value: Any) -> Tuple[Any, ...]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    return (value,)


def _ref_of(item: Any) -> Optional[EntryRef]:
    if isinstance(item, EntryRef):
        return item
    if isinstance(item, TaggedText):
        return item.ref
    return None


class _Rule:
    """One validated rule of a super-group list."""

    def __init__(self, rule: Mapping[str, Any], auto_keys: Mapping[str, Callable[[EntryMeta], Any]]) -> None:
        if not isinstance(rule, Mapping):
            raise ConfigurationError(f"Super-group rule must be a mapping, got {type(rule).__name__}")
        unknown = [k for k in rule if k not in SELECTOR_KEYS and k not in auto_keys and k != "name"]
        if unknown:
            raise ConfigurationError(f"Unknown super-group rule key(s): {', '.join(map(str, unknown))}", unknown)
        autos = [k for k in rule if k in auto_keys and rule[k]]
        selectors = {k: v for k, v in rule.items() if k in SELECTOR_KEYS}
        if len(autos) > 1 or (autos and selectors):
            raise ConfigurationError("An auto rule cannot be combined with other selectors", autos)
        if not autos and not selectors:
            raise ConfigurationError("Super-group rule has no selector")
        for key in ("scheduled", "deadline"):
            value = selectors.get(key)
            if value is not None and value is not True and value not in _DATE_WORDS:
                raise ConfigurationError(f"{key} selector must be true or one of {_DATE_WORDS}, got {value!r}")
        if "pred" in selectors and not callable(selectors["pred"]):
            raise ConfigurationError("pred selector must be callable")
        if "heading_regexp" in selectors:
            try:
                selectors["heading_regexp"] = re.compile(selectors["heading_regexp"])
            except (re.error, TypeError) as exc:
                raise ConfigurationError(f"Invalid heading_regexp: {exc}", cause=exc) from exc
        self.auto = autos[0] if autos else None
        self.selectors = selectors
        self.name = str(rule["name"]) if rule.get("name") else self._describe()

    def _describe(self) -> str:
        parts = []
        for key, value in self.selectors.items():
            if key == "pred":
                parts.append("Predicate")
            elif key == "heading_regexp":
                parts.append(f"Heading matches {value.pattern}")
            elif value is True:
                parts.append(key.capitalize())
            else:
                parts.append(f"{key.capitalize()}: {', '.join(map(str, _as_list(value)))}")
        return " or ".join(parts)

    def matches(self, ref: EntryRef, today: dt.date) -> bool:
        meta = ref.meta
        for key, value in self.selectors.items():
            if key == "todo":
                if value is True:
                    hit = meta.todo is not None and not meta.done
                else:
                    hit = meta.todo in _as_list(value)
            elif key == "done":
                hit = bool(value) and meta.done
            elif key == "priority":
                hit = meta.priority is not None and meta.priority in _as_list(value)
            elif key == "tag":
                hit = any(tag in meta.tags for tag in _as_list(value))
            elif key == "category":
                hit = meta.category is not None and meta.category in _as_list(value)
            elif key in ("scheduled", "deadline"):
                hit = self._date_matches(getattr(meta, key), value, today)
            elif key == "heading_regexp":
                hit = value.search(meta.title) is not None
            else:
                hit = bool(value(ref))
            if hit:
                return True
        return False

    @staticmethod
    def _date_matches(day: Optional[dt.date], value: Any, today: dt.date) -> bool:
        if day is None:
            return False
        if value is True:
            return True
        if value == "today":
            return day == today
        if value == "past":
            return day < today
        return day > today


class SuperGroupClassifier:
    """Rule-list interpreter over formatted lines (or bare EntryRefs)."""

    def __init__(self, rules: Sequence[Mapping[str, Any]], *, today: Today = None,
                 date_format: str = "%A, %B %d, %Y") -> None:
        self.date_format = date_format
        self._today = today
        auto_keys: Dict[str, Callable[[EntryMeta], Any]] = {
            "auto_category": lambda m: m.category,
            "auto_todo": lambda m: m.todo,
            "auto_priority": lambda m: m.priority,
            "auto_parent": lambda m: m.parent,
            "auto_planning": lambda m: m.planning_date,
            "auto_tags": lambda m: tuple(sorted(m.tags)) or None,
        }
        self._auto_keys = auto_keys
        if isinstance(rules, Mapping) or isinstance(rules, str):
            raise ConfigurationError("Super-groups must be a list of rules")
        self.rules = [_Rule(rule, auto_keys) for rule in rules]

    @property
    def today(self) -> dt.date:
        if self._today is None:
            return dt.date.today()
        if callable(self._today):
            return self._today()
        return self._today

    def _auto_label(self, auto: str, key: Any) -> str:
        if auto == "auto_planning":
            return key.strftime(self.date_format)
        if auto == "auto_priority":
            return f"Priority {key}"
        if auto == "auto_tags":
            return "Tags: " + ", ".join(key)
        return str(key)

    def classify(self, items: Sequence[Any]) -> List[Group]:
        """Return groups in rule-declaration order, catch-all last."""
        today = self.today
        remaining = list(items)
        groups: List[Group] = []
        for rule in self.rules:
            if not remaining:
                break
            rest = []
            if rule.auto is not None:
                key_fn = self._auto_keys[rule.auto]
                buckets: Dict[Any, List[Any]] = {}
                for item in remaining:
                    ref = _ref_of(item)
                    key = key_fn(ref.meta) if ref is not None else None
                    if key is None or key == "":
                        rest.append(item)
                    else:
                        buckets.setdefault(key, []).append(item)
                for key in sorted(buckets):
                    groups.append(Group(self._auto_label(rule.auto, key), buckets[key]))
            else:
                matched = []
                for item in remaining:
                    ref = _ref_of(item)
                    if ref is not None and rule.matches(ref, today):
                        matched.append(item)
                    else:
                        rest.append(item)
                if matched:
                    groups.append(Group(rule.name, matched))
            remaining = rest
        if remaining:
            groups.append(Group(CATCH_ALL_NAME, remaining))
        return groups


class GroupingEngine:
    """Decide the grouping mode of a view and bucket its items.

    Parameters
    ----------
    today
        Date (or zero-argument callable) used by date selectors.
    date_format
        ``strftime`` format for ``auto_planning`` group headers.
    """

    def __init__(self, *, today: Today = None, date_format: str = "%A, %B %d, %Y") -> None:
        self.today = today
        self.date_format = date_format

    def mode(self, view: ViewDescriptor) -> Optional[str]:
        return grouping_mode(view)

    def group_entries(self, items: Sequence[EntryRef], key_fn: Callable[[EntryRef], Any]) -> List[Group]:
        groups = group_by_key(items, key_fn)
        logger.debug("Grouping: %d item(s) into %d key group(s)", len(items), len(groups))
        return groups

    def group_lines(self, lines: Sequence[Any], rules: Sequence[Mapping[str, Any]]) -> List[Group]:
        classifier = SuperGroupClassifier(rules, today=self.today, date_format=self.date_format)
        groups = classifier.classify(lines)
        logger.debug("Grouping: %d line(s) into %d super-group(s)", len(lines), len(groups))
        return groups

    def validate_rules(self, rules: Sequence[Mapping[str, Any]]) -> None:
        """Raise :class:`ConfigurationError` if *rules* cannot be interpreted."""
        SuperGroupClassifier(rules, today=self.today, date_format=self.date_format)
