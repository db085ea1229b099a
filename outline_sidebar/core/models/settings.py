from __future__ import annotations

"""Sidebar settings models.

Typed views over the ``sidebar`` configuration section. Values are validated
once, when the settings are built, so services can trust them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from outline_sidebar.core.exceptions import ConfigurationError

_SIDES = ("left", "right")
BUILTIN_VIEWS = ("upcoming", "todo")


@dataclass
class ViewSettings:
    """Configuration of one sidebar view.

    ``query`` is an XPath predicate over the outline index; the built-in
    ``upcoming`` and ``todo`` views fall back to their own predicates when
    it is empty.
    """

    name: str
    description: str = ""
    sort: Tuple[str, ...] = ()
    super_groups: Optional[Tuple[Dict[str, Any], ...]] = None
    query: Optional[str] = None

    @classmethod
    def from_mapping(cls, key: str, data: Mapping[str, Any]) -> "ViewSettings":
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"View settings for {key!r} must be a mapping")
        groups = data.get("super_groups")
        if groups is not None and not isinstance(groups, (list, tuple)):
            raise ConfigurationError(f"super_groups for view {key!r} must be a list")
        return cls(
            name=str(data.get("name") or key),
            description=str(data.get("description") or ""),
            sort=tuple(str(s) for s in data.get("sort") or ()),
            super_groups=tuple(dict(g) for g in groups) if groups is not None else None,
            query=str(data["query"]) if data.get("query") else None,
        )


@dataclass
class SidebarSettings:
    """Validated sidebar configuration."""

    side: str = "right"
    tree_side: str = "left"
    tree_prefix: str = "<tree>"
    date_format: str = "%A, %B %d, %Y"
    todo_keywords: Tuple[str, ...] = ("TODO", "NEXT", "WAITING")
    done_keywords: Tuple[str, ...] = ("DONE", "CANCELLED")
    default_views: Tuple[str, ...] = ("upcoming", "todo")
    views: Dict[str, ViewSettings] = field(default_factory=lambda: {
        "upcoming": ViewSettings(
            name="Upcoming items",
            sort=("date", "priority", "todo"),
            super_groups=({"auto_planning": True},),
        ),
        "todo": ViewSettings(
            name="Unscheduled to-do items",
            sort=("priority", "todo"),
            super_groups=({"auto_todo": True},),
        ),
    })

    def __post_init__(self) -> None:
        errors = []
        if self.side not in _SIDES:
            errors.append(f"side must be one of {_SIDES}, got {self.side!r}")
        if self.tree_side not in _SIDES:
            errors.append(f"tree_side must be one of {_SIDES}, got {self.tree_side!r}")
        if not self.todo_keywords:
            errors.append("todo_keywords cannot be empty")
        overlap = set(self.todo_keywords) & set(self.done_keywords)
        if overlap:
            errors.append(f"keywords both todo and done: {sorted(overlap)}")
        for name in self.default_views:
            if name not in self.views:
                errors.append(f"default view {name!r} has no settings")
        for key, view in self.views.items():
            if key not in BUILTIN_VIEWS and not view.query:
                errors.append(f"view {key!r} needs a query")
        if errors:
            raise ConfigurationError("Invalid sidebar settings: " + "; ".join(errors), errors)

    @classmethod
    def from_config(cls, data: Optional[Mapping[str, Any]]) -> "SidebarSettings":
        """Build settings from a configuration mapping; missing keys keep defaults."""
        if not data:
            return cls()
        defaults = cls()
        views = dict(defaults.views)
        for key, view in (data.get("views") or {}).items():
            views[key] = ViewSettings.from_mapping(key, view)
        return cls(
            side=str(data.get("side", defaults.side)),
            tree_side=str(data.get("tree_side", defaults.tree_side)),
            tree_prefix=str(data.get("tree_prefix", defaults.tree_prefix)),
            date_format=str(data.get("date_format", defaults.date_format)),
            todo_keywords=tuple(data.get("todo_keywords") or defaults.todo_keywords),
            done_keywords=tuple(data.get("done_keywords", defaults.done_keywords) or ()),
            default_views=tuple(data.get("default_views") or defaults.default_views),
            views=views,
        )
