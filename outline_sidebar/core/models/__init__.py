from __future__ import annotations

"""Shared data structures used across the sidebar core.

This package exposes the value objects passed between the query adapter,
the grouping engine, the renderer and the composer. It is intentionally free
of display code so that the contained objects can be reused in any context
(unit-tests, CLI, editor front-ends).
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from outline_sidebar.core.buffers import Buffer, Marker
from outline_sidebar.core.exceptions import ConfigurationError
from outline_sidebar.core.models.settings import SidebarSettings, ViewSettings

__all__ = [
    "EntryMeta",
    "EntryRef",
    "TaggedText",
    "ViewDescriptor",
    "Group",
    "ViewSession",
    "NoItems",
    "PrebuiltSurface",
    "Descriptor",
    "ItemFnResult",
    "as_item_result",
    "SidebarSettings",
    "ViewSettings",
    "NONE_GROUP_LABEL",
]

NONE_GROUP_LABEL = "None"


@dataclass(frozen=True)
class EntryMeta:
    """Snapshot of one entry's structured metadata taken at query time."""

    title: str
    level: int = 1
    todo: Optional[str] = None
    done: bool = False
    priority: Optional[str] = None
    scheduled: Optional[dt.date] = None
    deadline: Optional[dt.date] = None
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    parent: Optional[str] = None

    @property
    def planning_date(self) -> Optional[dt.date]:
        """Earliest of the scheduled and deadline dates."""
        dates = [d for d in (self.scheduled, self.deadline) if d is not None]
        return min(dates) if dates else None


@dataclass(frozen=True, eq=False)
class EntryRef:
    """A live position in a source buffer plus the entry's metadata snapshot."""

    marker: Marker
    meta: EntryMeta

    def resolve(self) -> Tuple[Buffer, int]:
        """Return ``(buffer, position)``; raises ``StaleReferenceError`` if killed."""
        return self.marker.resolve()

    @property
    def live(self) -> bool:
        return self.marker.live

    @property
    def buffer_name(self) -> Optional[str]:
        return self.marker.buffer.name if self.marker.buffer is not None else None

    def __repr__(self) -> str:
        return f"<EntryRef {self.meta.title!r} {self.marker!r}>"


@dataclass(frozen=True)
class TaggedText:
    """One formatted display line carrying out-of-band properties.

    ``properties`` follows the agenda convention: ``org-marker`` and
    ``org-hd-marker`` hold the entry marker that jump commands resolve.
    """

    text: str
    ref: Optional[EntryRef] = None
    properties: Dict[str, Any] = field(default_factory=dict)


GroupFn = Callable[[EntryRef], Any]


@dataclass(frozen=True)
class ViewDescriptor:
    """A named bundle of entries plus at most one grouping strategy.

    Attributes
    ----------
    name
        Surface name; also the buffer name the view renders into.
    items
        Entries in display order.
    group_fn
        Single-key classifier ``EntryRef -> key`` (key grouping).
    super_groups
        Ordered rule list (rule-list grouping).
    description
        Help text shown in the surface header.

    Raises
    ------
    ConfigurationError
        When both ``group_fn`` and ``super_groups`` are set.
    """

    name: str
    items: Tuple[EntryRef, ...] = ()
    group_fn: Optional[GroupFn] = None
    super_groups: Optional[Tuple[Dict[str, Any], ...]] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("View name cannot be empty")
        object.__setattr__(self, "items", tuple(self.items))
        if self.super_groups is not None:
            object.__setattr__(self, "super_groups", tuple(self.super_groups))
        if self.group_fn is not None and self.super_groups is not None:
            raise ConfigurationError(
                f"View {self.name!r} sets both a group function and super-groups; choose one",
                ["group_fn", "super_groups"],
            )

    @property
    def grouped(self) -> bool:
        return self.group_fn is not None or self.super_groups is not None


@dataclass
class Group:
    """A named bucket of entries (or formatted lines) in original order."""

    name: Optional[str]
    items: List[Any] = field(default_factory=list)

    @property
    def label(self) -> str:
        if self.name is None:
            return NONE_GROUP_LABEL
        text = str(self.name)
        # a real key printing as "None" must not read as the missing-key bucket
        return f'"{text}"' if text == NONE_GROUP_LABEL else text


@dataclass
class ViewSession:
    """Parameters needed to rebuild the surfaces of one sidebar invocation."""

    source: Buffer
    documents: Tuple[Buffer, ...] = ()  # queried besides the source
    buffers: Tuple[Buffer, ...] = ()
    fns: Tuple[Callable[..., Any], ...] = ()
    descriptors: Tuple[ViewDescriptor, ...] = ()
    group: bool = False
    super_groups: Optional[Sequence[Dict[str, Any]]] = None


# ----------------------------------------------------------------------
# Item function results
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class NoItems:
    """An item function found nothing to show."""


@dataclass(frozen=True)
class PrebuiltSurface:
    """An item function built its own surface; displayed as-is."""

    buffer: Buffer


@dataclass(frozen=True)
class Descriptor:
    """An item function returned a view to be rendered."""

    view: ViewDescriptor


ItemFnResult = Union[NoItems, PrebuiltSurface, Descriptor]


def as_item_result(value: Any) -> ItemFnResult:
    """Normalise an item function's return value into an :data:`ItemFnResult`.

    ``None`` becomes :class:`NoItems`; bare buffers and descriptors are
    wrapped. Anything else is a programming error.
    """
    if isinstance(value, (NoItems, PrebuiltSurface, Descriptor)):
        return value
    if value is None:
        return NoItems()
    if isinstance(value, Buffer):
        return PrebuiltSurface(value)
    if isinstance(value, ViewDescriptor):
        return Descriptor(value)
    raise TypeError(f"Item function returned unsupported value of type {type(value).__name__}")
