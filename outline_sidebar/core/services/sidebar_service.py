from __future__ import annotations

"""View composer: build sidebar surfaces for a source buffer.

Item functions are called as ``fn(source, group=..., super_groups=...)`` and
may return ``None`` (nothing to show), a ready-made :class:`Buffer`, or a
:class:`ViewDescriptor` to render. Every resulting surface is tagged with a
:class:`ViewSession` so it can be refreshed in place later.

Examples
--------
Show the default sidebar and jump from one of its lines:

    service = SidebarService(workspace, settings=SidebarSettings())
    surfaces = service.show(workspace.get_buffer("notes.org"))
    service.jump(surfaces[0], 1)
"""

import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from outline_sidebar.core.buffers import Buffer, Workspace
from outline_sidebar.core.exceptions import (
    ConfigurationError,
    ConflictError,
    NoEntryAtLineError,
    SidebarError,
    SourceGoneError,
)
from outline_sidebar.core.grouping import GroupingEngine
from outline_sidebar.core.models import (
    Descriptor,
    EntryRef,
    NoItems,
    PrebuiltSurface,
    SidebarSettings,
    ViewDescriptor,
    ViewSession,
    ViewSettings,
    as_item_result,
)
from outline_sidebar.core import outline
from outline_sidebar.core.query import ItemSource, OutlineQueryEvaluator
from outline_sidebar.core.services.render_service import MARKER_PROPERTY, RenderService
from outline_sidebar.core.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

__all__ = ["SidebarService", "GROUP_PROPERTIES"]

ItemFn = Callable[..., Any]
Today = Union[dt.date, Callable[[], dt.date], None]

GROUP_PROPERTIES: Dict[str, Callable[[EntryRef], Any]] = {
    "category": lambda ref: ref.meta.category,
    "parent": lambda ref: ref.meta.parent,
    "priority": lambda ref: ref.meta.priority,
    "todo": lambda ref: ref.meta.todo,
}


class SidebarService:
    """Compose, display, refresh and navigate sidebar surfaces.

    Parameters
    ----------
    workspace
        Buffer registry and display layout the sidebars live in.
    settings
        Sidebar settings; loaded from :class:`ConfigManager` when omitted.
    item_source
        Query adapter; built from the settings' keywords when omitted.
    renderer
        Renderer; a default one sharing ``today`` and the date format is
        built when omitted.
    registry
        Session side table; one bound to *workspace* is created when omitted.
    today
        Date (or zero-argument callable) used by the upcoming view and date
        selectors.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        settings: Optional[SidebarSettings] = None,
        item_source: Optional[ItemSource] = None,
        renderer: Optional[RenderService] = None,
        registry: Optional[SessionRegistry] = None,
        today: Today = None,
    ) -> None:
        if settings is None:
            from outline_sidebar.config import ConfigManager

            settings = SidebarSettings.from_config(ConfigManager().get_sidebar_config())
        self.workspace = workspace
        self.settings = settings
        self._today = today
        self.item_source = item_source or ItemSource(
            OutlineQueryEvaluator(settings.todo_keywords, settings.done_keywords)
        )
        self.renderer = renderer or RenderService(
            grouping=GroupingEngine(today=today, date_format=settings.date_format)
        )
        self.registry = registry if registry is not None else SessionRegistry(workspace)

    @property
    def today(self) -> dt.date:
        if self._today is None:
            return dt.date.today()
        if callable(self._today):
            return self._today()
        return self._today

    # -------------------------------------------------------------------------
    # Composer
    # -------------------------------------------------------------------------

    def compose(
        self,
        source: Buffer,
        *,
        buffers: Sequence[Buffer] = (),
        fns: Sequence[ItemFn] = (),
        descriptors: Sequence[ViewDescriptor] = (),
        group: bool = True,
        super_groups: Optional[Sequence[Dict[str, Any]]] = None,
        documents: Sequence[Buffer] = (),
    ) -> List[Buffer]:
        """Build and display surfaces: explicit buffers, item-function results, descriptors.

        ``group`` and ``super_groups`` are handed to item functions only; a
        pre-built descriptor keeps its own grouping. ``documents`` names the
        buffers item functions query besides *source*; refresh checks them.
        """
        for buf in (source,) + tuple(documents):
            if not buf.live:
                raise SourceGoneError("Cannot build a sidebar for a killed buffer", buf.name)
        if super_groups is not None:
            self.renderer.grouping.validate_rules(super_groups)
        logger.info("Sidebar: compose source=%s buffers=%d fns=%d descriptors=%d",
                    source.name, len(buffers), len(fns), len(descriptors))

        surfaces: List[Buffer] = [b for b in buffers if b.live]
        for fn in fns:
            result = as_item_result(fn(source, group=group, super_groups=super_groups))
            if isinstance(result, NoItems):
                logger.debug("Sidebar: %s returned no items", getattr(fn, "__name__", fn))
            elif isinstance(result, PrebuiltSurface):
                surfaces.append(result.buffer)
            elif isinstance(result, Descriptor):
                surfaces.append(self._prepare(result.view))
        for view in descriptors:
            surfaces.append(self._prepare(view))

        session = ViewSession(
            source=source,
            documents=tuple(documents),
            buffers=tuple(buffers),
            fns=tuple(fns),
            descriptors=tuple(descriptors),
            group=group,
            super_groups=super_groups,
        )
        for surface in surfaces:
            self.registry.attach(surface, session)

        self.workspace.layout.display_side(surfaces, self.settings.side)
        logger.info("Sidebar OK: %d surface(s) for %s", len(surfaces), source.name)
        return surfaces

    def show(self, source: Buffer, *, group: bool = True,
             super_groups: Optional[Sequence[Dict[str, Any]]] = None) -> List[Buffer]:
        """Show the configured default views for *source*."""
        fns = [self.view_fn(name) for name in self.settings.default_views]
        return self.compose(source, fns=fns, group=group, super_groups=super_groups)

    def show_query(
        self,
        source: Buffer,
        predicate: Any,
        *,
        documents: Optional[Sequence[Buffer]] = None,
        narrow: bool = False,
        group_property: Optional[str] = None,
        sort: Sequence[str] = (),
        super_groups: Optional[Sequence[Dict[str, Any]]] = None,
        name: Optional[str] = None,
    ) -> List[Buffer]:
        """Show a sidebar for an ad-hoc query.

        ``group_property`` (category, parent, priority or todo) selects key
        grouping and cannot be combined with ``super_groups``.
        """
        if group_property is not None and super_groups is not None:
            raise ConfigurationError("group_property and super_groups are mutually exclusive",
                                     ["group_property", "super_groups"])
        if group_property is not None and group_property not in GROUP_PROPERTIES:
            raise ConfigurationError(
                f"Unknown group property {group_property!r}; expected one of {sorted(GROUP_PROPERTIES)}"
            )
        title = name or (f"Query: {predicate}" if isinstance(predicate, str) else "Query results")
        docs = tuple(documents) if documents else None
        sort_keys = tuple(sort)

        def query_items(src: Buffer, *, group: bool = True,
                        super_groups: Optional[Sequence[Dict[str, Any]]] = None) -> ViewDescriptor:
            items = self.item_source.query(
                docs or (src,), predicate, restrict_to_visible_range=narrow, sort_keys=sort_keys
            )
            return ViewDescriptor(
                name=title,
                items=items,
                group_fn=GROUP_PROPERTIES[group_property] if group and group_property else None,
                super_groups=super_groups if group else None,
                description=f"{len(items)} item(s)",
            )

        return self.compose(
            source,
            fns=[query_items],
            group=group_property is not None or super_groups is not None,
            super_groups=super_groups,
            documents=docs or (),
        )

    def toggle(self, source: Buffer) -> List[Buffer]:
        """Hide this source's sidebars if shown, else show the default sidebar."""
        layout = self.workspace.layout
        mine = set(map(id, self.registry.surfaces_for(source)))
        if any(id(w.buffer) in mine for w in layout.side_windows(self.settings.side)):
            layout.close_side(self.settings.side)
            logger.info("Sidebar: hidden for %s", source.name)
            return []
        return self.show(source)

    # -------------------------------------------------------------------------
    # Session operations
    # -------------------------------------------------------------------------

    def refresh(self, surface: Buffer) -> List[Buffer]:
        """Rebuild every surface of *surface*'s session in place.

        When the source buffer or a queried document is gone a notice is
        recorded and nothing changes.
        """
        session = self.registry.get(surface)
        if session is None:
            raise SidebarError("Not a sidebar surface", surface.name)
        try:
            source = self.registry.resolve_source(session)
        except SourceGoneError as exc:
            logger.warning("Sidebar FAIL: refresh %s", exc)
            self.workspace.message(f"Source buffer {exc.buffer_name} no longer exists", logging.WARNING)
            return []
        logger.debug("Sidebar: refresh surface=%s source=%s", surface.name, source.name)
        return self.compose(
            source,
            buffers=session.buffers,
            fns=session.fns,
            descriptors=session.descriptors,
            group=session.group,
            super_groups=session.super_groups,
            documents=session.documents,
        )

    def jump(self, surface: Buffer, line: int) -> Tuple[Buffer, int]:
        """Display the entry referenced by *line* of *surface* in its source buffer.

        Raises
        ------
        NoEntryAtLineError
            When the line is a header, a blank or out of range.
        StaleReferenceError
            When the entry's buffer has been killed; nothing is displayed.
        """
        props = surface.line_properties[line] if 0 <= line < len(surface.line_properties) else {}
        marker = props.get(MARKER_PROPERTY)
        if marker is None:
            raise NoEntryAtLineError(line, surface.name)
        buf, pos = marker.resolve()
        begin, end = buf.restriction
        if not begin <= pos <= end:
            buf.widen()
        buf.point = pos
        outline.reveal(buf, pos)
        self.workspace.layout.pop_to_buffer(buf)
        logger.info("Sidebar OK: jump to %s:%d", buf.name, pos)
        return buf, pos

    # -------------------------------------------------------------------------
    # Built-in views
    # -------------------------------------------------------------------------

    def view_fn(self, key: str) -> ItemFn:
        """Return the item function for configured view *key*."""
        view = self.settings.views.get(key)
        if view is None:
            raise ConfigurationError(f"No sidebar view named {key!r}")
        if view.query:
            predicate: Any = view.query
            suppress_empty = False
        elif key == "upcoming":
            predicate = self._upcoming_predicate
            suppress_empty = True
        elif key == "todo":
            predicate = self._unscheduled_todo_predicate
            suppress_empty = False
        else:
            raise ConfigurationError(f"View {key!r} needs a query")

        def items_fn(source: Buffer, *, group: bool = True,
                     super_groups: Optional[Sequence[Dict[str, Any]]] = None) -> Optional[ViewDescriptor]:
            items = self.item_source.query(source, predicate, sort_keys=view.sort)
            if not items and suppress_empty:
                return None
            return self._descriptor(view, items, group, super_groups)

        items_fn.__name__ = f"{key}_items"
        return items_fn

    @staticmethod
    def _descriptor(view: ViewSettings, items: Sequence[EntryRef], group: bool,
                    super_groups: Optional[Sequence[Dict[str, Any]]]) -> ViewDescriptor:
        rules = None
        if group:
            rules = super_groups if super_groups is not None else view.super_groups
        return ViewDescriptor(name=view.name, items=items, super_groups=rules,
                              description=view.description)

    def _upcoming_predicate(self, ref: EntryRef) -> bool:
        meta = ref.meta
        if meta.done:
            return False
        today = self.today
        return any(d is not None and d >= today for d in (meta.scheduled, meta.deadline))

    @staticmethod
    def _unscheduled_todo_predicate(ref: EntryRef) -> bool:
        meta = ref.meta
        return (meta.todo is not None and not meta.done
                and meta.scheduled is None and meta.deadline is None)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _prepare(self, view: ViewDescriptor) -> Buffer:
        """Render *view* into the buffer of the same name, replacing its content."""
        existing = self.workspace.get_buffer(view.name)
        if existing is not None and not existing.local.get("sidebar"):
            logger.warning("Sidebar FAIL: name %s is taken by a non-sidebar buffer", view.name)
            raise ConflictError(f"Buffer {view.name!r} exists and is not a sidebar", view.name)
        rendered = self.renderer.render(view)
        buf = existing if existing is not None else self.workspace.create_buffer(view.name)
        buf.set_contents(rendered.text, list(rendered.line_properties))
        buf.header_line = f"{view.name}: {view.description}" if view.description else view.name
        buf.local["sidebar"] = True
        return buf
