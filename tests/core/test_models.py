import datetime as dt

import pytest

from outline_sidebar.core.exceptions import (
    ConfigurationError,
    NoEntryAtLineError,
    QueryError,
    SidebarError,
)
from outline_sidebar.core.models import (
    Descriptor,
    EntryMeta,
    Group,
    NoItems,
    PrebuiltSurface,
    ViewDescriptor,
    as_item_result,
)


def test_as_item_result_normalises_values(workspace):
    buf = workspace.create_buffer("b")
    view = ViewDescriptor("v")
    assert as_item_result(None) == NoItems()
    assert as_item_result(buf) == PrebuiltSurface(buf)
    assert as_item_result(view) == Descriptor(view)
    assert as_item_result(NoItems()) == NoItems()
    with pytest.raises(TypeError):
        as_item_result("text")


def test_view_descriptor_requires_a_name():
    with pytest.raises(ConfigurationError):
        ViewDescriptor("")


def test_view_descriptor_freezes_collections(make_ref):
    view = ViewDescriptor("v", [make_ref("a")], super_groups=[{"todo": True}])
    assert isinstance(view.items, tuple)
    assert isinstance(view.super_groups, tuple)
    assert view.grouped


def test_planning_date_is_earliest_date():
    meta = EntryMeta("x", scheduled=dt.date(2024, 5, 3), deadline=dt.date(2024, 5, 2))
    assert meta.planning_date == dt.date(2024, 5, 2)
    assert EntryMeta("y").planning_date is None


def test_group_label_for_none_key():
    assert Group(None).label == "None"
    assert Group(3).label == "3"
    assert Group("None").label == '"None"'


def test_entry_ref_tracks_buffer(make_ref, workspace):
    ref = make_ref("a")
    assert ref.live and ref.buffer_name == "scratch.org"
    workspace.kill_buffer(workspace.get_buffer("scratch.org"))
    assert not ref.live


def test_error_messages_carry_buffer_name():
    assert str(SidebarError("boom", "notes.org")) == "[Buffer: notes.org] boom"
    assert str(SidebarError("boom")) == "boom"

    cause = ValueError("inner")
    err = QueryError("bad", predicate="//x[", cause=cause)
    assert err.predicate == "//x[" and err.cause is cause

    missing = NoEntryAtLineError(4, "side")
    assert isinstance(missing, LookupError)
    assert str(missing) == "[Buffer: side] No entry at line 4"
