import pytest

from outline_sidebar.core.buffers import TextStorage, Visibility
from outline_sidebar.core.exceptions import StaleReferenceError


def test_marker_follows_insertions_before_it(workspace):
    buf = workspace.create_buffer("a.org", "* one\n* two\n")
    marker = buf.make_marker(6)

    buf.insert(0, "xx")
    assert marker.position == 8

    buf.insert(len(buf.text), "tail")
    assert marker.position == 8


def test_marker_at_insertion_point_stays_put(workspace):
    buf = workspace.create_buffer("c", "abc")
    stay = buf.make_marker(1)
    buf.insert(1, "ZZ")
    assert stay.position == 1
    assert buf.text == "aZZbc"


def test_marker_inside_deleted_range_collapses_to_start(workspace):
    buf = workspace.create_buffer("a", "0123456789")
    marker = buf.make_marker(5)
    buf.delete(3, 8)
    assert marker.position == 3
    assert buf.text == "01289"


def test_replace_rejects_invalid_range():
    storage = TextStorage("abc")
    with pytest.raises(ValueError):
        storage.replace(2, 1, "x")
    with pytest.raises(ValueError):
        storage.replace(0, 10, "x")


def test_visibility_merges_and_splits_spans():
    vis = Visibility()
    vis.hide(2, 5)
    vis.hide(4, 8)
    assert vis.spans() == [(2, 8)]
    vis.show(3, 6)
    assert vis.spans() == [(2, 3), (6, 8)]
    assert vis.is_invisible(2)
    assert not vis.is_invisible(4)


def test_visible_text_respects_narrowing_and_hidden_spans(workspace):
    buf = workspace.create_buffer("a", "0123456789")
    buf.visibility.hide(2, 4)
    assert buf.visible_text() == "01456789"
    buf.narrow(1, 6)
    assert buf.visible_text() == "145"
    buf.widen()
    assert not buf.narrowed


def test_narrow_rejects_out_of_range(workspace):
    buf = workspace.create_buffer("a", "abc")
    with pytest.raises(ValueError):
        buf.narrow(2, 10)


def test_indirect_buffer_shares_text_but_not_visibility(workspace, source):
    source.narrow(0, 20)
    mirror = workspace.clone_indirect(source, "mirror")

    assert mirror.indirect and mirror.base_buffer is source
    assert mirror.restriction == source.restriction
    mirror.visibility.hide(0, 5)
    assert source.visibility.spans() == []

    mirror.insert(0, "new ")
    assert source.text.startswith("new ")


def test_clone_of_clone_uses_root_base(workspace, source):
    first = workspace.clone_indirect(source, "first")
    second = workspace.clone_indirect(first, "second")
    assert second.base is source
    assert second.storage is source.storage
    assert set(workspace.indirect_buffers(first)) == {first, second}


def test_killing_base_kills_mirrors_and_invalidates_markers(workspace, source):
    mirror = workspace.clone_indirect(source, "mirror")
    marker = source.make_marker(3)
    workspace.layout.pop_to_buffer(mirror)

    workspace.kill_buffer(source)

    assert not source.live and not mirror.live
    assert workspace.get_buffer("mirror") is None
    assert workspace.layout.window_for(mirror) is None
    assert not marker.live
    with pytest.raises(StaleReferenceError):
        marker.resolve()


def test_killed_buffer_rejects_edits(workspace):
    buf = workspace.create_buffer("a", "abc")
    workspace.kill_buffer(buf)
    with pytest.raises(StaleReferenceError):
        buf.insert(0, "x")


def test_kill_hooks_run_once_per_buffer(workspace, source):
    killed = []
    workspace.add_kill_hook(lambda b: killed.append(b.name))
    workspace.clone_indirect(source, "m1")
    workspace.kill_buffer(source)
    workspace.kill_buffer(source)
    assert killed == ["m1", "notes.org"]


def test_set_contents_resets_view_state(workspace):
    buf = workspace.create_buffer("side", "old text")
    buf.narrow(1, 3)
    buf.visibility.hide(0, 2)
    buf.set_contents("new\nlines", [{"a": 1}, {}])
    assert buf.text == "new\nlines"
    assert buf.visible_text() == "new\nlines"
    assert buf.line_properties == [{"a": 1}, {}]
    assert buf.point == 0


def test_duplicate_buffer_name_is_rejected(workspace):
    workspace.create_buffer("x")
    with pytest.raises(ValueError):
        workspace.create_buffer("x")
    assert workspace.get_or_create_buffer("x") is workspace.get_buffer("x")


def test_open_file_names_buffer_after_file(tmp_path, workspace):
    path = tmp_path / "plan.org"
    path.write_text("* TODO Plan\n", encoding="utf-8")
    buf = workspace.open_file(path)
    assert buf.name == "plan.org"
    assert buf.local["file"] == str(path)
    assert workspace.open_file(path) is buf


def test_message_records_notice(workspace):
    workspace.message("hello")
    assert workspace.messages == ["hello"]


def test_visibility_updates_only_touch_neighbouring_spans():
    vis = Visibility()
    vis.hide(10, 12)
    vis.hide(2, 4)
    vis.hide(6, 8)
    assert vis.spans() == [(2, 4), (6, 8), (10, 12)]

    vis.hide(4, 6)
    assert vis.spans() == [(2, 8), (10, 12)]

    vis.show(7, 11)
    assert vis.spans() == [(2, 7), (11, 12)]
    assert vis.is_invisible(6) and vis.is_invisible(11)
    assert not vis.is_invisible(7) and not vis.is_invisible(12)


def test_visibility_shift_merges_spans_that_meet():
    vis = Visibility()
    vis.hide(1, 3)
    vis.hide(5, 8)
    vis.shift(2, 6, 0)
    assert vis.spans() == [(1, 4)]
