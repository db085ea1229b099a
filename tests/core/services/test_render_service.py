import datetime as dt

from outline_sidebar.core.grouping import GroupingEngine
from outline_sidebar.core.models import TaggedText, ViewDescriptor
from outline_sidebar.core.services.render_service import (
    HD_MARKER_PROPERTY,
    MARKER_PROPERTY,
    RenderService,
    format_entry,
)


def test_format_entry_layout_and_properties(make_ref):
    ref = make_ref("Pay rent", todo="TODO", priority="A", tags=("home", "money"),
                   scheduled=dt.date(2024, 5, 1), deadline=dt.date(2024, 5, 3), category="home")
    tagged = format_entry(ref)
    assert tagged.text == "TODO [#A] Pay rent  :home:money:  (scheduled 2024-05-01, due 2024-05-03)"
    assert tagged.properties[MARKER_PROPERTY] is ref.marker
    assert tagged.properties[HD_MARKER_PROPERTY] is ref.marker
    assert tagged.properties["todo-state"] == "TODO"
    assert tagged.properties["category"] == "home"


def test_ungrouped_view_renders_one_line_per_entry(make_ref):
    refs = [make_ref(f"Task {i}") for i in range(3)]
    out = RenderService().render(ViewDescriptor("Tasks", refs))
    assert out.lines == ("Task 0", "Task 1", "Task 2")
    assert out.entry_lines() == [0, 1, 2]
    assert [out.ref_at(i) for i in range(3)] == refs
    assert out.ref_at(3) is None


def test_key_grouped_view_has_headers_and_blank_separators(make_ref):
    refs = [make_ref("a", category="x"), make_ref("b", category=None), make_ref("c", category="x")]
    view = ViewDescriptor("Cats", refs, group_fn=lambda r: r.meta.category)
    out = RenderService().render(view)

    assert out.lines == ("x", "a", "c", "", "None", "b")
    assert out.line_properties[0] == {"group-header": "x"}
    assert out.line_properties[3] == {}
    assert out.entry_lines() == [1, 2, 5]


def test_rule_grouped_view_formats_before_grouping(make_ref):
    refs = [make_ref("a", todo="TODO"), make_ref("b")]
    seen = []

    def formatter(ref):
        seen.append(ref.meta.title)
        return TaggedText(ref.meta.title.upper())

    service = RenderService(formatter=formatter, grouping=GroupingEngine())
    out = service.render(ViewDescriptor("Rules", refs, super_groups=[{"todo": True}]))

    assert seen == ["a", "b"]
    assert out.lines == ("Todo", "A", "", "Other items", "B")
    # the formatter set no properties; the renderer still records the marker
    assert out.ref_at(1) is refs[0]
    assert out.line_properties[1][MARKER_PROPERTY] is refs[0].marker


def test_render_is_idempotent(make_ref):
    refs = [make_ref("a", priority="A"), make_ref("b", priority="B")]
    view = ViewDescriptor("Prio", refs, super_groups=[{"auto_priority": True}])
    service = RenderService()
    assert service.render(view) == service.render(view)


def test_newlines_in_formatted_text_stay_on_one_line(make_ref):
    ref = make_ref("x")
    out = RenderService(formatter=lambda r: TaggedText("two\nlines", r)).render(ViewDescriptor("N", [ref]))
    assert out.lines == ("two lines",)


def test_missing_key_and_literal_none_key_get_distinct_headers(make_ref):
    refs = [make_ref("a", category=None), make_ref("b", category="None")]
    view = ViewDescriptor("Cats", refs, group_fn=lambda r: r.meta.category)
    out = RenderService().render(view)

    assert out.lines == ("None", "a", "", '"None"', "b")
