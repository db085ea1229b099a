import datetime as dt

import pytest

from outline_sidebar.core.exceptions import ConfigurationError
from outline_sidebar.core.grouping import (
    CATCH_ALL_NAME,
    GroupingEngine,
    SuperGroupClassifier,
    group_by_key,
    grouping_mode,
)
from outline_sidebar.core.models import TaggedText, ViewDescriptor

TODAY = dt.date(2024, 5, 1)


@pytest.fixture
def refs(make_ref):
    return [
        make_ref("Pay rent", todo="TODO", priority="A", category="home", tags=("money",),
                 deadline=dt.date(2024, 5, 1)),
        make_ref("Write report", todo="NEXT", category="work", scheduled=dt.date(2024, 5, 3)),
        make_ref("Old thing", todo="DONE", done=True, category="work", scheduled=dt.date(2024, 4, 1)),
        make_ref("Idea", category=None),
        make_ref("Fix bike", todo="TODO", priority="B", category="home", tags=("bike", "money")),
    ]


def _names(groups):
    return [g.label for g in groups]


def _count(groups):
    return sum(len(g.items) for g in groups)


def test_group_by_key_first_occurrence_order_and_none_bucket(refs):
    groups = group_by_key(refs, lambda r: r.meta.category)
    assert _names(groups) == ["home", "work", "None"]
    assert [r.meta.title for r in groups[0].items] == ["Pay rent", "Fix bike"]
    assert _count(groups) == len(refs)


def test_group_by_key_handles_unhashable_keys(refs):
    groups = group_by_key(refs, lambda r: list(r.meta.tags))
    assert [g.name for g in groups] == [["money"], [], ["bike", "money"]]
    assert _count(groups) == len(refs)


def test_selector_rules_first_match_wins_and_catch_all_last(refs):
    rules = [
        {"tag": "money", "name": "Money"},
        {"todo": True},
        {"category": ["work"]},
    ]
    groups = SuperGroupClassifier(rules, today=TODAY).classify(refs)

    assert _names(groups) == ["Money", "Todo", "Category: work", CATCH_ALL_NAME]
    assert [r.meta.title for r in groups[0].items] == ["Pay rent", "Fix bike"]
    assert [r.meta.title for r in groups[1].items] == ["Write report"]
    assert [r.meta.title for r in groups[2].items] == ["Old thing"]
    assert [r.meta.title for r in groups[3].items] == ["Idea"]
    assert _count(groups) == len(refs)


def test_rule_with_several_selectors_matches_any(refs):
    rules = [{"priority": "B", "heading_regexp": "^Write", "name": "Mixed"}]
    groups = SuperGroupClassifier(rules, today=TODAY).classify(refs)
    assert [r.meta.title for r in groups[0].items] == ["Write report", "Fix bike"]


def test_empty_groups_are_not_emitted(refs):
    groups = SuperGroupClassifier([{"priority": "Z"}, {"done": True}], today=TODAY).classify(refs)
    assert _names(groups) == ["Done", CATCH_ALL_NAME]


def test_date_selectors_use_injected_today(refs):
    rules = [
        {"deadline": "today", "name": "Due today"},
        {"scheduled": "past", "name": "Overdue"},
        {"scheduled": "future", "name": "Later"},
    ]
    groups = SuperGroupClassifier(rules, today=lambda: TODAY).classify(refs)
    assert _names(groups) == ["Due today", "Overdue", "Later", CATCH_ALL_NAME]


def test_auto_rules_sort_keys_and_fall_through(refs):
    groups = SuperGroupClassifier([{"auto_priority": True}], today=TODAY).classify(refs)
    assert _names(groups) == ["Priority A", "Priority B", CATCH_ALL_NAME]
    assert _count(groups) == len(refs)


def test_auto_planning_labels_use_date_format(refs):
    classifier = SuperGroupClassifier([{"auto_planning": True}], today=TODAY, date_format="%Y-%m-%d")
    assert _names(classifier.classify(refs)) == ["2024-04-01", "2024-05-01", "2024-05-03", CATCH_ALL_NAME]


def test_classifier_accepts_formatted_lines(refs):
    lines = [TaggedText(r.meta.title, r) for r in refs]
    groups = SuperGroupClassifier([{"auto_category": True}], today=TODAY).classify(lines)
    assert _names(groups) == ["home", "work", CATCH_ALL_NAME]
    assert all(isinstance(item, TaggedText) for g in groups for item in g.items)


@pytest.mark.parametrize("rules", [
    [{"colour": "red"}],
    [{"auto_todo": True, "tag": "x"}],
    [{"name": "nothing to match"}],
    [{"scheduled": "tomorrow"}],
    [{"pred": "not callable"}],
    [{"heading_regexp": "("}],
    ["todo"],
    {"todo": True},
])
def test_invalid_rules_raise_configuration_error(rules):
    with pytest.raises(ConfigurationError):
        SuperGroupClassifier(rules)


def test_grouping_mode(make_ref):
    item = make_ref("x")
    assert grouping_mode(ViewDescriptor("plain", [item])) is None
    assert grouping_mode(ViewDescriptor("key", [item], group_fn=lambda r: 1)) == "key"
    assert grouping_mode(ViewDescriptor("rules", [item], super_groups=[{"todo": True}])) == "rules"


def test_view_with_both_grouping_modes_is_rejected(make_ref):
    with pytest.raises(ConfigurationError):
        ViewDescriptor("both", [make_ref("x")], group_fn=lambda r: 1, super_groups=[{"todo": True}])


def test_engine_validate_rules():
    engine = GroupingEngine(today=TODAY)
    engine.validate_rules([{"todo": True}])
    with pytest.raises(ConfigurationError):
        engine.validate_rules([{"bogus": 1}])
