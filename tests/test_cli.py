import io

import pytest

from outline_sidebar.cli import main


@pytest.fixture
def notes_file(tmp_path, sample_text):
    path = tmp_path / "notes.org"
    path.write_text(sample_text, encoding="utf-8")
    return path


def _run(*argv):
    out = io.StringIO()
    code = main([str(a) for a in argv], out=out)
    return code, out.getvalue()


def test_show_is_the_default_command(notes_file):
    code, text = _run(notes_file, "--today", "2024-05-01")
    assert code == 0
    assert "== Upcoming items ==" in text
    assert "== Unscheduled to-do items ==" in text
    assert "TODO Fix sink  :house:  (due 2024-05-01)" in text


def test_query_with_grouping_and_sort(notes_file):
    code, text = _run(notes_file, "query", "//entry[@todo]", "--group-by", "todo", "--sort", "title")
    assert code == 0
    lines = text.splitlines()
    assert lines[0] == "== Query: //entry[@todo]: 5 item(s) =="
    assert lines[1] == "TODO"
    assert lines[2] == "TODO [#B] Call plumber"


def test_query_narrowed_to_subtree(notes_file):
    code, text = _run(notes_file, "query", "//entry", "--narrow", "7")
    assert code == 0
    assert "Home" in text and "Call plumber" in text
    assert "Write report" not in text and "Someday" not in text


def test_tree_and_subtree_jump(notes_file):
    code, text = _run(notes_file, "tree")
    assert code == 0
    assert text.splitlines()[:3] == ["== Tree: notes.org ==", "#+CATEGORY: work", "* TODO [#A] Write report  :office:"]

    code, text = _run(notes_file, "tree", "--jump", "7", "--depth", "branches")
    assert code == 0
    assert "*** Notes" in text and "Some notes." not in text


def test_sidebar_errors_exit_with_status_2(notes_file, capsys):
    code, _text = _run(notes_file, "query", "//entry[")
    assert code == 2
    assert "error:" in capsys.readouterr().err

    code, _text = _run(notes_file.with_name("missing.org"))
    assert code == 2


def test_invalid_today_is_a_usage_error(notes_file):
    with pytest.raises(SystemExit) as info:
        main([str(notes_file), "--today", "May 1st"])
    assert info.value.code == 2
