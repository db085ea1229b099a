import pytest

from outline_sidebar.config import ConfigManager, user_config_dir
from outline_sidebar.core.exceptions import ConfigurationError
from outline_sidebar.core.models import SidebarSettings


def test_packaged_defaults_are_loaded_and_copied(tmp_path):
    cfg = ConfigManager()
    sidebar = cfg.get_sidebar_config()

    assert sidebar["side"] == "right"
    assert sidebar["views"]["todo"]["name"] == "Unscheduled to-do items"
    assert cfg.get_logging_config()["version"] == 1
    assert cfg.status("sidebar") == "loaded"
    assert (tmp_path / "user_config" / "sidebar.yml").exists()
    assert user_config_dir() == tmp_path / "user_config"


def test_config_manager_is_a_singleton():
    assert ConfigManager() is ConfigManager()


def test_user_overrides_merge_views(tmp_path):
    user_dir = tmp_path / "user_config"
    user_dir.mkdir()
    (user_dir / "sidebar.yml").write_text(
        "side: left\n"
        "views:\n"
        "  waiting:\n"
        "    name: Waiting\n"
        "    query: \"//entry[@todo='WAITING']\"\n",
        encoding="utf-8",
    )
    cfg = ConfigManager()
    sidebar = cfg.get_sidebar_config()

    assert cfg.status("sidebar") == "loaded+overrides"
    assert sidebar["side"] == "left"
    assert set(sidebar["views"]) == {"upcoming", "todo", "waiting"}


def test_broken_user_override_is_ignored(tmp_path):
    user_dir = tmp_path / "user_config"
    user_dir.mkdir()
    (user_dir / "sidebar.yml").write_text("side: [unclosed\n", encoding="utf-8")
    cfg = ConfigManager()
    assert cfg.get_sidebar_config()["side"] == "right"
    assert cfg.status("sidebar") == "loaded"


def test_settings_from_packaged_config_match_defaults():
    settings = SidebarSettings.from_config(ConfigManager().get_sidebar_config())
    assert settings == SidebarSettings()


def test_settings_from_config_overrides_and_validates():
    settings = SidebarSettings.from_config({
        "tree_prefix": "tree:",
        "todo_keywords": ["TODO"],
        "views": {"mine": {"name": "Mine", "query": "//entry", "sort": ["-priority"]}},
    })
    assert settings.tree_prefix == "tree:"
    assert settings.views["mine"].sort == ("-priority",)

    with pytest.raises(ConfigurationError) as info:
        SidebarSettings.from_config({"side": "top", "done_keywords": ["TODO"]})
    assert len(info.value.errors) == 2


@pytest.mark.parametrize("data", [
    {"default_views": ["missing"]},
    {"views": {"custom": {"name": "No query"}}},
    {"views": {"bad": ["not", "a", "mapping"]}},
    {"views": {"bad": {"super_groups": {"todo": True}}}},
])
def test_invalid_settings(data):
    with pytest.raises(ConfigurationError):
        SidebarSettings.from_config(data)
