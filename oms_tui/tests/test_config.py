"""Tests for render configuration loading."""

import json

import pytest

from oms_tui.config import RenderConfig, get_config, load_config, reset_config
from oms_tui.errors import ConfigError


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point config discovery at an empty home and working directory."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for name in ("RESULT_MAX_LINES", "SCROLL_STEP_LINES", "AMBIGUOUS_WIDTH", "CODE_THEME"):
        monkeypatch.delenv(f"OMS_TUI_{name}", raising=False)
    return home, work


class TestFromDict:
    """Tests for RenderConfig.from_dict."""

    def test_defaults(self):
        config = RenderConfig()
        assert config.markdown_cache_limit == 128
        assert config.result_max_lines == 8
        assert config.scroll_step_lines == 3
        assert config.ambiguous_width == 1

    def test_overlay_values(self):
        config = RenderConfig.from_dict({"result_max_lines": 20, "code_theme": "ansi_dark"})
        assert config.result_max_lines == 20
        assert config.code_theme == "ansi_dark"
        assert config.scroll_step_lines == 3

    def test_string_integers_are_coerced(self):
        assert RenderConfig.from_dict({"scroll_step_lines": " 5 "}).scroll_step_lines == 5

    def test_invalid_values_are_skipped(self):
        config = RenderConfig.from_dict(
            {"result_max_lines": -1, "ambiguous_width": 3, "scroll_step_lines": "many", "bogus": 1}
        )
        assert config == RenderConfig()

    def test_strict_rejects_unknown_key(self):
        with pytest.raises(ConfigError):
            RenderConfig.from_dict({"bogus": 1}, strict=True)

    def test_strict_rejects_invalid_value(self):
        with pytest.raises(ConfigError):
            RenderConfig.from_dict({"result_max_lines": True}, strict=True)


class TestLoadConfig:
    """Tests for layered loading."""

    def test_project_file_overrides_user_file(self, isolated_home):
        home, work = isolated_home
        (home / ".oms").mkdir()
        (home / ".oms" / "tui.json").write_text(json.dumps({"result_max_lines": 4, "scroll_step_lines": 7}))
        (work / ".oms").mkdir()
        (work / ".oms" / "tui.json").write_text(json.dumps({"result_max_lines": 6}))

        config = load_config()
        assert config.result_max_lines == 6
        assert config.scroll_step_lines == 7

    def test_environment_overrides_files(self, isolated_home, monkeypatch):
        _, work = isolated_home
        (work / ".oms").mkdir()
        (work / ".oms" / "tui.json").write_text(json.dumps({"result_max_lines": 6}))
        monkeypatch.setenv("OMS_TUI_RESULT_MAX_LINES", "11")
        assert load_config().result_max_lines == 11

    def test_broken_file_is_ignored(self, isolated_home):
        _, work = isolated_home
        (work / ".oms").mkdir()
        (work / ".oms" / "tui.json").write_text("{not json")
        assert load_config() == RenderConfig()

    def test_explicit_path_strict(self, tmp_path, isolated_home):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"structured_max_lines": 3}))
        assert load_config(str(path), strict=True).structured_max_lines == 3

    def test_explicit_missing_path_strict_raises(self, tmp_path, isolated_home):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.json"), strict=True)

    def test_explicit_non_object_strict_raises(self, tmp_path, isolated_home):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_config(str(path), strict=True)

    def test_get_config_caches_until_reset(self, isolated_home, monkeypatch):
        reset_config()
        first = get_config()
        assert get_config() is first
        monkeypatch.setenv("OMS_TUI_SCROLL_STEP_LINES", "9")
        assert get_config().scroll_step_lines == first.scroll_step_lines
        reset_config()
        assert get_config().scroll_step_lines == 9
