"""Pytest fixtures for oms_tui tests."""

import pytest

from oms_tui import config as config_module
from oms_tui.config import RenderConfig, set_config
from oms_tui.markdown import clear_markdown_cache


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Run every test with built-in defaults and an empty markdown cache.

    The configuration is process-wide and the markdown cache is shared, so
    either can leak state between tests.
    """
    monkeypatch.setenv("OMS_TUI_TRACE", "")
    set_config(RenderConfig(code_theme=""))
    clear_markdown_cache()
    yield
    config_module.reset_config()
    clear_markdown_cache()

