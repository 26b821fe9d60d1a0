"""Pytest configuration and fixtures."""

import logging
import os
import sys
from pathlib import Path

import pytest
import yaml

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from csbot.client import ScriptedClient  # noqa: E402


@pytest.fixture
def client():
    """Client where every action succeeds."""
    return ScriptedClient()


@pytest.fixture
def write_workflow(tmp_path):
    """Write a workflow mapping to a YAML file and return its path."""

    def factory(data: dict, name: str = "workflow.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return factory


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the developer's csbot.yaml and CSBOT_* variables out of tests."""
    from csbot.config import settings as settings_module

    for key in list(os.environ):
        if key.startswith("CSBOT_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(settings_module, "_YAML_SEARCH_PATHS", [Path("csbot.yaml")])
    monkeypatch.chdir(tmp_path)
    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handlers installed by configure_logging during a test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
