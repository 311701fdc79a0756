# tests/conftest.py
#
# Shared fixtures. Also puts the project root on sys.path so the tests run
# against the checkout without installing the package.

import sys
import os
import dataclasses

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from askshell.config_handler import AppSettings  # noqa: E402
from askshell.risk_classifier import SafetyLevel  # noqa: E402


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Points ASKSHELL_CONFIG_DIR at a fresh temporary directory."""
    directory = tmp_path / "askshell-config"
    monkeypatch.setenv("ASKSHELL_CONFIG_DIR", str(directory))
    return directory


@pytest.fixture
def make_settings(tmp_path):
    """Builds AppSettings with test defaults; keyword arguments override fields."""
    def _make(**overrides):
        base = AppSettings(
            model="llama3.2",
            host="http://localhost:11434",
            temperature=0.7,
            max_tokens=256,
            top_k=40,
            top_p=0.9,
            request_timeout=30.0,
            ping_timeout=5.0,
            safety_level=SafetyLevel.MEDIUM,
            auto_confirm=False,
            history_enabled=True,
            max_history=100,
            history_path=str(tmp_path / "history.txt"),
            context_history_entries=5,
            directory_listing_limit=10,
            verbose=False,
            shell="/bin/sh",
        )
        return dataclasses.replace(base, **overrides)
    return _make
