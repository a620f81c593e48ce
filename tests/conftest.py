"""
Shared pytest fixtures for flagbridge tests.

Provides:
- A default alias table
- Provider settings and a ready provider over a StaticAssignmentClient
- structlog reset between tests so CLI log configuration does not leak
"""

import sys
from pathlib import Path
from typing import Any

import pytest
import structlog

# Ensure flagbridge is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flagbridge.aliases import build_alias_table
from flagbridge.client import InMemoryTracker, StaticAssignmentClient
from flagbridge.provider import ExperimentProvider
from flagbridge.settings import ProviderSettings


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep FLAGBRIDGE_* variables and a stray .env out of settings."""
    import os

    for name in list(os.environ):
        if name.startswith("FLAGBRIDGE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def alias_table():
    return build_alias_table()


@pytest.fixture
def settings() -> ProviderSettings:
    return ProviderSettings(deployment_key="server-test")


@pytest.fixture
def variants() -> dict[str, Any]:
    return {
        "bool-flag": {"key": "on", "payload": True},
        "bool-false": {"key": "on", "payload": False},
        "no-payload": {"key": "on"},
        "off-flag": {"key": "off", "payload": "ignored"},
        "string-flag": {"key": "treatment", "value": "Treatment", "payload": "blue"},
        "int-flag": {"key": "v", "payload": "456"},
        "bad-int": {"key": "v", "payload": "not-an-int"},
        "float-flag": {"key": "v", "payload": 1.5},
        "object-flag": {"key": "v", "payload": {"color": "red", "size": 3}},
        "list-flag": {"key": "v", "payload": [1, 2, 3]},
    }


@pytest.fixture
def static_client(variants) -> StaticAssignmentClient:
    return StaticAssignmentClient(variants)


@pytest.fixture
def tracker() -> InMemoryTracker:
    return InMemoryTracker()


@pytest.fixture
def provider(settings, static_client, tracker) -> ExperimentProvider:
    provider = ExperimentProvider(settings, client=static_client, tracker=tracker)
    provider.initialize()
    yield provider
    provider.shutdown()
