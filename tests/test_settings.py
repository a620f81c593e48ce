"""
Tests for flagbridge.settings.
"""

import pytest
from pydantic import ValidationError

from flagbridge.settings import (
    EvaluationMode,
    LocalEvaluationOptions,
    ProviderSettings,
    RemoteEvaluationOptions,
)


class TestProviderSettings:
    """Validation and environment loading."""

    def test_defaults(self):
        settings = ProviderSettings()
        assert settings.deployment_key == ""
        assert settings.local is None
        assert settings.remote is None
        assert settings.extra_aliases == {}
        assert settings.evaluation_mode == EvaluationMode.LOCAL

    def test_remote_mode(self):
        settings = ProviderSettings(deployment_key="k", remote=RemoteEvaluationOptions())
        assert settings.evaluation_mode == EvaluationMode.REMOTE
        assert settings.remote.cache_enabled is True

    def test_local_and_remote_exclusive(self):
        with pytest.raises(ValidationError, match="mutually exclusive"):
            ProviderSettings(
                deployment_key="k",
                local=LocalEvaluationOptions(),
                remote=RemoteEvaluationOptions(),
            )

    def test_positive_intervals(self):
        with pytest.raises(ValidationError):
            LocalEvaluationOptions(flag_config_poll_interval_seconds=0)
        with pytest.raises(ValidationError):
            RemoteEvaluationOptions(cache_ttl_seconds=0)

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("FLAGBRIDGE_DEPLOYMENT_KEY", "server-env")
        monkeypatch.setenv("FLAGBRIDGE_REMOTE__CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("FLAGBRIDGE_EXTRA_ALIASES", '{"uid": "user_id"}')

        settings = ProviderSettings()
        assert settings.deployment_key == "server-env"
        assert settings.remote is not None
        assert settings.remote.cache_ttl_seconds == 5
        assert settings.extra_aliases == {"uid": "user_id"}

    def test_from_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("FLAGBRIDGE_DEPLOYMENT_KEY=from-file\n")
        assert ProviderSettings().deployment_key == "from-file"

    def test_json_logs(self):
        assert ProviderSettings(log_format="JSON").json_logs
        assert not ProviderSettings(log_format="console").json_logs

    def test_evaluation_options_follow_mode(self):
        assert ProviderSettings().evaluation_options == LocalEvaluationOptions()
        remote = RemoteEvaluationOptions(fetch_timeout_seconds=3)
        assert ProviderSettings(remote=remote).evaluation_options is remote
