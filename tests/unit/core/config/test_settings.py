"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from anchor.core.config.settings import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("REPOSITORY_BACKEND", raising=False)
        settings = Settings(_env_file=None)
        assert settings.anchor_host == "127.0.0.1"
        assert settings.anchor_port == 8001
        assert settings.anchor_allow_insecure_bind is False
        assert settings.repository_backend == "http"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("REPOSITORY_BACKEND", "local")
        monkeypatch.setenv("ANCHOR_PORT", "9100")
        monkeypatch.setenv("CARE_RECIPIENT_GENDER", "male")
        settings = get_settings()
        assert settings.repository_backend == "local"
        assert settings.anchor_port == 9100
        assert settings.care_recipient_gender == "male"

    def test_hermetic_test_env(self):
        settings = get_settings()
        assert settings.autosave_interval_seconds == 3600
        assert settings.encryption_key == ""

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("REPOSITORY_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
