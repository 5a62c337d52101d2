"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Anchor care log server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: the care log server has no auth layer of its own.
    anchor_host: str = "127.0.0.1"
    anchor_port: int = 8001
    anchor_log_level: str = "info"
    # Binding to a non-loopback host is refused unless this is set true.
    anchor_allow_insecure_bind: bool = False

    # Care log API (http backend)
    anchor_api_url: str = "http://127.0.0.1:8787/api"
    anchor_api_token: str = ""
    anchor_api_timeout_seconds: float = 10.0

    # Session identity
    caregiver_id: str = ""
    care_recipient_id: str = ""
    care_recipient_dob: str = ""  # YYYY-MM-DD
    care_recipient_gender: Literal["female", "male", ""] = ""

    # Autosave
    autosave_interval_seconds: float = 30.0
    autosave_debounce_seconds: float = 2.0

    # Storage
    repository_backend: Literal["http", "local"] = "http"
    db_path: str = "~/.anchor/care_logs.db"
    encryption_key: str = ""

    # Medication template (empty = packaged default)
    medication_template_path: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
