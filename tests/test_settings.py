from __future__ import annotations

from pydantic import ValidationError
import pytest

from agent_chat.core.settings import Settings


def test_settings_defaults_use_sqlite_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = Settings(_env_file=None)

    assert settings.store_backend == "sqlite"
    assert settings.enable_swagger is True
    assert settings.effective_log_level == "DEBUG"


def test_settings_read_aliased_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("STORE_BACKEND", "postgres")
    monkeypatch.setenv("DATABASE_DSN", "postgresql://chat@db:5432/chat")
    monkeypatch.setenv("STREAM_CHUNK_DELAY_SECONDS", "0.05")
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = Settings(_env_file=None)

    assert settings.store_backend == "postgres"
    assert settings.database_dsn == "postgresql://chat@db:5432/chat"
    assert settings.stream_chunk_delay_seconds == 0.05
    assert settings.enable_swagger is False
    assert settings.effective_log_level == "INFO"


def test_explicit_log_level_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "warning")

    assert Settings(_env_file=None).effective_log_level == "WARNING"


def test_unknown_store_backend_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, STORE_BACKEND="mongodb")
