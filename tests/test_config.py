"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from utils.config import Settings, load_settings
from utils.errors import ConfigurationError


@pytest.fixture
def env_file(tmp_path) -> str:
    path = tmp_path / ".env"
    path.write_text("")
    return str(path)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GROQ_API_KEY",
        "KIMO_API_BASE_URL",
        "KIMO_TEXT_MODEL",
        "KIMO_VISION_MODEL",
        "KIMO_TRANSCRIBE_MODEL",
        "KIMO_TRANSCRIBE_LANGUAGE",
        "KIMO_SPEECH_LANGUAGE",
        "DATABASE_DIR",
        "KIMO_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_missing_api_key_fails_fast(self, env_file):
        with pytest.raises(ConfigurationError):
            load_settings(env_file)

    def test_blank_api_key_fails_fast(self, env_file, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "   ")

        with pytest.raises(ConfigurationError):
            load_settings(env_file)

    def test_defaults(self, env_file, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_test")

        settings = load_settings(env_file)

        assert settings.api_key == "gsk_test"
        assert settings.api_base_url == "https://api.groq.com/openai/v1"
        assert settings.context_limit == 10
        assert settings.reveal_chunk_size == 15
        assert settings.live_window_exchanges == 2
        assert settings.speech_language == "uz-UZ"

    def test_environment_overrides(self, env_file, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
        monkeypatch.setenv("KIMO_TEXT_MODEL", "llama-3.1-8b-instant")
        monkeypatch.setenv("DATABASE_DIR", "/tmp/kimo")
        monkeypatch.setenv("KIMO_LOG_LEVEL", "debug")

        settings = load_settings(env_file)

        assert settings.text_model == "llama-3.1-8b-instant"
        assert settings.database_dir == Path("/tmp/kimo")
        assert settings.log_level == "DEBUG"

    def test_values_from_env_file(self, tmp_path):
        path = tmp_path / "custom.env"
        path.write_text("GROQ_API_KEY=gsk_from_file\nKIMO_SPEECH_LANGUAGE=ru-RU\n")

        settings = load_settings(str(path))

        assert settings.api_key == "gsk_from_file"
        assert settings.speech_language == "ru-RU"


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        Settings(api_key="gsk_test", decoration_probability=1.5)
