"""Application settings loaded from the environment."""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.errors import ConfigurationError


class Settings(BaseModel):
    """Runtime configuration for the assistant.

    Only the API key is required. Everything else has a default that matches
    the hosted Groq deployment the front-end was built against.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    api_key: str = Field(description="Bearer token for the remote API")
    api_base_url: str = Field(default="https://api.groq.com/openai/v1")

    # Models
    text_model: str = Field(default="llama-3.3-70b-versatile")
    vision_model: str = Field(default="meta-llama/llama-4-scout-17b-16e-instruct")
    transcribe_model: str = Field(default="whisper-large-v3")
    transcribe_language: Optional[str] = Field(default="uz")

    # Chat turn
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1)
    context_limit: int = Field(default=10, ge=1)
    decoration_probability: float = Field(default=0.3, ge=0.0, le=1.0)

    # Reveal
    reveal_chunk_size: int = Field(default=15, ge=1)
    reveal_tick_interval: float = Field(default=0.015, gt=0.0)

    # Live capture
    live_max_tokens: int = Field(default=300, ge=1)
    live_window_exchanges: int = Field(default=2, ge=0)
    live_frame_interval: float = Field(default=2.0, gt=0.0)
    live_jpeg_quality: int = Field(default=60, ge=1, le=95)
    live_spoken_apology: bool = Field(default=True)

    # Speech output
    speech_language: str = Field(default="uz-UZ")
    speech_fallback_locales: List[str] = Field(default=["uz", "tr-TR", "ru-RU"])
    speech_rate: float = Field(default=1.0, gt=0.0)

    # Storage / runtime
    database_dir: Path = Field(default=Path("./data"))
    log_level: str = Field(default="INFO")

    @field_validator("api_key")
    @classmethod
    def _api_key_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("api_key cannot be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the process environment (and `.env` if present).

    Raises:
        ConfigurationError: when GROQ_API_KEY is missing or a value is invalid.
    """
    load_dotenv(env_file)

    api_key = os.getenv("GROQ_API_KEY")
    if not api_key or not api_key.strip():
        raise ConfigurationError("GROQ_API_KEY environment variable is not set")

    overrides = {
        "api_base_url": os.getenv("KIMO_API_BASE_URL"),
        "text_model": os.getenv("KIMO_TEXT_MODEL"),
        "vision_model": os.getenv("KIMO_VISION_MODEL"),
        "transcribe_model": os.getenv("KIMO_TRANSCRIBE_MODEL"),
        "transcribe_language": os.getenv("KIMO_TRANSCRIBE_LANGUAGE"),
        "speech_language": os.getenv("KIMO_SPEECH_LANGUAGE"),
        "database_dir": os.getenv("DATABASE_DIR"),
        "log_level": os.getenv("KIMO_LOG_LEVEL"),
    }
    values = {key: value for key, value in overrides.items() if value}

    try:
        return Settings(api_key=api_key, **values)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
