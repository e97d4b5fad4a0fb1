"""Configuration management via environment variables."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .exceptions import ConfigError

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


@dataclass
class Config:
    """Application configuration loaded from environment."""

    gemini_api_key: str | None = None
    gemini_base_url: str = GEMINI_OPENAI_BASE_URL
    gemini_model: str = "gemini-2.5-flash"
    ollama_model: str = "llama3.1:8b"
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_bucket: str = "media"
    supabase_table: str = "sessions"
    batch_size: int = 15
    concurrency_limit: int = 1
    target_language: str = "zh"
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        load_dotenv()
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", GEMINI_OPENAI_BASE_URL),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            ollama_model=os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            supabase_bucket=os.getenv("SUPABASE_BUCKET", "media"),
            supabase_table=os.getenv("SUPABASE_TABLE", "sessions"),
            batch_size=_int_env("TRANSLATE_BATCH_SIZE", 15),
            concurrency_limit=_int_env("TRANSLATE_CONCURRENCY", 1),
            target_language=os.getenv("TARGET_LANGUAGE", "zh"),
            log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        )

    def has_gemini(self) -> bool:
        """Check if a Gemini API key is configured."""
        return bool(self.gemini_api_key)

    def has_supabase(self) -> bool:
        """Check if the Supabase project URL and key are configured."""
        return bool(self.supabase_url and self.supabase_key)
