"""
Configuration management for ShopBot.

Settings come from the process environment (and an optional .env file) and are exposed
as a frozen dataclass.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except Exception:
        return default
    return value if value >= 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except Exception:
        return default
    return value if value >= 0 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the chat pipeline."""

    api_key: Optional[str] = None
    base_url: str = "https://openrouter.ai/api/v1"
    chat_model: str = "openai/gpt-3.5-turbo"
    embedding_model: str = "text-embedding-ada-002"
    temperature: float = 0.0

    request_timeout_seconds: float = 15.0
    max_retries: int = 1
    retry_backoff_seconds: float = 0.4

    semantic_search: bool = True
    semantic_top_k: int = 5

    # Attribution headers OpenRouter shows on its dashboard
    app_referer: str = "https://github.com/ShopBot"
    app_title: str = "ShopBot"

    catalog_path: str = "data/products.json"
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
        return cls(
            api_key=(os.getenv("OPENROUTER_API_KEY") or "").strip() or None,
            base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            chat_model=os.getenv("SHOPBOT_CHAT_MODEL", "openai/gpt-3.5-turbo"),
            embedding_model=os.getenv("SHOPBOT_EMBED_MODEL", "text-embedding-ada-002"),
            request_timeout_seconds=_env_float("SHOPBOT_REQUEST_TIMEOUT_SECONDS", 15.0) or 15.0,
            max_retries=_env_int("SHOPBOT_MAX_RETRIES", 1),
            retry_backoff_seconds=_env_float("SHOPBOT_RETRY_BACKOFF_SECONDS", 0.4),
            semantic_search=_env_bool("SHOPBOT_SEMANTIC_SEARCH", True),
            semantic_top_k=_env_int("SHOPBOT_SEMANTIC_TOP_K", 5),
            app_referer=os.getenv("SHOPBOT_APP_REFERER", "https://github.com/ShopBot"),
            app_title=os.getenv("SHOPBOT_APP_TITLE", "ShopBot"),
            catalog_path=os.getenv("CATALOG_PATH", "data/products.json"),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
