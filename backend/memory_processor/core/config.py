from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MEMORY_PROMPT = """You are a memory processor. Turn the role-play transcript below into what the \
responding character actually remembers.

## Principles
1. Simulate the character's subjective memory, not an objective summary.
2. The character only remembers what they saw, heard, or felt.
3. The character cannot see the other speaker's inner thoughts.
4. Memories may carry emotion and bias; that is expected.

## Keep (perceivable by the character)
- Words the other speaker said aloud
- The other speaker's expressions, gestures, and physical reactions
- What the character did and felt
- Scenes, places, and the order of events

## Drop (not perceivable by the character)
- The other speaker's inner monologue or private reasoning
- Narration such as "she thought..." or "he secretly..."

## Output format
One short first-person memory fragment per line, oldest first.
- Write "I", never the character's role name
- Fragments, not paragraphs
- Keep the emotional colouring

Example:
- I remember she blushed
- After I said that she went quiet for a long time
- She flinched a little when I touched her hair"""


@dataclass(frozen=True)
class ProcessorConfig:
    """Per-cycle memory processor settings, read once at the start of a cycle."""

    enabled: bool
    api_url: Optional[str]
    api_key: Optional[str]
    model: str
    max_history_messages: int
    cache_threshold: int
    prompt: str
    auto_update: bool
    inject_to_store: bool
    record_tag: str
    max_tokens: int = 1024
    temperature: float = 0.3
    timeout_sec: float = 90


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="127.0.0.1", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    # NOTE: Keep as string to avoid pydantic-settings JSON-decoding complex types from .env.
    cors_origins: str = Field(
        default="http://127.0.0.1:5500,http://localhost:5500",
        alias="CORS_ORIGINS",
    )
    db_url: str = Field(
        default="sqlite+aiosqlite:///./memory_processor.db", alias="DB_URL"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    chat_system_prompt: str = Field(
        default=(
            "Continue the role-play in character. Stay consistent with what the "
            "character remembers.\n\nWhat the character remembers:\n{{processed_memory}}"
        ),
        alias="CHAT_SYSTEM_PROMPT",
    )
    chat_max_history: int = Field(default=20, ge=1, alias="CHAT_MAX_HISTORY")

    memory_enabled: bool = Field(default=True, alias="MEMORY_ENABLED")
    memory_api_url: str = Field(default="", alias="MEMORY_API_URL")
    memory_api_key: str = Field(default="", alias="MEMORY_API_KEY")
    memory_model: str = Field(default="gpt-4o-mini", alias="MEMORY_MODEL")
    memory_max_history_messages: int = Field(
        default=50, ge=1, alias="MEMORY_MAX_HISTORY_MESSAGES"
    )
    memory_cache_threshold: int = Field(default=2, ge=0, alias="MEMORY_CACHE_THRESHOLD")
    memory_prompt: str = Field(default=DEFAULT_MEMORY_PROMPT, alias="MEMORY_PROMPT")
    memory_auto_update: bool = Field(default=True, alias="MEMORY_AUTO_UPDATE")
    memory_inject_to_store: bool = Field(default=True, alias="MEMORY_INJECT_TO_STORE")
    memory_record_tag: str = Field(default="processed_memory", alias="MEMORY_RECORD_TAG")
    memory_max_tokens: int = Field(default=1024, ge=1, alias="MEMORY_MAX_TOKENS")
    memory_temperature: float = Field(default=0.3, ge=0.0, le=2.0, alias="MEMORY_TEMPERATURE")
    memory_timeout_sec: float = Field(default=90, gt=0, alias="MEMORY_TIMEOUT_SEC")

    model_config = SettingsConfigDict(env_file=(".env", "backend/.env"), extra="ignore")

    def parsed_cors_origins(self) -> List[str]:
        """Return CORS origins parsed from env var.

        Supports comma-delimited strings (recommended) and JSON list strings.
        """

        raw = (self.cors_origins or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                import json

                value: Any = json.loads(raw)
                if isinstance(value, list):
                    items = [str(item).strip() for item in value]
                    return [item for item in items if item]
            except ValueError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]

    def processor_config(self) -> ProcessorConfig:
        """Snapshot the memory processor fields into an immutable struct."""

        return ProcessorConfig(
            enabled=self.memory_enabled,
            api_url=self.memory_api_url.strip() or None,
            api_key=self.memory_api_key.strip() or None,
            model=self.memory_model,
            max_history_messages=self.memory_max_history_messages,
            cache_threshold=self.memory_cache_threshold,
            prompt=self.memory_prompt,
            auto_update=self.memory_auto_update,
            inject_to_store=self.memory_inject_to_store,
            record_tag=self.memory_record_tag,
            max_tokens=self.memory_max_tokens,
            temperature=self.memory_temperature,
            timeout_sec=self.memory_timeout_sec,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
