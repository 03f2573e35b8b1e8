from typing import Any, Dict, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    cors_origins: str = "*"

    typing_delay_seconds: float = 0.65

    commentary_enabled: bool = True
    commentary_model: str = "gpt-4o-mini"
    commentary_temperature: float = 0.9
    commentary_timeout_seconds: float = 4.0
    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.openai.com/v1"

    redis_url: str | None = None
    session_ttl_seconds: int = 1800  # 30 minutes

    # "<tool>.<field>" -> {rule attribute: value}, e.g.
    # {"credit_emi.rate": {"suspicious_above": 45}}
    threshold_overrides: Dict[str, Dict[str, Any]] = {}

    commentary_system_prompt: str = (
        "You are a friendly money buddy inside a chat-style calculator.\n\n"
        "You receive a short summary of what the user calculated and the "
        "headline number. Write ONE short reply (max 25 words) that reacts "
        "to the number.\n"
        " - Be warm and a little playful, 1-2 emojis max.\n"
        " - Never give personalised investment, tax or legal advice.\n"
        " - Never change or recompute the number you were given.\n"
        " - No quotation marks, no explanations before or after."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        env_map={
            "HOST": "host",
            "PORT": "port",
            "DEBUG": "debug",
            "LOG_LEVEL": "log_level",
            "CORS_ORIGINS": "cors_origins",
            "TYPING_DELAY_SECONDS": "typing_delay_seconds",
            "COMMENTARY_ENABLED": "commentary_enabled",
            "COMMENTARY_MODEL": "commentary_model",
            "COMMENTARY_TEMPERATURE": "commentary_temperature",
            "COMMENTARY_TIMEOUT_SECONDS": "commentary_timeout_seconds",
            "OPENAI_API_KEY": "openai_api_key",
            "OPENAI_BASE_URL": "openai_base_url",
            "REDIS_URL": "redis_url",
            "SESSION_TTL_SECONDS": "session_ttl_seconds",
            "THRESHOLD_OVERRIDES": "threshold_overrides",
            "COMMENTARY_SYSTEM_PROMPT": "commentary_system_prompt",
        },
        extra="allow",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
