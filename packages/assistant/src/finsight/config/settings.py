"""Configuration settings for the FinSight assistant."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM API Keys
    openai_api_key: SecretStr = Field(..., validation_alias="OPENAI_API_KEY")
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""), validation_alias="ANTHROPIC_API_KEY"
    )

    # Model selections
    llm_provider: Literal["openai", "claude"] = Field(
        default="openai", validation_alias="LLM_PROVIDER"
    )
    chat_model: str = Field(default="gpt-5", validation_alias="CHAT_MODEL")
    chat_fallback_model: str = Field(
        default="gpt-4o", validation_alias="CHAT_FALLBACK_MODEL"
    )
    claude_model: str = Field(
        default="claude-haiku-4-5", validation_alias="CLAUDE_MODEL"
    )

    # LLM parameters
    llm_max_tokens: int = Field(default=2000, validation_alias="LLM_MAX_TOKENS")
    llm_temperature: float = Field(default=0.7, validation_alias="LLM_TEMPERATURE")

    # Ledger service
    ledger_api_url: str = Field(
        default="http://localhost:8000", validation_alias="LEDGER_API_URL"
    )
    ledger_api_key: SecretStr = Field(
        default=SecretStr(""), validation_alias="LEDGER_API_KEY"
    )
    ledger_timeout: float = Field(default=30.0, validation_alias="LEDGER_TIMEOUT")
    ledger_max_retries: int = Field(default=3, validation_alias="LEDGER_MAX_RETRIES")

    # Chat API server
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8080, validation_alias="API_PORT")

    # Conversations & memory
    conversation_list_limit: int = Field(
        default=20, validation_alias="CONVERSATION_LIST_LIMIT"
    )
    memory_context_limit: int = Field(default=10, validation_alias="MEMORY_CONTEXT_LIMIT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
