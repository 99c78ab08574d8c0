"""
Service settings.

Every field can be overridden through an environment variable with the
``HUB_AGENT_`` prefix, e.g. ``HUB_AGENT_AGENT_TIMEOUT_SECONDS=30``, or from a
``.env`` file. ``HUB_AGENT_CORS_ORIGINS`` takes comma-separated values.
Langfuse's own ``LANGFUSE_*`` variables are honoured as well.
"""

from typing import Annotated, Any, List, Optional
from functools import lru_cache
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the agent service"""

    model_config = SettingsConfigDict(
        env_prefix="HUB_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    service_name: str = "hub-agent"
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("HUB_AGENT_ENVIRONMENT", "ENVIRONMENT")
    )
    log_level: str = "INFO"
    log_format: str = "json"

    # Models
    chat_model: str = "gpt-4o"
    chat_temperature: float = 0.2
    creative_model: str = "gpt-4o"
    creative_temperature: float = 0.7
    embedding_model: str = "text-embedding-3-small"

    # Turn limits
    agent_timeout_seconds: float = 60.0
    recursion_limit: int = 25

    # Context assembly
    guardrail_history_window: int = 4
    search_history_window: int = 4
    search_top_k: int = 5
    memory_max_messages: int = 100

    # HTTP
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Tracing
    langfuse_public_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUB_AGENT_LANGFUSE_PUBLIC_KEY", "LANGFUSE_PUBLIC_KEY")
    )
    langfuse_secret_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUB_AGENT_LANGFUSE_SECRET_KEY", "LANGFUSE_SECRET_KEY")
    )
    langfuse_host: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUB_AGENT_LANGFUSE_HOST", "LANGFUSE_HOST")
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def tracing_enabled(self) -> bool:
        """Langfuse is attached only when both keys are present"""
        return bool(self.langfuse_public_key and self.langfuse_secret_key)


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read once"""
    return Settings()
