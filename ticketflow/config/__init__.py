"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Also holds the canonical ticket vocabulary (status, severity, priority)
shared by every layer.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ticketflow.core import ValidationException


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticketflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/tickets",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Text extraction (OpenAI compatible) ==========
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for the text extraction model; extraction is disabled when unset"
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Endpoint of an OpenAI compatible API (defaults to api.openai.com)"
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model used to extract structured drafts"
    )
    llm_temperature: float = Field(
        default=0.2,
        description="Sampling temperature for extraction",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=600,
        description="Max tokens for the extraction response",
        ge=1,
        le=8000
    )
    llm_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single extraction call",
        gt=0,
        le=120
    )
    mock_llm: bool = Field(
        default=False,
        description="Use canned extraction responses (no API calls)"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:4200", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses. The only spellings ever persisted."""
    OPEN = "open"
    PENDING_INFO = "pending_info"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Severity(str, Enum):
    """Severity assigned by the triage debate."""
    S1 = "S1"
    S2 = "S2"
    S3 = "S3"


class Priority(str, Enum):
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketPrefix(str, Enum):
    """Human-facing ticket number prefixes."""
    INCIDENT = "INC"
    TASK = "TSK"


# Spellings seen in older data and other clients
_STATUS_ALIASES = {
    "pending_approval": TicketStatus.PENDING_INFO,
    "awaiting_approval": TicketStatus.PENDING_INFO,
    "pending": TicketStatus.PENDING_INFO,
    "triaged": TicketStatus.PENDING_INFO,
    "new": TicketStatus.OPEN,
    "closed": TicketStatus.RESOLVED,
    "done": TicketStatus.RESOLVED,
}


def normalize_status(value) -> TicketStatus:
    """
    Map any accepted status spelling onto the canonical TicketStatus.

    Args:
        value: A TicketStatus or a string such as "Pending-Approval"

    Returns:
        TicketStatus: Canonical status

    Raises:
        ValidationException: If the value is not a known status
    """
    if isinstance(value, TicketStatus):
        return value

    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return TicketStatus(key)
    except ValueError:
        pass

    if key in _STATUS_ALIASES:
        return _STATUS_ALIASES[key]

    raise ValidationException(
        f"Unknown ticket status '{value}'",
        {"allowed": [s.value for s in TicketStatus]}
    )
