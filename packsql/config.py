"""
Application Configuration

Pydantic-based settings management using environment variables.
Each concern gets its own prefixed settings group; the top-level
Settings object nests them and is cached for the process lifetime.

Usage:
    from packsql.config import get_settings

    settings = get_settings()
    print(settings.healing.max_retries)
    print(settings.slicing.ref_target_prefixes)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_GUARDRAILS = (
    "- If the user mentions a value such as a shipper, category or status by its text, "
    "join the lookup table and filter by its text column "
    "(for example ShipperId = (SELECT ShipperId FROM Shippers WHERE CompanyName = '...')).\n"
    "- Never compare an *Id column to a quoted string."
)


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    default_provider: Literal["openai", "anthropic"] = Field(
        default="openai", description="LLM provider used for SQL synthesis"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key",
        min_length=20,
    )
    openai_model: str = Field(default="gpt-4o", description="OpenAI model for SQL synthesis")

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Anthropic model for SQL synthesis"
    )

    # Common settings
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses (0.0 = deterministic)",
    )
    max_tokens: int = Field(
        default=1200,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v

    def api_key_for(self, provider: str | None = None) -> str | None:
        """Return the configured API key for a provider."""
        provider = provider or self.default_provider
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }.get(provider)


class DatabaseSettings(BaseSettings):
    """Target database configuration."""

    url: AnyUrl | None = Field(
        None,
        description="Target database connection URL (the database you query)",
    )
    schema_name: str = Field(
        default="public",
        description="Database schema introspected for slicing",
    )
    pool_size: int = Field(
        default=5,
        gt=0,
        le=20,
        description="Database connection pool size",
    )
    pool_timeout: int = Field(
        default=30,
        gt=0,
        description="Connection pool timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | AnyUrl | None) -> str | AnyUrl | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: AnyUrl | None) -> AnyUrl | None:
        """Validate supported database URL schemes."""
        if v is None:
            return v
        parsed = urlparse(str(v))
        scheme = parsed.scheme.split("+")[0].lower() if parsed.scheme else ""
        if scheme not in {"postgres", "postgresql"}:
            raise ValueError("DATABASE_URL must use the postgresql scheme.")
        if not parsed.hostname:
            raise ValueError("DATABASE_URL must include a host.")
        return v


class SlicingSettings(BaseSettings):
    """Schema partitioning configuration."""

    naming_rules_path: Path | None = Field(
        default=None,
        description="YAML file with ordered domain naming rules (None = built-in English rules)",
    )
    policies_path: Path | None = Field(
        default=None,
        description="YAML file with department policies for policy-based slicing",
    )
    ref_target_prefixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["cd", "df", "bs"],
        description="Table name prefixes that mark lookup/reference tables",
    )
    max_candidate_refs: int = Field(
        default=20,
        ge=0,
        description="Maximum candidate references kept per department pack",
    )
    max_ref_views: int = Field(
        default=10,
        ge=0,
        description="Maximum allowed reference views built per department pack",
    )
    merge_same_label: bool = Field(
        default=True,
        description="Merge graph components that receive the same domain label",
    )

    model_config = SettingsConfigDict(
        env_prefix="SLICING_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("ref_target_prefixes", mode="before")
    @classmethod
    def split_prefixes(cls, v):
        """Accept comma separated prefixes from the environment."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class HealingSettings(BaseSettings):
    """Self-healing synthesis loop configuration."""

    max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Refinement budget; at most max_retries + 1 validate/execute passes",
    )
    max_error_chars: int = Field(
        default=400,
        gt=0,
        description="Length of the execution error excerpt sent back to the LLM",
    )
    dialect: Literal["postgresql", "sqlserver"] = Field(
        default="postgresql",
        description="SQL dialect requested from the LLM and used for normalization",
    )
    guardrails: str = Field(
        default=DEFAULT_GUARDRAILS,
        description="Additional guardrail text appended to refinement prompts",
    )

    model_config = SettingsConfigDict(
        env_prefix="HEALING_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        API_HOST: API server host
        API_PORT: API server port
        SCHEMA_OUTPUT_DIR: Directory where sliced schemas are saved
        LLM_*: LLM provider configuration (see LLMSettings)
        DATABASE_*: Target database configuration (see DatabaseSettings)
        SLICING_*: Partitioning configuration (see SlicingSettings)
        HEALING_*: Synthesis loop configuration (see HealingSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.healing.max_retries
        2
        >>> settings.is_production
        False
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="PackSQL",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        gt=0,
        le=65535,
        description="API server port",
    )
    schema_output_dir: Path = Field(
        default=Path("sliced_schemas"),
        description="Directory where sliced schema documents are written",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    slicing: SlicingSettings = Field(default_factory=SlicingSettings)
    healing: HealingSettings = Field(default_factory=HealingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.default_provider,
                "max_retries": self.healing.max_retries,
                "dialect": self.healing.dialect,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("PACKSQL_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance

    Example:
        >>> from packsql.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.slicing.max_candidate_refs)
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
