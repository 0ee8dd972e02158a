"""
FeedPress Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import os
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsError

from ..utils.exceptions import ConfigurationError, ErrorCode


DEFAULT_TRACKER_PARAMS = (
    "ref",
    "fbclid",
    "gclid",
    "mc_eid",
    "mc_cid",
    "igshid",
    "spm",
    "xtor",
    "mkt_tok",
    "yclid",
    "vero_id",
)


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SelectionSettings(BaseModel):
    """Body and lead selection thresholds."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    dedupe_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Lead is omitted when its similarity to the body reaches this ratio"
    )
    substantial_length: int = Field(
        default=300,
        ge=0,
        description="Candidates longer than this many characters are substantial"
    )
    substantial_paragraphs: int = Field(
        default=2,
        ge=1,
        description="Candidates with at least this many paragraphs are substantial"
    )
    body_limit_kb: int = Field(
        default=150,
        ge=1,
        le=10240,
        description="Maximum body size in KiB (characters) before block-aware truncation"
    )
    lead_text_limit: int = Field(
        default=400,
        ge=1,
        le=10000,
        description="Maximum visible characters kept in the lead"
    )

    @property
    def body_limit_chars(self) -> int:
        return self.body_limit_kb * 1024


class AssemblySettings(BaseModel):
    """Article assembly options."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    keep_embeds: bool = Field(default=False, description="Keep iframes from allow-listed hosts")
    allowed_iframe_hosts: List[str] = Field(
        default_factory=list,
        description="Hostnames whose iframes survive when keep_embeds is enabled"
    )
    inject_top_image: bool = Field(default=True, description="Insert the hero image above the body")
    excerpt_max_chars: int = Field(
        default=220,
        ge=1,
        le=5000,
        description="Maximum excerpt length before the ellipsis"
    )
    max_html_kb: float = Field(
        default=150,
        ge=0.1,
        alias="maxHtmlKB",
        description="Maximum article HTML size in KiB (UTF-8 bytes)"
    )
    strip_known_boilerplates: bool = Field(
        default=True,
        description="Drop known promotional blocks and 'read more' paragraphs"
    )
    tracker_params_remove_list: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TRACKER_PARAMS),
        description="Query parameters stripped from links in addition to utm_*"
    )

    @field_validator('allowed_iframe_hosts', mode='before')
    @classmethod
    def normalize_hosts(cls, v):
        """Trim and lower-case host names, dropping blanks."""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [host.strip().lower() for host in v if isinstance(host, str) and host.strip()]

    @field_validator('tracker_params_remove_list', mode='before')
    @classmethod
    def normalize_tracker_params(cls, v):
        """Lower-case parameter names; an empty list means the defaults."""
        if v is None:
            return list(DEFAULT_TRACKER_PARAMS)
        if isinstance(v, str):
            v = v.split(",")
        cleaned = []
        for name in v:
            if isinstance(name, str) and name.strip():
                lowered = name.strip().lower()
                if lowered not in cleaned:
                    cleaned.append(lowered)
        return cleaned or list(DEFAULT_TRACKER_PARAMS)

    @property
    def max_html_bytes(self) -> int:
        return int(self.max_html_kb * 1024)


class DiagnosticsSettings(BaseModel):
    """In-memory ingestion diagnostics configuration."""
    enabled: bool = Field(default=True, description="Record per-article ingestion diagnostics")
    max_entries: int = Field(default=200, ge=1, le=10000, description="Entries kept before eviction")
    preview_length: int = Field(default=300, ge=0, le=5000, description="Characters kept in HTML previews")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedpress.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedPressSettings(BaseSettings):
    """Main application settings."""

    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    assembly: AssemblySettings = Field(default_factory=AssemblySettings)
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedPress", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDPRESS_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        if self.assembly.keep_embeds and not self.assembly.allowed_iframe_hosts:
            errors.append("keep_embeds is enabled but allowed_iframe_hosts is empty")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def is_production_mode(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and os.getenv("ENV", "development").lower() == "production"

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedPressSettings:
    """Load settings from environment variables and defaults.

    Environment variables override Pydantic Field defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = FeedPressSettings()
    except (ValidationError, SettingsError) as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e

    settings.validate_configuration()
    return settings


# Global settings instance
_settings: Optional[FeedPressSettings] = None


def get_settings(reload: bool = False) -> FeedPressSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
