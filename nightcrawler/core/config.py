"""
Configuration management for Nightcrawler using Pydantic settings.
"""

from typing import Optional
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; WOW64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/50.0.2661.94 Safari/537.36"
)


class ScanningConfig(BaseModel):
    """HTTP settings used for every scan and replay request."""

    request_timeout: float = Field(default=30.0, description="Per request timeout in seconds")
    verify_ssl: bool = Field(default=False)
    follow_redirects: bool = Field(default=True)
    max_redirects: int = Field(default=10)
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent of baselines synthesized from a URL"
    )
    proxy: Optional[str] = Field(default=None, description="Proxy URL, e.g. http://127.0.0.1:8080")

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v


class ReportingConfig(BaseModel):
    """Reporting system configuration."""

    default_format: str = Field(default="html")

    @field_validator("default_format")
    @classmethod
    def validate_format(cls, v):
        """Validate report format."""
        valid_formats = ["html", "json", "csv"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Report format must be one of: {valid_formats}")
        return v.lower()


class Config(BaseSettings):
    """Main configuration class for Nightcrawler.

    Values come from keyword arguments, ``NIGHTCRAWLER_*`` environment
    variables (nested with ``__``, e.g. ``NIGHTCRAWLER_SCANNING__PROXY``) and
    a ``.env`` file, in that order of precedence. The CLI builds one instance
    and passes it to every component.
    """

    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    scanning: ScanningConfig = Field(default_factory=ScanningConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    model_config = SettingsConfigDict(
        env_prefix="NIGHTCRAWLER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


def load_config(**overrides) -> Config:
    """Build a configuration from the environment plus explicit overrides."""
    return Config(**overrides)
