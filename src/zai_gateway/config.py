"""Application configuration using Pydantic settings."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Upstream vendor
    upstream_url: str = Field(
        "https://chat.z.ai/api/chat/completions", alias="UPSTREAM_URL",
        description="chat.z.ai chat completions endpoint that requests are re-issued against.",
    )
    upstream_model_id: str = Field(
        "0727-360B-API", alias="UPSTREAM_MODEL_ID",
        description="Upstream model ID. Every client request is proxied to this model regardless of its `model` field.",
    )
    upstream_model_name: str = Field(
        "GLM-4.5", alias="UPSTREAM_MODEL_NAME",
        description="Human-readable upstream model name sent in the `model_item` block.",
    )
    upstream_timeout: float = Field(
        600.0, alias="UPSTREAM_TIMEOUT",
        description="HTTP timeout in seconds for upstream calls. Streams can run for minutes.",
    )

    # Authentication (fixed-key mode when both are set, pass-through otherwise)
    default_key: str = Field(
        "", alias="DEFAULT_KEY",
        description="API key clients must present in fixed-key mode. Empty = pass-through mode.",
    )
    upstream_token: str = Field(
        "", alias="UPSTREAM_TOKEN",
        description="chat.z.ai token used upstream in fixed-key mode. Empty = pass-through mode.",
    )

    # Response shaping
    debug_mode: bool = Field(
        False, alias="DEBUG_MODE",
        description="Emit per-frame debug events while transcoding.",
    )
    default_stream: bool = Field(
        True, alias="DEFAULT_STREAM",
        description="Streaming mode used when the client request omits `stream`.",
    )
    think_tags_mode: str = Field(
        "strip", alias="THINK_TAGS_MODE",
        description="Normalization mode for thinking markup. Only `strip` renders thinking as tool_calls correctly.",
    )

    # Server
    host: str = Field(
        "0.0.0.0", alias="HOST",
        description="Host address to bind the aiohttp server to.",
    )
    port: int = Field(
        8080, alias="PORT",
        description="Port number for the aiohttp server.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )

    @property
    def fixed_key_mode(self) -> bool:
        """True when clients must present DEFAULT_KEY and UPSTREAM_TOKEN is used upstream."""
        return bool(self.default_key and self.upstream_token)


@dataclass(frozen=True, slots=True)
class TranscodeOptions:
    """Per-request options handed to the stream transcoder."""

    debug_logging_enabled: bool = False
    normalization_mode: str = "strip"
    model: str = ""

    @classmethod
    def from_settings(cls, settings: Settings, model: str | None = None) -> TranscodeOptions:
        return cls(
            debug_logging_enabled=settings.debug_mode,
            normalization_mode=settings.think_tags_mode,
            model=model or "",
        )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
