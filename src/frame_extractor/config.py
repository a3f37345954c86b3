"""
frame_extractor Configuration
=============================

This module handles configuration loading for the frame extractor.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    EXTRACT_FILENAME_FORMAT -> extractor.filename_format
    EXTRACT_SEC_PER_FRAME   -> extractor.sec_per_frame
    EXTRACT_KEY_LOCK        -> extractor.key_lock
    EXTRACT_OUTPUT_MODE     -> output.mode
    EXTRACT_STREAM_URL      -> stream.base_url
    EXTRACT_TRANSPORT       -> stream.transport
    EXTRACT_LOG_LEVEL       -> logging.level
    PORT                    -> server.port

Example:
    from frame_extractor.config import settings

    print(settings.extractor.filename_format)
    print(settings.extractor.sec_per_frame)
"""

import os
import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from frame_extractor.extractor.naming import validate_template
from frame_extractor.stream.topics import TRANSPORTS


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="extract-images", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class ExtractorConfig(BaseModel):
    """Frame admission and naming configuration."""

    filename_format: str = Field(
        default="frame%04i.jpg",
        description="Output filename template with one integer placeholder",
    )
    sec_per_frame: float = Field(
        default=0.1,
        ge=0,
        description="Minimum seconds between saved frames",
    )
    key_lock: bool = Field(
        default=False,
        description="Require an unlock message between saved frames",
    )

    @field_validator("filename_format")
    @classmethod
    def _check_template(cls, value: str) -> str:
        return validate_template(value)


class OutputConfig(BaseModel):
    """Persistence backend configuration."""

    mode: Literal["image", "video"] = Field(
        default="image",
        description="'image' writes one file per frame, 'video' appends to one file",
    )
    video_path: str = Field(
        default="video.avi",
        description="Output path in video mode",
    )
    video_fourcc: str = Field(
        default="MJPG",
        min_length=4,
        max_length=4,
        description="Codec four-character code in video mode",
    )


class StreamConfig(BaseModel):
    """Topic bridge connection configuration."""

    base_url: str = Field(
        default="ws://localhost:9090/topics",
        description="WebSocket URL prefix; topic names are appended",
    )
    namespace: str = Field(default="/", description="Namespace for relative topics")
    image_topic: str = Field(default="image", description="Image topic name")
    unlock_topic: str = Field(default="key_topic", description="Unlock topic name")
    transport: str = Field(
        default="raw",
        description="Image transport: 'raw' or 'compressed'",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )

    @field_validator("transport")
    @classmethod
    def _check_transport(cls, value: str) -> str:
        if value not in TRANSPORTS:
            raise ValueError(f"transport must be one of {TRANSPORTS}")
        return value


class ServerConfig(BaseModel):
    """Status server configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for frame_extractor.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    elif config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Extractor settings
    if env_fmt := os.environ.get("EXTRACT_FILENAME_FORMAT"):
        config_data.setdefault("extractor", {})["filename_format"] = env_fmt
    if env_spf := os.environ.get("EXTRACT_SEC_PER_FRAME"):
        config_data.setdefault("extractor", {})["sec_per_frame"] = float(env_spf)
    if env_lock := os.environ.get("EXTRACT_KEY_LOCK"):
        config_data.setdefault("extractor", {})["key_lock"] = _parse_bool(env_lock)

    # Output settings
    if env_mode := os.environ.get("EXTRACT_OUTPUT_MODE"):
        config_data.setdefault("output", {})["mode"] = env_mode

    # Stream settings
    if env_url := os.environ.get("EXTRACT_STREAM_URL"):
        config_data.setdefault("stream", {})["base_url"] = env_url
    if env_transport := os.environ.get("EXTRACT_TRANSPORT"):
        config_data.setdefault("stream", {})["transport"] = env_transport

    # Server settings
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("EXTRACT_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
