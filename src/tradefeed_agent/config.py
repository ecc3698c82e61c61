"""
TradeFeedAgent Configuration
============================

This module handles configuration loading for the stream agent.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    TRADEFEED_STREAM_URL        -> stream.url
    TRADEFEED_BEARER_TOKEN      -> stream.bearer_token
    TRADEFEED_IDLE_TIMEOUT      -> stream.idle_timeout_seconds
    TRADEFEED_CONNECT_TIMEOUT   -> stream.connect_timeout_seconds
    TRADEFEED_MAX_QUEUE_SIZE    -> stream.max_queue_size
    TRADEFEED_AGENT_PORT        -> server.port
    TRADEFEED_LOG_LEVEL         -> logging.level
    TRADEFEED_LOG_FILE          -> logging.file_path
    PORT                        -> server.port (Cloud Run)

Example:
    from tradefeed_agent.config import settings

    print(settings.stream.url)
    print(settings.backoff.server_error_cap_seconds)
"""

import gzip
import os
import logging
import logging.handlers
import shutil
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from tradefeed_agent.backoff.policy import BackoffSettings


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Agent identification configuration."""

    name: str = Field(default="tradefeed-agent", description="Agent name")
    version: str = Field(default="v0.1.0", description="Agent version")


class StreamConfig(BaseModel):
    """Streaming endpoint configuration."""

    url: str = Field(
        default="https://api.twitter.com/labs/1/tweets/stream/filter?format=compact",
        description="Streaming endpoint URL",
    )
    bearer_token: str = Field(
        default="",
        repr=False,
        description="Pre-acquired bearer token sent with every attempt",
    )
    idle_timeout_seconds: float = Field(
        default=90.0,
        gt=0,
        description="Abort the connection after this long without any chunk",
    )
    connect_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport connect timeout",
    )
    max_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum records buffered for the event consumer",
    )
    drain_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Time allowed to deliver buffered records on shutdown",
    )
    min_reconnect_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum time between session starts when reconnecting without backoff",
    )


class BackoffConfig(BaseModel):
    """Reconnect backoff constants."""

    linear_step_seconds: float = Field(
        default=0.25,
        gt=0,
        description="Increment per transport timeout",
    )
    linear_cap_seconds: float = Field(
        default=16.0,
        gt=0,
        description="Cap for the transport timeout ramp",
    )
    not_modified_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Fixed delay after HTTP 304",
    )
    rate_limit_base_seconds: float = Field(
        default=60.0,
        gt=0,
        description="First delay after HTTP 420/429 (doubles, uncapped)",
    )
    server_error_base_seconds: float = Field(
        default=5.0,
        gt=0,
        description="First delay after HTTP 5xx (doubles)",
    )
    server_error_cap_seconds: float = Field(
        default=320.0,
        gt=0,
        description="Cap for the HTTP 5xx ramp",
    )

    def to_settings(self) -> BackoffSettings:
        """Build the policy constants."""
        return BackoffSettings(
            linear_step_sec=self.linear_step_seconds,
            linear_cap_sec=self.linear_cap_seconds,
            not_modified_delay_sec=self.not_modified_seconds,
            rate_limit_base_sec=self.rate_limit_base_seconds,
            server_error_base_sec=self.server_error_base_seconds,
            server_error_cap_sec=self.server_error_cap_seconds,
        )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    file_path: Optional[str] = Field(
        default=None,
        description="Hourly-rotated log file (None = console only)",
    )
    file_backup_count: int = Field(
        default=240,
        ge=1,
        description="Rotated files kept (240 hourly files = 10 days)",
    )
    file_max_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=0,
        description="Also roll over once the file reaches this size (0 = no size cap)",
    )
    file_compress: bool = Field(
        default=True,
        description="Gzip rotated files",
    )


class Settings(BaseModel):
    """
    Main settings class for TradeFeedAgent.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
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
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("TRADEFEED_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url
    if env_token := os.environ.get("TRADEFEED_BEARER_TOKEN"):
        config_data.setdefault("stream", {})["bearer_token"] = env_token
    if env_idle := os.environ.get("TRADEFEED_IDLE_TIMEOUT"):
        config_data.setdefault("stream", {})["idle_timeout_seconds"] = float(env_idle)
    if env_connect := os.environ.get("TRADEFEED_CONNECT_TIMEOUT"):
        config_data.setdefault("stream", {})["connect_timeout_seconds"] = float(env_connect)
    if env_queue := os.environ.get("TRADEFEED_MAX_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["max_queue_size"] = int(env_queue)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("TRADEFEED_AGENT_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("TRADEFEED_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_log_file := os.environ.get("TRADEFEED_LOG_FILE"):
        config_data.setdefault("logging", {})["file_path"] = env_log_file


# =============================================================================
# Logging
# =============================================================================

class HourlyRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """
    Hourly log rotation with a size cap and gzip-compressed archives.

    Rolls over at every hour boundary and whenever the current file would
    grow past `max_bytes`. Archives that would collide within one hour
    get a numeric suffix. Only the newest `backup_count` archives are kept.
    """

    def __init__(
        self,
        filename: str,
        max_bytes: int = 0,
        backup_count: int = 240,
        compress: bool = True,
    ) -> None:
        super().__init__(filename, when="H", backupCount=backup_count, delay=True)
        self.max_bytes = max_bytes
        self.compress = compress
        self.namer = self._archive_name
        if compress:
            self.rotator = self._gzip_rotate

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        if super().shouldRollover(record):
            return True
        if self.max_bytes <= 0:
            return False

        if self.stream is None:
            self.stream = self._open()
        message = f"{self.format(record)}{self.terminator}"
        self.stream.seek(0, os.SEEK_END)
        size = self.stream.tell()
        return size > 0 and size + len(message.encode()) > self.max_bytes

    def getFilesToDelete(self) -> list:
        directory, base = os.path.split(self.baseFilename)
        prefix = base + "."
        archives = [
            os.path.join(directory, name)
            for name in os.listdir(directory)
            if name.startswith(prefix)
        ]
        archives.sort(key=lambda path: (os.path.getmtime(path), path))
        excess = len(archives) - self.backupCount
        return archives[:excess] if excess > 0 else []

    def _archive_name(self, default_name: str) -> str:
        extension = ".gz" if self.compress else ""
        candidate = default_name + extension
        index = 1
        while os.path.exists(candidate):
            candidate = f"{default_name}.{index}{extension}"
            index += 1
        return candidate

    @staticmethod
    def _gzip_rotate(source: str, dest: str) -> None:
        if not os.path.exists(source):
            return
        with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst)
        os.remove(source)


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler()]
    if settings.logging.file_path:
        file_handler = HourlyRotatingFileHandler(
            settings.logging.file_path,
            max_bytes=settings.logging.file_max_bytes,
            backup_count=settings.logging.file_backup_count,
            compress=settings.logging.file_compress,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=handlers,
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
