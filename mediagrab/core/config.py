"""Configuration management with YAML and environment variable support"""

import os
import tempfile
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class BaseConfigSection(BaseSettings):
    """Base class for all config sections with correct environment variable precedence.

    This class customizes the settings source priority to ensure that:
    1. Environment variables have highest priority
    2. Init kwargs (YAML data) have second priority
    3. Default values have lowest priority

    Sections are frozen: configuration is established once at startup and
    only read afterwards.
    """

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority: env vars > init kwargs > defaults."""
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


class ServerConfig(BaseConfigSection):
    """Server configuration"""

    host: str = (
        "0.0.0.0"  # nosec B104 - Intentional binding to all interfaces for containerized deployment
    )
    port: int = 8000

    model_config = SettingsConfigDict(env_prefix="APP_SERVER_", frozen=True)


class ExtractorConfig(BaseConfigSection):
    """Extractor tool (yt-dlp) configuration"""

    path: str = "yt-dlp"
    check_timeout: float = 10.0  # seconds
    stream_limit: int = 64 * 1024 * 1024  # max bytes per output line
    metadata_capture_lines: int = 100  # output lines kept per metadata run
    script_runtime_domains: List[str] = Field(
        default_factory=lambda: ["youtube.com", "youtu.be", "youtube-nocookie.com"]
    )

    model_config = SettingsConfigDict(env_prefix="APP_EXTRACTOR_", frozen=True)

    @field_validator("script_runtime_domains")
    @classmethod
    def normalize_domains(cls, v: List[str]) -> List[str]:
        return [d.strip().lower().lstrip(".") for d in v if d.strip()]

    @field_validator("metadata_capture_lines")
    @classmethod
    def validate_capture_lines(cls, v: int) -> int:
        if v < 1:
            raise ValueError("metadata_capture_lines must be at least 1")
        return v


class ScriptRuntimeConfig(BaseConfigSection):
    """JavaScript runtime passed to yt-dlp via --js-runtimes.

    An empty name disables the runtime entirely.
    """

    name: str = "node"
    path: Optional[str] = None
    min_version: int = 20

    model_config = SettingsConfigDict(env_prefix="APP_SCRIPT_RUNTIME_", frozen=True)

    @property
    def enabled(self) -> bool:
        return bool(self.name)

    @property
    def executable(self) -> str:
        return self.path or self.name

    @property
    def flag_value(self) -> str:
        """Value for --js-runtimes, e.g. "node" or "node:/usr/bin/node"."""
        if self.path:
            return f"{self.name}:{self.path}"
        return self.name


class TimeoutsConfig(BaseConfigSection):
    """Operation timeout configuration"""

    metadata: float = 120.0  # seconds
    download: float = 600.0

    model_config = SettingsConfigDict(env_prefix="APP_TIMEOUTS_", frozen=True)

    @field_validator("metadata", "download")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class FormatsConfig(BaseConfigSection):
    """Format listing policy"""

    max_formats: int = 10

    model_config = SettingsConfigDict(env_prefix="APP_FORMATS_", frozen=True)

    @field_validator("max_formats")
    @classmethod
    def validate_max_formats(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_formats must be at least 1")
        return v


class DownloadsConfig(BaseConfigSection):
    """Extractor download configuration"""

    video_format: str = "best[ext=mp4]/best"
    default_audio_format: str = "mp3"
    error_tail_lines: int = 20

    model_config = SettingsConfigDict(env_prefix="APP_DOWNLOADS_", frozen=True)


class DirectFetchConfig(BaseConfigSection):
    """Plain HTTP download configuration for direct media links"""

    extensions: List[str] = Field(default_factory=lambda: [".mp4", ".webm", ".mkv"])
    connect_timeout: float = 30.0
    read_timeout: float = 120.0
    chunk_size: int = 8192
    progress_interval: int = 1024 * 1024  # bytes between progress events
    user_agent: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="APP_DIRECT_FETCH_", frozen=True)

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            normalized.append(ext if ext.startswith(".") else f".{ext}")
        return normalized


class StorageConfig(BaseConfigSection):
    """Temporary file storage configuration"""

    temp_dir: str = Field(default_factory=tempfile.gettempdir)

    model_config = SettingsConfigDict(env_prefix="APP_STORAGE_", frozen=True)


class LoggingConfig(BaseConfigSection):
    """Logging configuration"""

    level: str = "INFO"
    format: str = "json"

    model_config = SettingsConfigDict(env_prefix="APP_LOGGING_", frozen=True)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return v_upper


class MonitoringConfig(BaseConfigSection):
    """Monitoring configuration"""

    metrics_enabled: bool = True

    model_config = SettingsConfigDict(env_prefix="APP_MONITORING_", frozen=True)


class Config(BaseSettings):
    """Main application configuration"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    script_runtime: ScriptRuntimeConfig = Field(default_factory=ScriptRuntimeConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    formats: FormatsConfig = Field(default_factory=FormatsConfig)
    downloads: DownloadsConfig = Field(default_factory=DownloadsConfig)
    direct_fetch: DirectFetchConfig = Field(default_factory=DirectFetchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="APP_", frozen=True)


class ConfigService:
    """Service for loading and managing configuration"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("APP_CONFIG_FILE", "config.yaml")
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from YAML file with environment variable overrides.

        Thanks to BaseConfigSection.settings_customise_sources(), environment variables
        automatically take precedence over YAML values, which in turn take precedence
        over defaults.
        """
        config_data: Dict[str, Any] = {}

        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data

        self._config = Config(
            server=ServerConfig(**config_data.get("server", {})),
            extractor=ExtractorConfig(**config_data.get("extractor", {})),
            script_runtime=ScriptRuntimeConfig(**config_data.get("script_runtime", {})),
            timeouts=TimeoutsConfig(**config_data.get("timeouts", {})),
            formats=FormatsConfig(**config_data.get("formats", {})),
            downloads=DownloadsConfig(**config_data.get("downloads", {})),
            direct_fetch=DirectFetchConfig(**config_data.get("direct_fetch", {})),
            storage=StorageConfig(**config_data.get("storage", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
            monitoring=MonitoringConfig(**config_data.get("monitoring", {})),
        )

        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")
        return self._config
