"""Settings and configuration management."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, PrivateAttr, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from csbot.errors import ConfigError

logger = logging.getLogger(__name__)

# Regex for ${ENV_VAR} placeholders in YAML values
_ENV_VAR_PLACEHOLDER_RE = re.compile(r"^\$\{[A-Z_][A-Z0-9_]*\}$")

# YAML config search paths (checked in order, first found wins)
_YAML_SEARCH_PATHS = [
    Path("csbot.yaml"),
    Path("config/csbot.yaml"),
    Path.home() / ".config" / "csbot" / "csbot.yaml",
]

_LOG_LEVELS = ("debug", "info", "warn", "warning", "error", "critical")


def _find_yaml_config() -> Path | None:
    """Find the first csbot.yaml in search paths."""
    for path in _YAML_SEARCH_PATHS:
        if path.is_file():
            return path
    return None


def _strip_placeholders(data: Any) -> Any:
    """Drop unresolved ${VAR} placeholders so field defaults apply."""
    if isinstance(data, dict):
        return {
            key: _strip_placeholders(value)
            for key, value in data.items()
            if not (isinstance(value, str) and _ENV_VAR_PLACEHOLDER_RE.match(value))
        }
    return data


def _deep_merge(base: dict, updates: dict) -> dict:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ServerSettings(BaseModel):
    """Team server REST API endpoint and operator credentials."""

    host: str = Field("", description="Team server host")
    port: int = Field(50443, ge=1, le=65535, description="REST API port")
    username: str = Field("", description="Operator username")
    password: SecretStr = Field(SecretStr(""), description="Operator password")
    insecure: bool = Field(False, description="Skip TLS certificate verification")
    proxy: str | None = Field(None, description="HTTP(S) proxy URL")

    @property
    def url(self) -> str:
        return f"https://{self.host}:{self.port}"


class LoggingSettings(BaseModel):
    level: str = Field("info", description="debug, info, warn, error")
    format: Literal["text", "json"] = Field("text", description="Log format")
    file: Path | None = Field(None, description="Also append logs to this file")
    sanitize: bool = Field(True, description="Redact passwords and tokens from logs")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        if value.lower() not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(_LOG_LEVELS)}")
        return value.lower()


class TimeoutSettings(BaseModel):
    http_timeout: float = Field(30.0, gt=0, description="Per-request HTTP timeout (seconds)")
    task_timeout: float = Field(300.0, gt=0, description="Per-action timeout (seconds)")


class EngineSettings(BaseModel):
    max_depth: int = Field(32, ge=1, description="Deepest allowed branch nesting")


class Settings(BaseSettings):
    """Application settings.

    Priority chain: init kwargs > env vars > .env file > csbot.yaml > defaults

    Environment variables use the ``CSBOT_`` prefix and ``__`` for nesting,
    e.g. ``CSBOT_SERVER__HOST`` or ``CSBOT_TIMEOUTS__TASK_TIMEOUT``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CSBOT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    _config_source: Path | None = PrivateAttr(default=None)

    @classmethod
    def _resolve_yaml_path(cls) -> Path | None:
        # load_settings() pins an explicit file through model_config
        explicit = cls.model_config.get("yaml_file")
        return Path(explicit) if explicit else _find_yaml_config()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init kwargs > env vars > .env file > YAML file > file secrets > defaults"""
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        yaml_path = cls._resolve_yaml_path()
        if yaml_path:
            sources.append(
                YamlConfigSettingsSource(
                    settings_cls,
                    yaml_file=yaml_path,
                    yaml_file_encoding="utf-8",
                )
            )

        sources.append(file_secret_settings)
        return tuple(sources)

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_var_placeholders(cls, data: Any) -> Any:
        """Strip unresolved ${VAR} placeholders so they become defaults.

        YAML files may carry ``password: ${CS_PASSWORD}``; when the variable is
        not set the raw placeholder would otherwise become the password.
        """
        return _strip_placeholders(data)

    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    client_factory: str | None = Field(
        None,
        description="Remote client factory as 'package.module:callable'",
    )

    def model_post_init(self, __context: Any) -> None:
        self._config_source = type(self)._resolve_yaml_path()

    @property
    def config_source(self) -> Path | None:
        """YAML file the settings were read from, if any."""
        return self._config_source

    def validate_for_run(self) -> None:
        """Check everything a live run needs.

        Raises:
            ConfigError: Listing every missing or invalid value
        """
        problems = []
        if not self.server.host:
            problems.append("server.host is required (CSBOT_SERVER__HOST)")
        if not self.server.username:
            problems.append("server.username is required (CSBOT_SERVER__USERNAME)")
        if not self.server.password.get_secret_value():
            problems.append("server.password is required (CSBOT_SERVER__PASSWORD)")
        if self.server.proxy and not re.match(r"^(https?|socks5h?)://", self.server.proxy):
            problems.append(f"server.proxy is not a valid proxy URL: {self.server.proxy}")
        if problems:
            raise ConfigError(
                "Invalid configuration:\n" + "\n".join(f"  - {p}" for p in problems),
                problems,
            )


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Build settings from an optional explicit YAML file plus overrides.

    Args:
        config_file: YAML file to read instead of the csbot.yaml search paths
        **overrides: Highest-priority values; nested sections may be partial
            dicts, e.g. ``server={"host": "10.0.0.5"}``

    Raises:
        ConfigError: If the file is missing or a value fails validation
    """
    settings_cls = Settings
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        settings_cls = type(
            "FileSettings",
            (Settings,),
            {"model_config": {**Settings.model_config, "yaml_file": path}},
        )

    try:
        # Partial sections are merged over what the other sources provide
        if any(isinstance(value, dict) for value in overrides.values()):
            base = settings_cls().model_dump()
            overrides = _deep_merge(
                {key: base[key] for key in overrides if isinstance(overrides[key], dict)},
                overrides,
            )
        settings = settings_cls(**overrides)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    if settings.config_source:
        logger.debug(f"Loaded configuration from {settings.config_source}")
    return settings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
