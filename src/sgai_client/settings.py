"""
Settings Management Module

Provides pydantic-based configuration management with:
- YAML configuration file loading
- Environment-specific YAML overrides (config.{environment}.yaml)
- Environment variable overrides (SGAI_*, nested with "__")
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class EngineSettings(BaseModel):
    """Engine configuration as it appears in settings files."""

    stream_url: str = ""
    event_sink_url: str = ""
    tracking_base_url: str | None = None

    manifest_poll_interval_ms: int = 15_000
    heartbeat_interval_ms: int = 30_000
    quartile_poll_interval_ms: int = 250

    content_title: str | None = None
    is_live: bool = True
    device_type: str = "Python SGAI player"

    host_rewrites: dict[str, str] = Field(default_factory=dict)
    pixel_user_agent: str = "SGAI-Python-Player/1.0"
    played_break_history: int = 64
    shutdown_grace_sec: float = 2.0


class Settings(BaseSettings):
    """
    Main application settings with multi-environment support.

    Configuration hierarchy (lowest to highest precedence):
    1. settings/config.yaml (base)
    2. settings/config.{environment}.yaml (environment-specific)
    3. Environment variables (SGAI_*)

    Examples:
        Load settings:
        >>> settings = get_settings()
        >>> settings.engine.manifest_poll_interval_ms
        15000

        Override from the environment:
        $ SGAI_ENGINE__STREAM_URL=https://example.com/master.m3u8 python app.py
    """

    model_config = SettingsConfigDict(
        env_prefix="SGAI_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="allow",
    )

    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    engine: EngineSettings = Field(default_factory=EngineSettings)

    # Flat or per-kind ("main", "tracking") httpx client options
    http: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values passed in from YAML
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def load_from_yaml(cls, config_path: Path | None = None) -> "Settings":
        """
        Load settings from YAML configuration file.

        Args:
            config_path: Path to config file (default: settings/config.yaml)

        Returns:
            Settings instance
        """
        if config_path is None:
            # settings.py lives in src/sgai_client/, project root is two levels up
            project_root = Path(__file__).resolve().parents[2]
            config_path = project_root / "settings" / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        env = os.getenv("SGAI_ENVIRONMENT", config_data.get("environment", "development"))
        env_config_path = config_path.parent / f"config.{env}.yaml"

        if env_config_path.exists():
            with open(env_config_path) as f:
                env_config = yaml.safe_load(f) or {}
                config_data = cls._deep_merge(config_data, env_config)

        return cls(**config_data)

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = Settings._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


@lru_cache
def get_settings(config_path: Path | None = None) -> Settings:
    """
    Get cached settings instance.

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance
    """
    return Settings.load_from_yaml(config_path)


def reload_settings() -> Settings:
    """Reload settings by clearing cache."""
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "Settings",
    "EngineSettings",
    "get_settings",
    "reload_settings",
]
