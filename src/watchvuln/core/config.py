"""WatchVuln Configuration System.

Layered YAML configuration with Pydantic validation.
Supports system, environment, and runtime config layers with env var secrets.

Config Layer Priority (highest to lowest):
1. Runtime overrides (in-memory)
2. Environment config (<config dir>/{environment}.yaml)
3. System config (~/.watchvuln/config.yaml)
4. Defaults (defined in Pydantic models)

Environment variables prefixed with WATCHVULN_ fill any value the files
leave unset, with ``__`` separating nested keys (WATCHVULN_PUSH__TELEGRAM__TOKEN).

Usage:
    from watchvuln.core.config import create_settings

    settings = create_settings(environment="production")
    print(settings.task.cron_config)  # "0 */30 * * * *" (default)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchvuln.core.exceptions import ConfigurationError


DEFAULT_BASE_PATH = Path.home() / ".watchvuln"
DEFAULT_ENVIRONMENT = "development"


# =============================================================================
# Sub-configuration Models (nested sections)
# =============================================================================


class DatabaseConfig(BaseModel):
    """Record store configuration."""

    path: str = "~/.watchvuln/watchvuln.sqlite"
    echo: bool = False


class TaskConfig(BaseModel):
    """Pass scheduling configuration."""

    cron_config: str = "0 */30 * * * *"
    timezone: str = "Asia/Shanghai"
    bootstrap_volume: PositiveInt = 2
    steady_volume: PositiveInt = 1
    announce_startup: bool = True

    @field_validator("cron_config")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        """Accept 5-field crontab or 6-field (with seconds) expressions."""
        fields = v.split()
        if len(fields) not in (5, 6):
            raise ValueError(
                f"Invalid cron expression: {v!r}. Expected 5 or 6 fields."
            )
        return " ".join(fields)


class SourcesConfig(BaseModel):
    """Vulnerability source configuration."""

    enabled: List[str] = Field(default_factory=lambda: ["kev"])
    timeout: PositiveFloat = 30.0  # seconds, per source call


class TelegramConfig(BaseModel):
    """Telegram bot configuration."""

    token: Optional[SecretStr] = None
    chat_id: int = 0


class DingDingConfig(BaseModel):
    """DingTalk robot configuration."""

    access_token: Optional[SecretStr] = None
    secret_token: Optional[SecretStr] = None


class LarkConfig(BaseModel):
    """Lark/Feishu robot configuration."""

    access_token: Optional[SecretStr] = None
    secret_token: Optional[SecretStr] = None


class PushConfig(BaseModel):
    """Notification channel configuration."""

    timeout: PositiveFloat = 10.0  # seconds, per channel call
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    dingding: DingDingConfig = Field(default_factory=DingDingConfig)
    lark: LarkConfig = Field(default_factory=LarkConfig)


class EnrichmentConfig(BaseModel):
    """Proof-of-concept link enrichment configuration."""

    github_search: bool = False
    github_token: Optional[SecretStr] = None
    timeout: PositiveFloat = 15.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate renderer name."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v.lower()


# =============================================================================
# Main Settings
# =============================================================================


class Settings(BaseSettings):
    """Main settings class with layered configuration support.

    Loads configuration from:
    1. Environment and system config files (passed as init values)
    2. Environment variables (WATCHVULN_ prefix)
    3. Defaults defined in Pydantic models
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCHVULN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = DEFAULT_ENVIRONMENT
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    logging_config: LoggingConfig = Field(
        default_factory=LoggingConfig, alias="logging"
    )
    # Raise on malformed collaborator data instead of degrading.
    strict_contracts: bool = False

    @property
    def logging(self) -> LoggingConfig:
        """Alias for logging_config to match YAML key and common usage."""
        return self.logging_config


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def resolve_environment() -> str:
    """Resolve the environment name from APP_ENV, then NODE_ENV."""
    return os.environ.get("APP_ENV") or os.environ.get("NODE_ENV") or DEFAULT_ENVIRONMENT


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigurationError: If file cannot be read or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file not found: {path}",
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        )
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            config_path=str(path),
            message=f"Top level of {path} must be a mapping",
        )
    return content


def load_system_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load system configuration from YAML file.

    Args:
        path: Optional path to config file. Defaults to ~/.watchvuln/config.yaml.

    Returns:
        System configuration dictionary, empty if the default file is absent.
    """
    if path is None:
        path = DEFAULT_BASE_PATH / "config.yaml"
        if not path.exists():
            return {}

    return load_yaml_file(Path(path).expanduser())


def load_environment_config(environment: str, config_dir: Path) -> Dict[str, Any]:
    """Load environment-specific configuration.

    ``{environment}.local.yaml`` wins over ``{environment}.yaml`` so that
    untracked local files can shadow shared ones.

    Args:
        environment: Environment name (e.g. "production").
        config_dir: Directory holding environment files.

    Returns:
        Environment configuration dictionary, empty if no file exists.
    """
    config_dir = Path(config_dir).expanduser()
    for candidate in (
        config_dir / f"{environment}.local.yaml",
        config_dir / f"{environment}.yaml",
    ):
        if candidate.exists():
            return load_yaml_file(candidate)
    return {}


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones.

    Args:
        *configs: Configuration dictionaries to merge.

    Returns:
        Merged configuration dictionary.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def create_settings(
    system_config_path: Optional[Path] = None,
    environment: Optional[str] = None,
    config_dir: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Create a Settings instance with layered configuration.

    Called once at startup; the result is passed explicitly to the
    application builder.

    Args:
        system_config_path: Optional path to system config file.
        environment: Environment name. Defaults to APP_ENV or "development".
        config_dir: Directory with environment files. Defaults to the
            directory of the system config file.
        runtime_overrides: Optional runtime overrides dictionary.

    Returns:
        Configured Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    if system_config_path:
        config_base = Path(system_config_path).expanduser().parent
    else:
        config_base = DEFAULT_BASE_PATH

    # Secrets
    env_path = config_base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    environment = environment or resolve_environment()
    system_config = load_system_config(system_config_path)
    environment_config = load_environment_config(environment, config_dir or config_base)

    merged = merge_configs(system_config, environment_config, {"environment": environment})
    if runtime_overrides:
        merged = merge_configs(merged, runtime_overrides)

    try:
        return Settings(**merged)
    except Exception as e:
        raise ConfigurationError(
            config_path=str(system_config_path or DEFAULT_BASE_PATH / "config.yaml"),
            message=f"Configuration validation failed: {e}",
        ) from e
