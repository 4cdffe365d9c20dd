"""Configuration loading for multistore."""

import os
import re
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from multistore.models import LoggingConfig, StorageConfig

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


class Settings(BaseSettings):
    """Process-level defaults loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="MULTISTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config: Path | None = None
    log_level: str = "INFO"
    log_format: str = "console"


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()


def load_config(config_path: str | Path | None = None) -> StorageConfig:
    """Load configuration from YAML file with environment variable substitution.

    When ``config_path`` is omitted, ``MULTISTORE_CONFIG`` is used. Without
    either, an empty configuration is returned (logging taken from
    ``MULTISTORE_LOG_LEVEL``/``MULTISTORE_LOG_FORMAT``), which selects the
    local backend in the system temp directory.

    Args:
        config_path: Path to the configuration YAML file

    Returns:
        Validated StorageConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    settings = get_settings()
    if config_path is None:
        config_path = settings.config
    if config_path is None:
        return StorageConfig(
            logging=LoggingConfig(level=settings.log_level, format=settings.log_format)
        )

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    text = _substitute_env_vars(path.read_text())
    config_data = yaml.safe_load(text) or {}
    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    return StorageConfig(**config_data)


def _substitute_env_vars(text: str) -> str:
    """Substitute ${VAR_NAME} with environment variable values.

    Unset or empty variables are left as written.
    """

    def replace(match: re.Match[str]) -> str:
        value = os.environ.get(match.group(1), "")
        if not value:
            return match.group(0)
        return value

    return _ENV_PATTERN.sub(replace, text)


def get_default_config() -> dict:
    """Return default configuration as a dictionary.

    Used by ``multistore init-config`` to write a starter config.yaml.
    """
    return {
        "mode": "local",
        "local": {
            "base_path": "./storage",
        },
        "oss": {
            "endpoint": "oss-cn-hangzhou.aliyuncs.com",
            "access_key_id": "${OSS_ACCESS_KEY_ID}",
            "access_key_secret": "${OSS_ACCESS_KEY_SECRET}",
            "bucket": "my-bucket",
            "base_dir": "files",
        },
        "minio": {
            "endpoint": "localhost:9000",
            "access_key_id": "${MINIO_ACCESS_KEY}",
            "access_key_secret": "${MINIO_SECRET_KEY}",
            "use_ssl": False,
            "bucket": "my-bucket",
            "base_dir": "files",
        },
        "logging": {
            "level": "INFO",
            "format": "console",
        },
    }
