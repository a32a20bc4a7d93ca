"""Configuration management for the storefront core."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ECommerceStorefront.exceptions import ConfigurationError
from ECommerceStorefront.repository import CART_STORAGE_KEY, DISCOUNT_STORAGE_KEY, PRODUCTS_STORAGE_KEY

DEFAULT_CONFIG_FILE = "storefront.toml"


class ApiConfig(BaseModel):
    base_url: str = Field(default="http://localhost:3001", description="Storefront API root")
    timeout: float = Field(default=10.0, gt=0)


class StorageConfig(BaseModel):
    directory: Optional[str] = Field(
        default=".storefront", description="Durable storage directory; None keeps state in memory only"
    )
    products_key: str = PRODUCTS_STORAGE_KEY
    cart_key: str = CART_STORAGE_KEY
    discount_key: str = DISCOUNT_STORAGE_KEY


class CatalogConfig(BaseModel):
    poll_interval_seconds: float = Field(default=5.0, gt=0)


class CheckoutConfig(BaseModel):
    confirmation_delay_seconds: float = Field(default=3.0, ge=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "logs/storefront.log"
    max_size: int = Field(default=1048576, gt=0)
    backup_count: int = Field(default=3, ge=0)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class StorefrontConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into base recursively."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open() as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigurationError(f"Failed to load {path}: {e}") from e


def load_from_env() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    if url := os.getenv("STOREFRONT_API_URL"):
        config.setdefault("api", {})["base_url"] = url

    if directory := os.getenv("STOREFRONT_STORAGE_DIR"):
        config.setdefault("storage", {})["directory"] = directory

    if interval := os.getenv("STOREFRONT_POLL_INTERVAL"):
        config.setdefault("catalog", {})["poll_interval_seconds"] = interval

    if level := os.getenv("STOREFRONT_LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level.upper()

    return config


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> StorefrontConfig:
    """Build the configuration with priority: overrides > ENV > file > defaults.

    A missing default file is fine; a missing file that was asked for explicitly is not.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        data = load_toml(config_path)
    elif Path(DEFAULT_CONFIG_FILE).exists():
        data = load_toml(Path(DEFAULT_CONFIG_FILE))

    data = deep_merge(data, load_from_env())
    data = deep_merge(data, overrides or {})
    try:
        return StorefrontConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
