"""
Configuration management for Keygate.

Handles loading, validation, and access to configuration settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, List
from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

logger = logging.getLogger(__name__)

DEV_COOKIE_SECRET = "keygate-development-cookie-secret"


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StoreType(str, Enum):
    """Supported record store types."""
    MEMORY = "memory"
    REDIS = "redis"


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    file: Optional[str] = None
    rotation_size: str = "10MB"
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'keygate.oauth.tokens': 'DEBUG'}"
    )


class StoreConfig(BaseModel):
    """Record store configuration."""
    type: StoreType = StoreType.MEMORY
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = "keygate:"


class CacheConfig(BaseModel):
    """Cache connection pinged by the health check."""
    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 1
    password: Optional[str] = None


class OAuthConfig(BaseModel):
    """Token lifetimes and credential policy, in seconds where applicable."""
    access_token_lifetime: int = Field(default=3600, gt=0)
    refresh_token_lifetime: int = Field(default=15_552_000, gt=0)
    auth_code_lifetime: int = Field(default=600, gt=0)
    min_password_length: int = Field(default=6, ge=1)
    password_hash_rounds: int = Field(default=12, ge=4, le=31)
    allowed_roles: Optional[List[str]] = None


class SessionConfig(BaseModel):
    """Signed session cookie configuration."""
    secret_key: str = DEV_COOKIE_SECRET
    cookie_name: str = "oauth2_server_session"
    path: str = "/"
    max_age: int = 3_600_000
    https_only: bool = False


class BootstrapScope(BaseModel):
    scope: str
    is_default: bool = False
    description: Optional[str] = None


class BootstrapClient(BaseModel):
    client_id: str
    client_secret: str
    redirect_url: str
    app_name: Optional[str] = None


class BootstrapUser(BaseModel):
    email: str
    password: str
    role: str = "user"


class BootstrapConfig(BaseModel):
    """Records seeded into the store at startup."""
    scopes: List[BootstrapScope] = Field(default_factory=list)
    clients: List[BootstrapClient] = Field(default_factory=list)
    users: List[BootstrapUser] = Field(default_factory=list)


class KeygateConfig(BaseModel):
    """Main Keygate configuration schema."""

    version: str = Field(default="0.1.0", description="Configuration version")

    server: ServerConfig = Field(default_factory=ServerConfig)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    store: StoreConfig = Field(default_factory=StoreConfig)

    cache: CacheConfig = Field(default_factory=CacheConfig)

    oauth: OAuthConfig = Field(default_factory=OAuthConfig)

    session: SessionConfig = Field(default_factory=SessionConfig)

    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        parts = v.split(".")
        if len(parts) != 3:
            raise ValueError("Version must be in format x.y.z")
        for part in parts:
            if not part.isdigit():
                raise ValueError("Version components must be numeric")
        return v

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Manages Keygate configuration loading and validation.

    Configuration precedence (highest to lowest):
    1. CLI arguments
    2. Environment variables (PORT, COOKIE_SECRET, KEYGATE_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    def __init__(self):
        self._config: Optional[KeygateConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        cli_overrides: Optional[Dict[str, Any]] = None
    ) -> KeygateConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            cli_overrides: Dictionary of CLI argument overrides

        Returns:
            Validated KeygateConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        logger.info("Loading Keygate configuration")

        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.info(f"Applied {len(env_config)} environment variable overrides")

        if cli_overrides:
            config_dict = self._merge_configs(config_dict, cli_overrides)
            logger.info(f"Applied {len(cli_overrides)} CLI argument overrides")

        try:
            self._config = KeygateConfig(**config_dict)
            logger.info("Configuration validated successfully")
            if self._config.session.secret_key == DEV_COOKIE_SECRET:
                logger.warning("Using the development cookie secret; set COOKIE_SECRET in production")
            self._log_configuration()
            return self._config
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        if port := os.getenv("PORT"):
            config.setdefault("server", {})["port"] = int(port)
        if host := os.getenv("KEYGATE_HOST"):
            config.setdefault("server", {})["host"] = host

        if log_level := os.getenv("KEYGATE_LOG_LEVEL"):
            config.setdefault("logging", {})["level"] = log_level.upper()
        if log_file := os.getenv("KEYGATE_LOG_FILE"):
            config.setdefault("logging", {})["file"] = log_file

        if cookie_secret := os.getenv("COOKIE_SECRET"):
            config.setdefault("session", {})["secret_key"] = cookie_secret

        if store_type := os.getenv("KEYGATE_STORE"):
            config.setdefault("store", {})["type"] = store_type
        if redis_host := os.getenv("KEYGATE_REDIS_HOST"):
            config.setdefault("store", {})["host"] = redis_host
            config.setdefault("cache", {})["host"] = redis_host
        if redis_port := os.getenv("KEYGATE_REDIS_PORT"):
            config.setdefault("store", {})["port"] = int(redis_port)
            config.setdefault("cache", {})["port"] = int(redis_port)
        if redis_password := os.getenv("KEYGATE_REDIS_PASSWORD"):
            config.setdefault("store", {})["password"] = redis_password
            config.setdefault("cache", {})["password"] = redis_password

        if cache_enabled := os.getenv("KEYGATE_CACHE_ENABLED"):
            config.setdefault("cache", {})["enabled"] = cache_enabled.lower() in ['true', '1', 'yes']

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _log_configuration(self) -> None:
        """Log the loaded configuration with secrets redacted."""
        if not self._config:
            return

        config_dict = self._config.model_dump()

        for section in ("store", "cache"):
            if config_dict[section].get("password"):
                config_dict[section]["password"] = "***REDACTED***"
        config_dict["session"]["secret_key"] = "***REDACTED***"
        for client in config_dict["bootstrap"]["clients"]:
            client["client_secret"] = "***REDACTED***"
        for user in config_dict["bootstrap"]["users"]:
            user["password"] = "***REDACTED***"

        logger.info(f"Active configuration: {json.dumps(config_dict, indent=2)}")

    def get_config(self) -> KeygateConfig:
        """
        Get the loaded configuration.

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> KeygateConfig:
        """Reload configuration from the same sources."""
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)
