"""
Tests for ConfigManager.
"""

import json

import pytest
import yaml
from pydantic import ValidationError

from keygate.core.config_manager import (
    DEV_COOKIE_SECRET,
    ConfigManager,
    KeygateConfig,
    LogLevel,
    OAuthConfig,
    StoreType,
)

ENV_VARS = [
    "PORT",
    "KEYGATE_HOST",
    "KEYGATE_LOG_LEVEL",
    "KEYGATE_LOG_FILE",
    "COOKIE_SECRET",
    "KEYGATE_STORE",
    "KEYGATE_REDIS_HOST",
    "KEYGATE_REDIS_PORT",
    "KEYGATE_REDIS_PASSWORD",
    "KEYGATE_CACHE_ENABLED",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_load_defaults(self):
        """Test loading default configuration."""
        config = ConfigManager().load()

        assert config.version == "0.1.0"
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.logging.level == LogLevel.INFO
        assert config.store.type == StoreType.MEMORY
        assert config.session.secret_key == DEV_COOKIE_SECRET
        assert config.oauth.access_token_lifetime == 3600
        assert config.oauth.refresh_token_lifetime == 15_552_000
        assert config.oauth.auth_code_lifetime == 600

    def test_load_from_yaml_file(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_file = tmp_path / "keygate.yaml"
        config_file.write_text(yaml.dump({
            "server": {"port": 9000},
            "oauth": {"access_token_lifetime": 120},
            "bootstrap": {
                "scopes": [{"scope": "read", "is_default": True}],
                "clients": [{
                    "client_id": "acme",
                    "client_secret": "s3cr3t",
                    "redirect_url": "https://acme.example/cb",
                }],
            },
        }))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.server.port == 9000
        assert config.oauth.access_token_lifetime == 120
        assert config.bootstrap.scopes[0].is_default is True
        assert config.bootstrap.clients[0].client_id == "acme"

    def test_load_from_json_file(self, tmp_path):
        """Test loading configuration from JSON file."""
        config_file = tmp_path / "keygate.json"
        config_file.write_text(json.dumps({"server": {"host": "localhost", "port": 7000}}))

        config = ConfigManager().load(config_file=str(config_file))

        assert config.server.host == "localhost"
        assert config.server.port == 7000

    def test_load_from_env_variables(self, monkeypatch):
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("PORT", "5000")
        monkeypatch.setenv("KEYGATE_HOST", "192.168.1.1")
        monkeypatch.setenv("KEYGATE_LOG_LEVEL", "warning")
        monkeypatch.setenv("COOKIE_SECRET", "not-the-default")
        monkeypatch.setenv("KEYGATE_STORE", "redis")
        monkeypatch.setenv("KEYGATE_REDIS_HOST", "redis.internal")
        monkeypatch.setenv("KEYGATE_CACHE_ENABLED", "true")

        config = ConfigManager().load()

        assert config.server.port == 5000
        assert config.server.host == "192.168.1.1"
        assert config.logging.level == LogLevel.WARNING
        assert config.session.secret_key == "not-the-default"
        assert config.store.type == StoreType.REDIS
        assert config.store.host == "redis.internal"
        assert config.cache.host == "redis.internal"
        assert config.cache.enabled is True

    def test_configuration_precedence(self, tmp_path, monkeypatch):
        """Test configuration precedence: CLI > ENV > FILE > DEFAULTS."""
        config_file = tmp_path / "keygate.yaml"
        config_file.write_text(yaml.dump({"server": {"host": "file-host", "port": 1111}}))
        monkeypatch.setenv("KEYGATE_HOST", "env-host")

        config = ConfigManager().load(
            config_file=str(config_file),
            cli_overrides={"server": {"port": 2222}},
        )

        assert config.server.port == 2222
        assert config.server.host == "env-host"

    def test_invalid_version_format(self):
        with pytest.raises(ValidationError) as exc_info:
            ConfigManager().load(cli_overrides={"version": "1.0"})

        assert "Version must be in format x.y.z" in str(exc_info.value)

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(config_file="/nonexistent/keygate.yaml")

    def test_unsupported_file_format(self, tmp_path):
        config_file = tmp_path / "keygate.txt"
        config_file.write_text("invalid config")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager().load(config_file=str(config_file))

        assert "Unsupported config file format" in str(exc_info.value)

    def test_get_config_before_load(self):
        with pytest.raises(RuntimeError) as exc_info:
            ConfigManager().get_config()

        assert "Configuration not loaded" in str(exc_info.value)

    def test_reload_configuration(self, tmp_path):
        """Test reloading configuration."""
        config_file = tmp_path / "keygate.yaml"
        config_file.write_text(yaml.dump({"server": {"port": 5555}}))

        manager = ConfigManager()
        assert manager.load(config_file=str(config_file)).server.port == 5555

        config_file.write_text(yaml.dump({"server": {"port": 6666}}))
        assert manager.reload().server.port == 6666

    def test_secrets_not_logged(self, caplog, monkeypatch):
        """Test that the active configuration is logged with secrets redacted."""
        monkeypatch.setenv("COOKIE_SECRET", "cookie-monster")
        with caplog.at_level("INFO", logger="keygate.core.config_manager"):
            ConfigManager().load(cli_overrides={
                "bootstrap": {"users": [{"email": "a@example.com", "password": "hunter22"}]},
            })

        assert "cookie-monster" not in caplog.text
        assert "hunter22" not in caplog.text
        assert "***REDACTED***" in caplog.text


class TestOAuthConfig:
    """Test suite for OAuthConfig model."""

    def test_lifetimes_must_be_positive(self):
        with pytest.raises(ValidationError):
            OAuthConfig(access_token_lifetime=0)

    def test_hash_rounds_bounded(self):
        with pytest.raises(ValidationError):
            OAuthConfig(password_hash_rounds=3)
        assert OAuthConfig(password_hash_rounds=4).password_hash_rounds == 4

    def test_role_gate_off_by_default(self):
        assert KeygateConfig().oauth.allowed_roles is None
