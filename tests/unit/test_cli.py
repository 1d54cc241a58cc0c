"""
Tests for the Keygate command-line interface.
"""

import yaml
from click.testing import CliRunner

from keygate import __version__
from keygate.cli import cli


def test_version():
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_create_scope():
    result = CliRunner().invoke(cli, ["create-scope", "read", "--default"])

    assert result.exit_code == 0
    assert "[OK] Scope 'read' (default: True)" in result.output


def test_create_client():
    result = CliRunner().invoke(
        cli,
        ["create-client", "Acme", "https://acme.example/cb", "--secret", "s3cr3t", "--scope", "read"],
    )

    assert result.exit_code == 0
    assert "[OK] Created client 'acme'" in result.output


def test_create_user_rejects_short_password(tmp_path):
    config_file = tmp_path / "keygate.yaml"
    config_file.write_text(yaml.dump({"oauth": {"password_hash_rounds": 4}}))

    result = CliRunner().invoke(
        cli,
        ["create-user", "alice@example.com", "--password", "abc", "--config", str(config_file)],
    )

    assert result.exit_code == 1
    assert "password must be at least 6 characters long" in result.output


def test_create_scope_rejects_whitespace():
    result = CliRunner().invoke(cli, ["create-scope", "Read Write"])

    assert result.exit_code == 1
    assert "[ERROR] invalid scope name 'Read Write'" in result.output


def test_create_client_rejects_relative_redirect():
    result = CliRunner().invoke(cli, ["create-client", "beta", "/cb", "--secret", "s3cr3t"])

    assert result.exit_code == 1
    assert "[ERROR] invalid redirect URI" in result.output
