from pathlib import Path
import textwrap

import pytest

from plugin_activator.config import loader
from plugin_activator.config.loader import ConfigError, load_config
from plugin_activator.config.models import ConnectionParameters

BASE_ENV = {
    "CLIENT_ID": "11111111-2222-3333-4444-555555555555",
    "CLIENT_SECRET": "s3cret",
    "DYNAMICS_URL": "https://contoso.crm.dynamics.com/",
    "SOLUTION_UNIQUE_NAME": "ContosoCore",
}


@pytest.fixture(autouse=True)
def no_default_secrets(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(loader, "DEFAULT_SECRETS_FILE", tmp_path / "missing" / "secrets.yaml")


def test_load_config_from_environment():
    cfg = load_config(environ=dict(BASE_ENV))
    assert cfg.connection.client_id == BASE_ENV["CLIENT_ID"]
    assert cfg.connection.client_secret.get_secret_value() == "s3cret"
    assert cfg.connection.dynamics_url == "https://contoso.crm.dynamics.com"
    assert cfg.connection.tenant_id is None
    assert cfg.solution.solution_unique_name == "ContosoCore"
    assert cfg.solution.enable_plugin_steps is False


@pytest.mark.parametrize("value, expected", [("true", True), ("True", True), ("false", False), ("", False)])
def test_enable_plugin_steps_parsing(value, expected):
    cfg = load_config(environ={**BASE_ENV, "ENABLE_PLUGIN_STEPS": value})
    assert cfg.solution.enable_plugin_steps is expected


def test_invalid_boolean_is_config_error():
    with pytest.raises(ConfigError, match="enable_plugin_steps"):
        load_config(environ={**BASE_ENV, "ENABLE_PLUGIN_STEPS": "maybe"})


@pytest.mark.parametrize("value", [None, ""])
def test_missing_solution_name_is_config_error(value):
    env = dict(BASE_ENV)
    env.pop("SOLUTION_UNIQUE_NAME")
    if value is not None:
        env["SOLUTION_UNIQUE_NAME"] = value
    with pytest.raises(ConfigError, match="SOLUTION_UNIQUE_NAME must be provided"):
        load_config(environ=env)


def test_missing_credentials_is_config_error_without_leaking_secret():
    env = dict(BASE_ENV)
    env.pop("CLIENT_ID")
    with pytest.raises(ConfigError) as exc:
        load_config(environ=env)
    assert "client_id" in str(exc.value)
    assert "s3cret" not in str(exc.value)


def test_secrets_file_overrides_environment(monkeypatch, tmp_path: Path):
    f = tmp_path / "secrets.yaml"
    f.write_text(textwrap.dedent("""
        CLIENT_SECRET: ${VAULT_SECRET}
        SOLUTION_UNIQUE_NAME: FromFile
        ENABLE_PLUGIN_STEPS: true
        DYNAMICS_URL: ""
        UNRELATED: ignored
    """))
    monkeypatch.setenv("VAULT_SECRET", "from-vault")
    cfg = load_config(f, environ=dict(BASE_ENV))

    assert cfg.connection.client_secret.get_secret_value() == "from-vault"
    assert cfg.solution.solution_unique_name == "FromFile"
    assert cfg.solution.enable_plugin_steps is True
    # empty value in the file keeps the environment value
    assert cfg.connection.dynamics_url == "https://contoso.crm.dynamics.com"


def test_secrets_file_discovered_from_env_var(tmp_path: Path):
    f = tmp_path / "other.yaml"
    f.write_text("TENANT_ID: contoso.onmicrosoft.com\n")
    cfg = load_config(environ={**BASE_ENV, "PLUGIN_ACTIVATOR_SECRETS_FILE": str(f)})
    assert cfg.connection.tenant_id == "contoso.onmicrosoft.com"


def test_explicit_secrets_file_must_exist(tmp_path: Path):
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "nope.yaml", environ=dict(BASE_ENV))


def test_overrides_win_over_environment_and_file(tmp_path: Path):
    f = tmp_path / "secrets.yaml"
    f.write_text("SOLUTION_UNIQUE_NAME: FromFile\nENABLE_PLUGIN_STEPS: true\n")
    cfg = load_config(
        f,
        environ=dict(BASE_ENV),
        overrides={"SOLUTION_UNIQUE_NAME": "FromCli", "ENABLE_PLUGIN_STEPS": False},
    )
    assert cfg.solution.solution_unique_name == "FromCli"
    assert cfg.solution.enable_plugin_steps is False


def test_connection_string_format():
    params = ConnectionParameters(
        client_id="id",
        client_secret="hunter2",
        dynamics_url="https://org.crm.dynamics.com/",
    )
    assert params.connection_string == (
        "AuthType=ClientSecret;ClientId=id;ClientSecret=hunter2;url=https://org.crm.dynamics.com"
    )
    assert "hunter2" not in repr(params)
