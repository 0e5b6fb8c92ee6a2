# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/config/loader.py

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import ValidationError

from .models import ActivatorConfig

log = logging.getLogger("plugin_activator")

CONFIG_KEYS = (
    "CLIENT_ID",
    "CLIENT_SECRET",
    "DYNAMICS_URL",
    "TENANT_ID",
    "SOLUTION_UNIQUE_NAME",
    "ENABLE_PLUGIN_STEPS",
)

DEFAULT_SECRETS_FILE = Path.home() / ".plugin_activator" / "secrets.yaml"


class ConfigError(RuntimeError):
    """Raised when the activator configuration is missing or invalid."""


def _merge_non_empty(base: dict, override: dict) -> dict:
    """
    Merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if value not in (None, ""):
            base[key] = value
    return base


def _find_secrets_file(
    explicit: Optional[Path],
    environ: Mapping[str, str],
) -> Path | None:
    """
    Locate the secrets file using this priority:

    1. explicit path (``--secrets-file``), which must exist
    2. PLUGIN_ACTIVATOR_SECRETS_FILE environment variable
    3. ~/.plugin_activator/secrets.yaml
    """
    if explicit is not None:
        p = Path(explicit)
        if not p.is_file():
            raise ConfigError(f"Secrets file {p} does not exist")
        return p

    env = environ.get("PLUGIN_ACTIVATOR_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("PLUGIN_ACTIVATOR_SECRETS_FILE=%s does not exist - skipping", env)
        return None

    if DEFAULT_SECRETS_FILE.is_file():
        return DEFAULT_SECRETS_FILE

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Secrets file {path} must contain a mapping of keys to values")
    return data


def _format_validation_error(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in exc.errors(include_input=False)
    )


def load_config(
    secrets_file: str | Path | None = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, object]] = None,
) -> ActivatorConfig:
    """
    Load and validate the activator configuration.

    Values come from the process environment and, on top of that, from an
    optional secrets YAML file using the same flat keys::

        CLIENT_ID: 00000000-0000-0000-0000-000000000000
        CLIENT_SECRET: ${MY_VAULT_SECRET}
        DYNAMICS_URL: https://contoso.crm.dynamics.com
        SOLUTION_UNIQUE_NAME: ContosoCore
        ENABLE_PLUGIN_STEPS: false

    Empty values in the secrets file never override the environment.
    Non-empty *overrides* (from the command line) win over both.
    """
    environ = os.environ if environ is None else environ

    values: dict = {k: environ.get(k) for k in CONFIG_KEYS}

    path = _find_secrets_file(Path(secrets_file) if secrets_file else None, environ)
    if path:
        log.debug("Merging secrets from %s", path)
        secrets = _load_yaml(path)
        _merge_non_empty(values, {k: v for k, v in secrets.items() if k in CONFIG_KEYS})
    else:
        log.debug("No secrets file found - using environment only")

    if overrides:
        _merge_non_empty(values, {k: v for k, v in overrides.items() if k in CONFIG_KEYS})

    if not values.get("SOLUTION_UNIQUE_NAME"):
        raise ConfigError(
            "A parameter with the name SOLUTION_UNIQUE_NAME must be provided "
            "as an environment variable or in the secrets file."
        )

    def _str(key: str) -> Optional[str]:
        v = values.get(key)
        return None if v in (None, "") else str(v)

    enable = values.get("ENABLE_PLUGIN_STEPS")

    try:
        return ActivatorConfig.model_validate(
            {
                "connection": {
                    "client_id": _str("CLIENT_ID"),
                    "client_secret": _str("CLIENT_SECRET"),
                    "dynamics_url": _str("DYNAMICS_URL"),
                    "tenant_id": _str("TENANT_ID"),
                },
                "solution": {
                    "solution_unique_name": _str("SOLUTION_UNIQUE_NAME"),
                    "enable_plugin_steps": False if enable in (None, "") else enable,
                },
            }
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {_format_validation_error(exc)}") from exc
