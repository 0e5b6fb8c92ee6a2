# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/config/models.py

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from plugin_activator.dataverse.connection_string import format_connection_string


class ConnectionParameters(BaseModel):
    """Credentials and endpoint for a Dataverse environment."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    client_secret: SecretStr
    dynamics_url: str = Field(min_length=1)
    tenant_id: Optional[str] = None

    @field_validator("dynamics_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def connection_string(self) -> str:
        """
        The connection string to Dynamics 365 using client secret authentication.

        Values holding separators, quotes or edge whitespace are quoted.
        """
        parts = {
            "AuthType": "ClientSecret",
            "ClientId": self.client_id,
            "ClientSecret": self.client_secret.get_secret_value(),
            "url": self.dynamics_url,
        }
        if self.tenant_id:
            parts["TenantId"] = self.tenant_id
        return format_connection_string(**parts)


class SolutionTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    solution_unique_name: str = Field(min_length=1)
    enable_plugin_steps: bool = False


class ActivatorConfig(BaseModel):
    connection: ConnectionParameters
    solution: SolutionTarget
