# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/dataverse/errors.py
from typing import Optional


class DataverseError(RuntimeError):
    """Base class for Dataverse Web API failures."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class DataverseAuthError(DataverseError):
    """Raised when an access token cannot be obtained."""
