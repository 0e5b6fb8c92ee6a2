# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/dataverse/query.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ConditionExpression:
    """
    Single OData comparison, e.g. ``solutionid/uniquename eq 'Core'``.

    attribute may be a navigation path; operator is an OData comparison
    operator (eq, ne, gt, ge, lt, le).
    """
    attribute: str
    operator: str
    value: Any

    def to_odata(self) -> str:
        return f"{self.attribute} {self.operator} {_literal(self.value)}"


@dataclass(frozen=True)
class QueryExpression:
    entity_name: str
    columns: List[str] = field(default_factory=list)
    conditions: List[ConditionExpression] = field(default_factory=list)

    def to_params(self) -> Dict[str, str]:
        """Query-string parameters for a Web API collection request."""
        params: Dict[str, str] = {}
        if self.columns:
            params["$select"] = ",".join(self.columns)
        if self.conditions:
            params["$filter"] = " and ".join(c.to_odata() for c in self.conditions)
        return params


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    # OData escapes a single quote by doubling it
    text = str(value).replace("'", "''")
    return f"'{text}'"
