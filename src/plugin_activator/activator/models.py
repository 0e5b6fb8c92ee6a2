# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/activator/models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple
from uuid import UUID


class SolutionComponentFields:
    ENTITY_NAME = "solutioncomponent"
    COMPONENT_TYPE = "componenttype"
    OBJECT_ID = "objectid"
    SOLUTION_ID = "_solutionid_value"
    SOLUTION_UNIQUE_NAME = "solutionid/uniquename"


class PluginStepFields:
    ENTITY_NAME = "sdkmessageprocessingstep"


# componenttype choice for an SDK Message Processing Step (plugin step)
PLUGIN_STEP_COMPONENT_TYPE = 92

# sdkmessageprocessingstep statecode / statuscode choices
ENABLED_STATE = (0, 1)
DISABLED_STATE = (1, 2)


@dataclass(frozen=True)
class SolutionComponent:
    component_type: Optional[int]
    object_id: Optional[str]
    solution_id: Optional[str]

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SolutionComponent":
        ctype = record.get(SolutionComponentFields.COMPONENT_TYPE)
        # bool is an int subclass; neither it nor a formatted string is a choice value
        if not isinstance(ctype, int) or isinstance(ctype, bool):
            ctype = None

        oid = record.get(SolutionComponentFields.OBJECT_ID)
        sid = record.get(SolutionComponentFields.SOLUTION_ID)
        return cls(
            component_type=ctype,
            object_id=None if oid is None else str(oid),
            solution_id=None if sid is None else str(sid),
        )

    @property
    def is_plugin_step(self) -> bool:
        return self.component_type == PLUGIN_STEP_COMPONENT_TYPE

    def step_id(self) -> Optional[UUID]:
        """The object id as a UUID, or None when it does not parse."""
        if not self.object_id:
            return None
        try:
            return UUID(self.object_id)
        except ValueError:
            return None


def plugin_steps(components: Iterable[SolutionComponent]) -> Iterator[SolutionComponent]:
    """Yield only the plugin step components, in their original order."""
    return (c for c in components if c.is_plugin_step)


def target_state(enable: bool) -> Tuple[int, int]:
    """(statecode, statuscode) for an enabled or disabled plugin step."""
    return ENABLED_STATE if enable else DISABLED_STATE


@dataclass(frozen=True)
class ExecutionContext:
    """Whether updates are sent or only logged (dry run)."""

    dry_run: bool = False


@dataclass
class ActivationSummary:
    matched: int = 0
    succeeded: int = 0
    failed: int = 0
