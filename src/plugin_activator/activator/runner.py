# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/activator/runner.py

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional
from uuid import UUID

from plugin_activator.activator.models import (
    ActivationSummary,
    ExecutionContext,
    PluginStepFields,
    SolutionComponent,
    SolutionComponentFields,
    plugin_steps,
    target_state,
)
from plugin_activator.config.models import ConnectionParameters, SolutionTarget
from plugin_activator.dataverse.client import DataverseClient
from plugin_activator.dataverse.query import ConditionExpression, QueryExpression

EXIT_SUCCESS = 0
EXIT_FAILURE = -1

ClientFactory = Callable[[str], DataverseClient]


class ActivationRunner:
    """
    Enables or disables every plugin step in one solution.

    Flow:
      - open a Dataverse session from the connection string
      - retrieve the solution's components
      - keep the plugin steps (component type 92)
      - update each step's state/status, one at a time

    A failed update is logged and the loop moves on. Anything else that goes
    wrong aborts the run.
    """

    def __init__(
        self,
        connection: ConnectionParameters,
        solution: SolutionTarget,
        *,
        logger: Optional[logging.Logger] = None,
        client_factory: Optional[ClientFactory] = None,
        ctx: Optional[ExecutionContext] = None,
    ):
        self._connection_string = connection.connection_string
        self.solution_unique_name = solution.solution_unique_name
        self.enable_plugin_steps = solution.enable_plugin_steps
        self.log = logger or logging.getLogger("plugin_activator")
        self._client_factory = client_factory or DataverseClient.from_connection_string
        self.ctx = ctx or ExecutionContext()

    async def execute(self) -> int:
        """Run to completion and return the process exit code."""
        try:
            self.log.info("Running PluginActivator...")

            await self.run()

            self.log.info("PluginActivator finished...")
        except asyncio.CancelledError:
            # cancellation is a requested shutdown, not a failure
            self.log.debug("PluginActivator cancelled")
            return EXIT_SUCCESS
        except Exception:
            self.log.critical("Critical error in application.", exc_info=True)
            return EXIT_FAILURE

        return EXIT_SUCCESS

    async def run(self) -> ActivationSummary:
        self.log.info("Connecting to Dynamics 365")

        with self._client_factory(self._connection_string) as client:
            await asyncio.to_thread(client.connect)
            self.log.info("Successfully connected")

            self.log.info(f"Retrieving solution components in solution {self.solution_unique_name}...")
            components = await self.fetch_components(client, self.solution_unique_name)
            self.log.info("Solution components retrieved.")

            summary = ActivationSummary()
            for component in plugin_steps(components):
                summary.matched += 1

                step_id = component.step_id()
                if step_id is None:
                    continue

                if await self.change_plugin_step_state(client, step_id, enable=self.enable_plugin_steps):
                    summary.succeeded += 1
                else:
                    summary.failed += 1

        self.log.debug(
            "plugin steps: matched=%d succeeded=%d failed=%d",
            summary.matched,
            summary.succeeded,
            summary.failed,
        )
        return summary

    @staticmethod
    async def fetch_components(client: DataverseClient, solution_unique_name: str) -> List[SolutionComponent]:
        """
        Retrieve every component in the solution with the given unique name.

        Only the component type, object id and parent solution id are selected.
        """
        query = QueryExpression(
            SolutionComponentFields.ENTITY_NAME,
            columns=[
                SolutionComponentFields.SOLUTION_ID,
                SolutionComponentFields.COMPONENT_TYPE,
                SolutionComponentFields.OBJECT_ID,
            ],
            conditions=[
                ConditionExpression(
                    SolutionComponentFields.SOLUTION_UNIQUE_NAME,
                    "eq",
                    solution_unique_name,
                )
            ],
        )

        records = await asyncio.to_thread(client.retrieve_multiple, query)
        return [SolutionComponent.from_record(r) for r in records]

    async def change_plugin_step_state(
        self,
        client: DataverseClient,
        plugin_step_id: UUID,
        *,
        enable: bool,
    ) -> bool:
        """
        Enable or disable one plugin step.

        Returns True when Dataverse accepted the update.
        """
        state_code, status_code = target_state(enable)
        wanted = "enabled" if enable else "disabled"

        if self.ctx.dry_run:
            self.log.info(
                f"[dry-run] Would update plugin step with Id {plugin_step_id} to be {wanted} "
                f"(statecode={state_code}, statuscode={status_code})"
            )
            return True

        self.log.info(f"Updating plugin step with Id {plugin_step_id} to be {wanted}...")

        result = await asyncio.to_thread(
            client.update_state_and_status,
            PluginStepFields.ENTITY_NAME,
            plugin_step_id,
            state_code,
            status_code,
        )

        if result:
            self.log.info(f"Successfully updated plugin step with Id {plugin_step_id} to be {wanted}")
        else:
            self.log.error(f"Error updating plugin step with Id {plugin_step_id} to be {wanted}")

        return result
