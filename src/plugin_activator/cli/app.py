# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/cli/app.py
from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer

from plugin_activator.activator.models import ExecutionContext
from plugin_activator.activator.runner import ActivationRunner, EXIT_FAILURE
from plugin_activator.config.loader import ConfigError, load_config
from plugin_activator.logging.log import init_logging


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Enable or disable the plugin steps of a Dataverse solution")


@app.callback()
def main() -> None:
    """
    Plugin Activator: toggles every plugin step in one Dynamics 365 solution.
    """


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

async def run_until_cancelled(runner: ActivationRunner) -> int:
    """
    Run *runner* as the main task; SIGINT/SIGTERM cancel it.
    """
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            # no loop signal support (Windows, or not on the main thread)
            pass

    return await runner.execute()


# ------------------------------------------------------------------------------
# Run command
# ------------------------------------------------------------------------------

@app.command()
def run(
    secrets_file: Optional[Path] = typer.Option(
        None,
        "--secrets-file",
        help="YAML file with CLIENT_ID, CLIENT_SECRET, DYNAMICS_URL, SOLUTION_UNIQUE_NAME, ENABLE_PLUGIN_STEPS",
    ),
    solution: Optional[str] = typer.Option(
        None,
        "--solution",
        help="Solution unique name (overrides SOLUTION_UNIQUE_NAME)",
    ),
    enable: Optional[bool] = typer.Option(
        None,
        "--enable/--disable",
        help="Enable or disable the plugin steps (overrides ENABLE_PLUGIN_STEPS)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log the updates without sending them"),
    debug: bool = typer.Option(False, "--debug"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
    log_file: bool = typer.Option(True, "--log-file/--no-log-file"),
):
    logger, _run_id, _log_path = init_logging(base_dir=log_dir, verbose=debug, log_file=log_file)

    overrides = {"SOLUTION_UNIQUE_NAME": solution, "ENABLE_PLUGIN_STEPS": enable}

    try:
        cfg = load_config(secrets_file, overrides=overrides)
    except ConfigError as exc:
        logger.critical(str(exc))
        raise typer.Exit(code=EXIT_FAILURE)

    logger.debug(
        "solution=%s enable=%s dry_run=%s url=%s",
        cfg.solution.solution_unique_name,
        cfg.solution.enable_plugin_steps,
        dry_run,
        cfg.connection.dynamics_url,
    )

    runner = ActivationRunner(
        cfg.connection,
        cfg.solution,
        logger=logger,
        ctx=ExecutionContext(dry_run=dry_run),
    )

    code = asyncio.run(run_until_cancelled(runner))
    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
