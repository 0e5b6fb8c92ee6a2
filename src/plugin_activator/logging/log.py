# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/plugin_activator/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional
import uuid

def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "plugin_activator",
    verbose: bool = False,
    log_file: bool = True,
) -> tuple[logging.Logger, str, Optional[Path]]:
    """
    Initializes:
      - console handler on stderr (INFO, or DEBUG when verbose)
      - full trace log file, unless log_file is False
      - returns run_id so it can be shown to the operator
    """
    run_id = str(uuid.uuid4())

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_path: Optional[Path] = None
    if log_file:
        if base_dir is None:
            base_dir = Path.home() / ".plugin_activator" / "logs"
        base_dir.mkdir(parents=True, exist_ok=True)

        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        log_path = base_dir / f"{name}-{ts}-{run_id}.log"

        # File = FULL TRACE
        fh = logging.FileHandler(log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    # Console = INFO by default, DEBUG when --debug is passed
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    logger.debug(f"run_id={run_id}")
    if log_path:
        logger.debug(f"log_file={log_path}")

    return logger, run_id, log_path
