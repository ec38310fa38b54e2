"""
VeraCore — Process Startup

Loads configuration and configures logging once per process, before any
verification run is started.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from veracore.config import VeraCoreConfig, load_config
from veracore.telemetry.logging import setup_logging

logger = structlog.get_logger()


def startup(config_path: str | Path | None = None, run_id: str = "") -> VeraCoreConfig:
    config_path = config_path or os.environ.get("VERACORE_CONFIG_PATH", "config/default.yaml")
    config = load_config(config_path)

    setup_logging(config.logging, run_id=run_id)
    logger.info(
        "veracore_starting",
        config_path=str(config_path),
        log_format=config.logging.format,
    )
    return config
