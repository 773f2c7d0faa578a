"""Shared helpers for CLI commands."""

from __future__ import annotations

import argparse
from pathlib import Path

from ..core import DriveflowConfig, get_logger
from ..storage import DatabaseManager, WorkflowStore

logger = get_logger("cli")


def load_config(args: argparse.Namespace) -> DriveflowConfig:
    """Load the configuration named by ``--config`` or fall back to the environment.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
        ValueError: If the file has an unsupported extension or bad content.
    """
    config_arg = getattr(args, "config", None)
    if not config_arg:
        return DriveflowConfig()

    config_path = Path(config_arg).expanduser()
    if config_path.suffix == ".json":
        return DriveflowConfig.from_json(config_path)
    if config_path.suffix in (".yaml", ".yml"):
        return DriveflowConfig.from_yaml(config_path)
    raise ValueError(f"Unsupported config file format: {config_path.suffix}")


def open_store(config: DriveflowConfig) -> WorkflowStore:
    """Open the configured data store, creating tables if needed."""
    database = DatabaseManager.from_config(config.database)
    database.create_tables()
    return WorkflowStore(database)


__all__ = ["load_config", "logger", "open_store"]
