"""Client bootstrap helpers for config, logging, and session wiring."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from nekoctl.common.config import Config, ConfigLoader
from nekoctl.common.settings import settings
from nekoctl.common.types import SessionConfig

logger = logging.getLogger(__name__)


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load client config and initialize settings.

    Args:
        args: Parsed CLI args.

    Returns:
        Loaded config.
    """
    config_path: Path | None = Path(args.config) if args.config else None
    try:
        config: Config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            server_address=args.server,
            password=args.password,
            display_name=args.name,
            request_control=args.control,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Create a config.yml file or specify path with --config", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    settings.initialize(config)
    return config


def loggingWithConfig_setup(args: argparse.Namespace, config: Config, logging_setup_func) -> None:
    """
    Setup client logging from config and optional CLI override.

    Args:
        args: Parsed CLI args.
        config: Loaded config.
        logging_setup_func: Logging setup callback.
    """
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup_func(log_level, config.logging.format, config.logging.file)


def sessionConfig_build(config: Config) -> SessionConfig:
    """
    Build per-connection session parameters from loaded config.

    Args:
        config: Loaded config.

    Returns:
        Session configuration.
    """
    if not config.client.server_address:
        logger.error("No server address configured; use --server or client.server_address")
        sys.exit(1)
    return SessionConfig(
        server_address=config.client.server_address,
        password=config.client.password,
        display_name=config.client.display_name,
    )
