"""nekoctl command-line interface"""

import argparse
import asyncio
import sys
from typing import NoReturn

from nekoctl import __version__


def arguments_parse(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments

    Args:
        argv: Optional argument list; defaults to sys.argv.

    Returns:
        Parsed CLI arguments.
    """
    parser = argparse.ArgumentParser(
        prog="nekoctl",
        description="Remote-control client for Neko virtual browser hosts",
    )

    parser.add_argument("--version", action="version", version=f"nekoctl {__version__}")

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )

    parser.add_argument(
        "--server",
        type=str,
        metavar="ADDRESS",
        default=None,
        help="Neko host address, e.g. https://neko.example.com (overrides config)",
    )

    parser.add_argument(
        "--password", type=str, default=None, help="Session password (overrides config)"
    )

    parser.add_argument(
        "--name", type=str, default=None, help="Display name shown to other members (overrides config)"
    )

    parser.add_argument(
        "--control",
        action="store_true",
        help="Request control after connecting",
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the interactive command prompt",
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides config)"
    )

    parser.add_argument(
        "--info", action="store_true", help="Enable info logging (overrides config)"
    )

    parser.add_argument(
        "--warning", action="store_true", help="Enable warning logging (overrides config)"
    )

    parser.add_argument(
        "--error", action="store_true", help="Enable error logging (overrides config)"
    )

    parser.add_argument(
        "--critical", action="store_true", help="Enable critical logging (overrides config)"
    )

    return parser.parse_args(argv)


def main() -> NoReturn:
    """Main entry point for the nekoctl command"""
    args = arguments_parse()

    log_level_override: str | None = logLevelOverride_get(args)

    try:
        argsWithLogLevel_apply(args, log_level_override)
        sys.exit(client_run(args))

    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def logLevelOverride_get(args: argparse.Namespace) -> str | None:
    """
    Resolve explicit log level override flags.

    Args:
        args: Parsed CLI args.

    Returns:
        Selected log level or None.
    """
    if args.critical:
        return "CRITICAL"
    if args.error:
        return "ERROR"
    if args.warning:
        return "WARNING"
    if args.info:
        return "INFO"
    if args.debug:
        return "DEBUG"
    return None


def argsWithLogLevel_apply(args: argparse.Namespace, log_level: str | None) -> None:
    """
    Apply optional log level override to args.

    Args:
        args: Parsed CLI args.
        log_level: Optional log level string.
    """
    if log_level is not None:
        setattr(args, "log_level", log_level)


def client_run(args: argparse.Namespace) -> int:
    """
    Wire config, logging, session and runtime, then run the client.

    Args:
        args: Parsed CLI args.

    Returns:
        Process exit code.
    """
    from nekoctl.client.bootstrap import (
        configWithSettings_load,
        loggingWithConfig_setup,
        sessionConfig_build,
    )
    from nekoctl.client.client_logging import logging_setup

    config = configWithSettings_load(args)
    loggingWithConfig_setup(args, config, logging_setup)
    session_config = sessionConfig_build(config)
    return asyncio.run(runtime_run(args, config, session_config))


async def runtime_run(args: argparse.Namespace, config, session_config) -> int:
    """
    Build the session and runtime inside the running event loop.

    Args:
        args: Parsed CLI args.
        config: Loaded config.
        session_config: Connection parameters.

    Returns:
        Process exit code.
    """
    from nekoctl.client.runtime import ClientRuntime, ReconnectPolicy, consoleLine_read
    from nekoctl.client.session import NekoSession

    session = NekoSession(connect_timeout=config.session.connect_timeout)
    reconnect = ReconnectPolicy(
        enabled=config.client.reconnect.enabled,
        max_attempts=config.client.reconnect.max_attempts,
        delay_seconds=config.client.reconnect.delay_seconds,
    )
    runtime = ClientRuntime(
        session,
        session_config,
        reconnect,
        request_control=config.client.request_control,
        line_read=None if args.headless else consoleLine_read,
    )
    return await runtime.run()


if __name__ == "__main__":
    main()
