#!/usr/bin/env python3
"""
uactl - OPC-UA Sentinel operational CLI

- Run the poll loop (uactl run)
- Check connectivity and node quality (uactl check)
- Print a sample nodes file (uactl sample-config)
- Version info (uactl version)
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from opcua_sentinel import __version__, get_log_level
from opcua_sentinel.core.config import DESCRIPTION, SAMPLE_CONFIG, get_config
from opcua_sentinel.core.exceptions import (
    ConfigurationError,
    SessionConnectionError,
    TransportError,
)
from opcua_sentinel.monitor.service import PollService, build_service
from opcua_sentinel.session.status import STATUS_BAD, status_name

logger = logging.getLogger("opcua_sentinel.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_CONNECTION_ERROR = 3


class Colors:
    """ANSI color codes for terminal output."""

    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colorize(text: str, color: str) -> str:
    """Colorize text if stdout is a TTY."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.RESET}"
    return text


def setup_logging(log_level: str) -> None:
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def format_check_result(name: str, status: str, message: str, width: int = 40) -> str:
    """Format a check result line."""
    padding = " " * max(1, width - len(name))

    if status == "OK":
        status_str = colorize("[OK]", Colors.GREEN)
    elif status == "WARN":
        status_str = colorize("[WARN]", Colors.YELLOW)
    else:  # ERROR
        status_str = colorize("[ERROR]", Colors.RED)

    return f"{name}:{padding}{status_str} {message}"


def _build(args) -> PollService:
    config = get_config()
    return build_service(config, nodes_file=args.nodes, dry_run=getattr(args, "dry_run", True))


async def _serve(service: PollService, once: bool) -> int:
    try:
        await service.start()
    except SessionConnectionError as e:
        logger.error(f"Cannot connect to {service.server_name}: {e}")
        await service.close()
        return EXIT_CONNECTION_ERROR

    service.install_signal_handlers()
    try:
        await service.run(max_cycles=1 if once else None)
    finally:
        await service.close()
    return EXIT_OK


def cmd_run(args) -> int:
    """
    Run the poll loop until interrupted.

    Returns:
        Exit code (0 on clean stop, 2 on bad configuration, 3 if the server
        cannot be reached at startup)
    """
    try:
        service = _build(args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    logger.info("=" * 60)
    logger.info("OPC-UA Sentinel - Poll Service")
    logger.info("=" * 60)
    logger.info(f"Server: {service.server_name}")
    logger.info(f"Nodes: {len(service.registry)}")
    logger.info(f"Poll Interval: {service.poll_interval}s")
    logger.info(f"Sink: {type(service.sink).__name__}")
    logger.info("=" * 60)

    return asyncio.run(_serve(service, once=args.once))


async def _check(service: PollService) -> int:
    all_ok = True

    try:
        reachable = await service.session.check_connection()
        print(format_check_result(
            "Gateway",
            "OK" if reachable else "ERROR",
            "reachable" if reachable else "not reachable",
        ))
        if not reachable:
            return EXIT_FAILURE

        try:
            await service.start()
        except SessionConnectionError as e:
            print(format_check_result("Session", "ERROR", str(e)))
            return EXIT_CONNECTION_ERROR

        try:
            outcomes = await service.read_all()
        except TransportError as e:
            print(format_check_result("Read", "ERROR", str(e)))
            return EXIT_FAILURE

        for node, outcome in zip(service.registry.all(), outcomes):
            if outcome.is_good:
                status, message = "OK", f"{outcome.value!r}"
            elif outcome.status & STATUS_BAD:
                status, message = "ERROR", status_name(outcome.status)
                all_ok = False
            else:
                status, message = "WARN", f"{outcome.value!r} ({status_name(outcome.status)})"
                all_ok = False
            print(format_check_result(f"{node.tag} [{node.node_id}]", status, message))
    finally:
        await service.close()

    return EXIT_OK if all_ok else EXIT_FAILURE


def cmd_check(args) -> int:
    """
    Connect, read every configured node once and print its quality.

    Returns:
        Exit code (0 if every node read with good quality)
    """
    try:
        service = _build(args)
    except ConfigurationError as e:
        print(colorize(f"✗ Configuration error: {e}", Colors.RED), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(colorize(f"\nOPC-UA Sentinel Check: {service.server_name}", Colors.BOLD))
    print(colorize("=" * 60, Colors.BOLD))
    return asyncio.run(_check(service))


def cmd_sample_config(args) -> int:
    print(SAMPLE_CONFIG, end="")
    return EXIT_OK


def cmd_describe(args) -> int:
    print(DESCRIPTION)
    return EXIT_OK


def cmd_version(args) -> int:
    """Print version information."""
    print(f"uactl version {__version__}")
    print(f"OPC-UA Sentinel - {DESCRIPTION}")
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for uactl."""
    parser = argparse.ArgumentParser(
        description="OPC-UA Sentinel operational CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  uactl run --nodes nodes.yaml       # Poll nodes and push changes to Loki
  uactl run --once --dry-run         # One cycle, log observations only
  uactl check --nodes nodes.yaml     # Read every node once and show quality
  uactl sample-config > nodes.yaml   # Write a sample nodes file

Environment variables:
  OPCUA_SERVER_NAME, OPCUA_URL, OPCUA_GATEWAY_URL
  POLL_INTERVAL_SECONDS, POLL_NODES_FILE
  LOKI_URL, LOKI_ENABLED
  LOG_LEVEL
        """
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the poll loop"
    )
    run_parser.add_argument(
        "--nodes",
        default=None,
        help="YAML file with the nodes to monitor (default: POLL_NODES_FILE)"
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit"
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log observations instead of pushing them to Loki"
    )

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Read every node once and report its quality"
    )
    check_parser.add_argument(
        "--nodes",
        default=None,
        help="YAML file with the nodes to monitor (default: POLL_NODES_FILE)"
    )

    subparsers.add_parser("sample-config", help="Print a sample nodes file")
    subparsers.add_parser("describe", help="Print a one-line description")
    subparsers.add_parser("version", help="Show version information")

    return parser


COMMANDS = {
    "run": cmd_run,
    "check": cmd_check,
    "sample-config": cmd_sample_config,
    "describe": cmd_describe,
    "version": cmd_version,
}


def main(argv: Optional[list] = None) -> int:
    """Main entry point for uactl CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    setup_logging(args.log_level or get_log_level())

    try:
        return COMMANDS[args.command](args)
    except ConfigurationError as e:
        print(colorize(f"✗ Configuration error: {e}", Colors.RED), file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
