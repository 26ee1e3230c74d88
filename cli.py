"""
Command Line Interface for VidTube
==================================

Usage:
------
    # Run the API server
    python cli.py serve --port 8000

    # Development server with auto-reload
    python cli.py serve --reload

    # Create the MongoDB indexes (unique username/email, subscription lookups)
    python cli.py init-db

Exit codes: 0 on success, 1 on failure.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pymongo.errors import PyMongoError

from config import Settings, get_settings
from core.store import create_storage


# ANSI colors for terminal output
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    ENDC = '\033[0m'


def colorize(text: str, color: str) -> str:
    """Add color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.ENDC}"
    return text


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vidtube",
        description="VidTube backend management",
        epilog="Example: python cli.py serve --host 127.0.0.1 --port 8080",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output with debug info"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", type=str, help="Bind address (overrides config)")
    serve.add_argument("--port", type=int, help="Port (overrides config)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("init-db", help="Create MongoDB indexes")

    return parser


def setup_logging_for_cli(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s"
    )


def serve(settings: Settings, host: Optional[str], port: Optional[int], reload: bool) -> int:
    import uvicorn

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )
    return 0


async def init_db(settings: Settings) -> int:
    if settings.storage_backend != "mongo":
        print(colorize("Storage backend is not mongo; nothing to do.", Colors.CYAN))
        return 0

    storage = create_storage(settings)
    try:
        await storage.ensure_indexes()
    except PyMongoError as e:
        print(colorize(f"Failed to create indexes: {e}", Colors.RED), file=sys.stderr)
        return 1
    finally:
        await storage.close()

    print(colorize(f"Indexes ready on database '{settings.mongodb_database}'", Colors.GREEN))
    return 0


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    setup_logging_for_cli(parsed_args.verbose)
    settings = get_settings()

    if parsed_args.command == "serve":
        return serve(settings, parsed_args.host, parsed_args.port, parsed_args.reload)
    if parsed_args.command == "init-db":
        return asyncio.run(init_db(settings))

    parser.error(f"Unknown command: {parsed_args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
