"""
NexaBind CLI Main Module
========================

Main CLI entry point with all commands.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, List, Optional, Tuple

import orjson

from nexabind import __version__
from nexabind.core.config import Config, ConfigError
from nexabind.engine.errors import TemplateError
from nexabind.utils.logger import configure_logging, get_logger

logger = get_logger("nexabind.cli")


def parse_assignment(text: str) -> Tuple[str, Any]:
    """Parse ``NAME=JSON`` from ``--set``."""
    name, sep, raw = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=JSON, got '{text}'")
    try:
        value = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON for '{name}': {e}") from None
    return name, value


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="nexabind",
        description="NexaBind reactive template compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nexabind build index.pyxm                  Write index.html
  nexabind build page.pyxm -o out.html --set 'count=3'
  nexabind inspect index.pyxm                Show variables and events
  nexabind serve index.pyxm --port 8080      Preview with live recompiles
        """,
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"NexaBind {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        help="Python config file defining 'config'",
    )
    parser.add_argument(
        "--log-level",
        help="Log level (debug, info, warning, error)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Compile a template to an HTML document",
    )
    build_parser.add_argument(
        "source",
        help="Template file",
    )
    build_parser.add_argument(
        "-o", "--output",
        default="index.html",
        help="Output file",
    )
    build_parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        type=parse_assignment,
        default=[],
        metavar="NAME=JSON",
        help="Override a variable's initial value",
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Print the compiled unit hierarchy as JSON",
    )
    inspect_parser.add_argument(
        "source",
        help="Template file",
    )

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run a preview server that recompiles on every request",
    )
    serve_parser.add_argument(
        "source",
        help="Template file",
    )
    serve_parser.add_argument(
        "--host",
        help="Host to bind to (server.host)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        help="Port to bind to (server.port)",
    )

    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Build the configuration and apply command line overrides."""
    config = Config.load(args.config)
    if args.log_level:
        config.set("log.level", args.log_level)

    configure_logging(
        level=config.get("log.level", "info"),
        format=config.get("log.format", "text"),
    )
    return config


def cli(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    # Route to command handler
    handlers = {
        "build": handle_build,
        "inspect": handle_inspect,
        "serve": handle_serve,
    }

    handler = handlers.get(parsed.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        config = load_config(parsed)
        return handler(parsed, config)
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130
    except (TemplateError, ConfigError, ValueError) as e:
        logger.error("Command failed", command=parsed.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error("I/O error", command=parsed.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


def handle_build(args: argparse.Namespace, config: Config) -> int:
    """Handle build command."""
    from nexabind.cli.commands.build import build_document
    return build_document(args.source, args.output, dict(args.overrides), config)


def handle_inspect(args: argparse.Namespace, config: Config) -> int:
    """Handle inspect command."""
    from nexabind.cli.commands.inspect import inspect_template
    return inspect_template(args.source, config)


def handle_serve(args: argparse.Namespace, config: Config) -> int:
    """Handle serve command."""
    from nexabind.cli.commands.serve import run_server
    host = args.host or config.get("server.host", "127.0.0.1")
    port = args.port or config.get_int("server.port", 8000)
    return run_server(args.source, host, port, config)


def main() -> None:
    """Main entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
