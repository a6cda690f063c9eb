"""
CREator backend CLI.

Commands:
    serve       Start the HTTP backend for the CREator frontend
    simulate    Run one workflow simulation and print its output
    env-status  Check whether the orchestrator private key is configured

Examples:
    creator-backend serve
    creator-backend serve -p 4000 --orchestrator-path ../cre-orchestrator
    creator-backend simulate
    creator-backend env-status
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys


def _load_config(args: argparse.Namespace):
    """Resolve config from the environment, then apply CLI overrides."""
    from pathlib import Path

    from dotenv import find_dotenv, load_dotenv

    from creator_backend.runtime import EnvironmentMode, resolve_config

    load_dotenv(find_dotenv(usecwd=True))
    config = resolve_config()

    overrides = {}
    if getattr(args, "orchestrator_path", None):
        overrides["orchestrator_root"] = Path(args.orchestrator_path).expanduser()
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if getattr(args, "env", None):
        overrides["environment_mode"] = EnvironmentMode(args.env)
    if getattr(args, "hackathon", False):
        overrides["hackathon_mode"] = True

    if overrides:
        config = dataclasses.replace(config, **overrides)
    return config


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle serve command."""
    from creator_backend.web import run_server

    config = _load_config(args)
    try:
        run_server(config, log_level=args.log_level.lower())
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_simulate(args: argparse.Namespace) -> int:
    """Handle simulate command."""
    import asyncio

    from creator_backend.simulate import run_simulation

    config = _load_config(args)
    if not config.orchestrator_root.is_dir():
        print(f"Error: Orchestrator directory not found: {config.orchestrator_root}", file=sys.stderr)
        return 1

    result = asyncio.run(run_simulation(config))
    print(result.output)
    return 0 if result.succeeded else 1


def cmd_env_status(args: argparse.Namespace) -> int:
    """Handle env-status command."""
    from creator_backend.envfile import read_private_key_status

    config = _load_config(args)
    status = read_private_key_status(config.env_file)

    print(f"Env file: {status.path}")
    if status.error:
        print(f"Error: {status.error}")
    print(f"Private key configured: {'yes' if status.configured else 'no'}")
    return 0 if status.configured else 1


def main(argv: list[str] | None = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="creator-backend",
        description="Local file and simulation backend for the CREator workflow builder.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the HTTP backend",
    )
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: $HOST or 127.0.0.1)",
    )
    serve_parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: $PORT or 3001)",
    )
    serve_parser.add_argument(
        "--env",
        choices=["development", "production"],
        default=None,
        help="Run mode (default: $CREATOR_ENV or development)",
    )
    serve_parser.add_argument(
        "--hackathon",
        action="store_true",
        help="Keep file operations enabled in production mode",
    )

    # simulate
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Run one workflow simulation",
    )

    # env-status
    status_parser = subparsers.add_parser(
        "env-status",
        help="Check whether the private key is configured",
    )

    for sub in (serve_parser, simulate_parser, status_parser):
        sub.add_argument(
            "--orchestrator-path",
            default=None,
            help="cre-orchestrator directory (default: $ORCHESTRATOR_PATH or ../cre-orchestrator)",
        )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "simulate":
        return cmd_simulate(args)
    elif args.command == "env-status":
        return cmd_env_status(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
