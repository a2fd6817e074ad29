#!/usr/bin/env python3
"""
raceprobe - Command Line Interface.

Usage:
    raceprobe --help
    raceprobe run config.yaml
    raceprobe run config.yaml --count 50 --proxy 127.0.0.1:8080 -o results
    raceprobe serve --port 8000
"""

import argparse
import asyncio
from typing import List, Optional

from . import __version__
from .config import ConfigurationError, load_config_file
from .engine import RaceTester
from .report import render_text
from .utils import setup_logging

logger = setup_logging("raceprobe")

BANNER = f"""
 ┬─┐┌─┐┌─┐┌─┐┌─┐┬─┐┌─┐┌┐ ┌─┐
 ├┬┘├─┤│  ├┤ ├─┘├┬┘│ │├┴┐├┤
 ┴└─┴ ┴└─┘└─┘┴  ┴└─└─┘└─┘└─┘
                      v{__version__}
     Race Condition Tester
"""


def print_banner():
    """Print raceprobe banner."""
    print(BANNER)


async def cmd_run(args) -> int:
    """Run a race test from a configuration file."""
    config = load_config_file(args.config)

    if args.count is not None:
        config.count = args.count
    if args.proxy is not None:
        config.proxy = args.proxy
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.verbose:
        config.verbose = True
    if args.no_sync:
        config.sync_start = False

    tester = RaceTester(config, output_dir=args.output or "results")
    result = await tester.test()

    for error in result.errors:
        print(f"[ERROR] {error}")

    print(render_text(result.groups, result.proxy))

    if args.output:
        paths = tester.save_results(result, args.name)
        print("\nResults saved:")
        for name, path in paths.items():
            print(f"  {name}: {path}")

    return 0


def cmd_serve(args) -> int:
    """Start the HTTP control surface."""
    from .api_server import run_server

    config = load_config_file(args.config) if args.config else None
    run_server(host=args.host, port=args.port, config=config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="raceprobe",
        description="raceprobe - race condition tester for web applications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f"raceprobe v{__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a race test from a config file")
    run_parser.add_argument("config", help="YAML, JSON or TOML configuration file")
    run_parser.add_argument("-o", "--output", help="Save JSON/Markdown results to this directory")
    run_parser.add_argument("-n", "--name", help="Base name for saved result files")
    run_parser.add_argument("-c", "--count", type=int, help="Requests per target")
    run_parser.add_argument("-p", "--proxy", help="Proxy URL")
    run_parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    run_parser.add_argument("--no-sync", action="store_true", help="Send without the start gate")
    run_parser.add_argument("--verbose", action="store_true", help="Verbose output")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP control surface")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--config", help="Configuration file to preload")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    print_banner()

    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "run":
            return asyncio.run(cmd_run(args))
        elif args.command == "serve":
            return cmd_serve(args)
        else:
            parser.print_help()
            return 0

    except ConfigurationError as e:
        print(f"[ERROR] {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nRace test interrupted by user.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
