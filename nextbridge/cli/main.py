#!/usr/bin/env python3
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from nextbridge import PLUGIN_NAME
from nextbridge.cli.commands import build, offline, package
from nextbridge.core import console
from nextbridge.core.config import BridgeConfig
from nextbridge.core.exceptions import NextBridgeError
from nextbridge.core.logging_config import set_verbose, setup_logging
from nextbridge.models.descriptor import load_service
from nextbridge.plugin import COMMANDS, NextPlugin

logger = logging.getLogger("nextbridge.cli")

DEFAULT_SERVICE_FILE = "serverless.yml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nextbridge",
        description="Switch a serverless Next.js function between its image and a local dev server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--service",
        "-c",
        default=DEFAULT_SERVICE_FILE,
        help=f"Path to the service descriptor (default: {DEFAULT_SERVICE_FILE})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # --- next build ---
    group = COMMANDS[PLUGIN_NAME]
    next_parser = subparsers.add_parser(PLUGIN_NAME, help=group["usage"])
    next_subparsers = next_parser.add_subparsers(
        dest="next_command", required=True, help=f"{PLUGIN_NAME} subcommand"
    )
    for name, spec in group["commands"].items():
        next_subparsers.add_parser(name, help=spec["usage"])

    # --- offline start ---
    offline_parser = subparsers.add_parser("offline", help="Run the function locally")
    offline_subparsers = offline_parser.add_subparsers(
        dest="offline_command", required=True, help="Offline subcommand"
    )
    offline_subparsers.add_parser("start", help="Start the dev server and relay invocations")

    # --- package ---
    package_parser = subparsers.add_parser("package", help="Build and write the deployable descriptor")
    package_parser.add_argument("--output", "-o", help="Output path for the rewritten descriptor")

    return parser


def _load_plugin(args) -> NextPlugin:
    service_file = Path(args.service)
    env_file = service_file.resolve().parent / ".env"
    if env_file.exists():
        load_dotenv(env_file, verbose=False, override=False)

    config = BridgeConfig()
    setup_logging(config.LOG_CONFIG_PATH, config.LOG_LEVEL, config.LOG_FORMAT)
    set_verbose(args.verbose)

    service = load_service(service_file)
    plugin = NextPlugin(service, options={"verbose": args.verbose}, config=config)
    asyncio.run(plugin.hooks["initialize"]())
    return plugin


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        plugin = _load_plugin(args)
        if args.command == PLUGIN_NAME:
            build.run(args, plugin)
        elif args.command == "offline":
            return offline.run(args, plugin)
        elif args.command == "package":
            package.run(args, plugin)
    except KeyboardInterrupt:
        print("\nAborted.")
        return 0
    except (NextBridgeError, NotImplementedError) as e:
        console.error(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
