#!/usr/bin/env python3
"""
HOMESERVER Deploy Helper
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import os
import sys
import argparse
import traceback
from pathlib import Path

from . import __version__
from .config import load_config
from .orchestrator import UpdateOrchestrator, UpdateReport
from .units import DEFAULT_UNIT_DIR
from .utils.errors import DeployHelperError
from .utils.index import log_message, setup_logging
from .utils.lock import DEFAULT_LOCK_DIR
from .utils.runner import run_commands

UNIT_DIR_ENV = "DEPLOY_HELPER_UNIT_DIR"
LOCK_DIR_ENV = "DEPLOY_HELPER_LOCK_DIR"


def run_update(config_path, unit_dir=DEFAULT_UNIT_DIR, lock_dir=DEFAULT_LOCK_DIR) -> UpdateReport:
    """Perform the update commands, (re)generate systemd units, and activate them."""
    config = load_config(config_path)
    log_message(f"Updating '{config.program_name}' from {config.config_path}")
    orchestrator = UpdateOrchestrator(config, unit_dir=unit_dir, lock_dir=lock_dir)
    return orchestrator.run()


def run_program(config_path) -> None:
    """Execute the run commands in the config file's directory."""
    config = load_config(config_path)
    log_message(f"Running '{config.program_name}' ({len(config.run.commands)} commands)")
    run_commands(config.run.commands, cwd=config.config_dir)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deploy-helper",
        description="Self-deploying updater: run update commands and keep systemd units in sync",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--unit-dir", default=os.environ.get(UNIT_DIR_ENV, DEFAULT_UNIT_DIR),
                        help=f"Directory for generated unit files (default: {DEFAULT_UNIT_DIR})")
    parser.add_argument("--lock-dir", default=os.environ.get(LOCK_DIR_ENV, DEFAULT_LOCK_DIR),
                        help=f"Directory for per-program update locks (default: {DEFAULT_LOCK_DIR})")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    update_parser = subparsers.add_parser("update", help="execute update commands in config and converge units")
    update_parser.add_argument("config", type=Path, help="Path to the program's YAML config")

    run_parser = subparsers.add_parser("run", help="execute run commands in config")
    run_parser.add_argument("config", type=Path, help="Path to the program's YAML config")

    return parser


def main(argv=None) -> int:
    """
    Main entry point for deploy-helper.

    Returns the process exit status instead of exiting so callers and
    tests can drive it directly.
    """
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        if args.command == "update":
            run_update(args.config, unit_dir=args.unit_dir, lock_dir=args.lock_dir)
        else:
            run_program(args.config)
        return 0
    except DeployHelperError as e:
        log_message(f"ERROR: {e}", "ERROR")
        return 1
    except KeyboardInterrupt:
        log_message("Interrupted by user", "WARNING")
        return 130
    except Exception as e:
        log_message(f"Unhandled error: {e}", "ERROR")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
