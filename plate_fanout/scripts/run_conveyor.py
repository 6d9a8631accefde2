#!/usr/bin/env python3
"""
Run Conveyor Script.

Poll the intake directory and pass every plate through fan-out
compensation to the CTP's delivery directory.

Usage:
    python -m plate_fanout.scripts.run_conveyor
    python -m plate_fanout.scripts.run_conveyor --config /srv/press/plant.yaml
    python -m plate_fanout.scripts.run_conveyor --iterations 1 --log-level DEBUG

Exit codes:
    0   stopped normally (iteration limit or Ctrl-C)
    1   a plate could not be moved after all retries
    2   configuration error
"""

from __future__ import annotations

import argparse
import logging
import sys

from plate_fanout.configs.loader import load_config
from plate_fanout.conveyor.runner import PlateConveyor
from plate_fanout.errors import ConfigError, TransferError
from plate_fanout.utils.logging_config import (
    install_excepthook,
    setup_logging,
    shutdown,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TRANSFER = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compensate printing plates for paper fan-out",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Plant configuration file (default: bundled plant.yaml)",
    )
    parser.add_argument(
        "--iterations",
        "-n",
        type=int,
        help="Stop after this many polling iterations (default: run forever)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colours on the console",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    color = not args.no_color

    setup_logging(args.log_level or "INFO", color=color, context={"app": "conveyor"})
    install_excepthook()

    try:
        try:
            config = load_config(args.config)
        except ConfigError as exc:
            logger.critical("Configuration error: %s", exc)
            return EXIT_CONFIG

        try:
            setup_logging(
                args.log_level or config.logging.level,
                str(config.log_file),
                json=config.logging.json,
                color=color,
                rotate={"mode": "time", "when": "midnight"},
                quiet_libs=["PIL"],
            )
        except OSError as exc:
            setup_logging(args.log_level or config.logging.level, color=color)
            logger.error("Cannot open log file %s: %s", config.log_file, exc)

        try:
            conveyor = PlateConveyor.from_config(config)
        except ConfigError as exc:
            logger.critical("Configuration error: %s", exc)
            return EXIT_CONFIG

        try:
            conveyor.run(args.iterations)
        except TransferError as exc:
            logger.critical("Giving up: %s", exc)
            return EXIT_TRANSFER
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        return EXIT_OK
    finally:
        shutdown()


if __name__ == "__main__":
    sys.exit(main())
