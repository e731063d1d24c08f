#!/usr/bin/env python3
"""
OTLP Replayer CLI - Main Entry Point

Replay a file of OTLP JSON trace exports into Honeycomb, pausing between
batches and optionally shifting timestamps so the traces look recent.
"""

import argparse
import os
import sys
from datetime import timedelta

from loguru import logger

from .config import (
    DEFAULT_BATCH,
    DEFAULT_HOST,
    DEFAULT_VERBOSITY,
    ConfigError,
    ReplayConfig,
    parse_duration,
    setup_logging,
)
from .replayer import Replayer, ReplayError


def duration(value: str) -> timedelta:
    """argparse type for Go-style durations."""
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='otlp-replayer',
        description='Replay OTLP JSON formatted trace exports into Honeycomb'
    )

    parser.add_argument(
        '--path',
        default='',
        help='Path to the file containing OTLP JSON formatted events'
    )

    parser.add_argument(
        '--key',
        default=os.getenv('HONEYCOMB_API_KEY', ''),
        help='The Honeycomb API key to send the events (env: HONEYCOMB_API_KEY)'
    )

    parser.add_argument(
        '--dataset',
        default=os.getenv('HONEYCOMB_DATASET', ''),
        help='The Honeycomb dataset to send the events to, if not specified, '
             'assumes the destination is an environment'
    )

    parser.add_argument(
        '--host',
        default=os.getenv('HONEYCOMB_API_HOST', DEFAULT_HOST),
        help=f'The Honeycomb host to send the events to (default: {DEFAULT_HOST})'
    )

    parser.add_argument(
        '--batch',
        type=int,
        default=DEFAULT_BATCH,
        help=f'The number of events to send in a row before pausing (default: {DEFAULT_BATCH})'
    )

    parser.add_argument(
        '--sleep',
        type=duration,
        default=timedelta(milliseconds=100),
        help='The duration to sleep between batches (default: 100ms)'
    )

    parser.add_argument(
        '--start',
        type=duration,
        default=timedelta(0),
        help='The duration ago to start the events from (default: 0, keep original timestamps)'
    )

    parser.add_argument(
        '--verbosity',
        type=int,
        default=DEFAULT_VERBOSITY,
        help=f'The verbosity level of the output, 0-6 (default: {DEFAULT_VERBOSITY})'
    )

    parser.add_argument(
        '--check-di-and-exit', '--dry-run',
        dest='check_di_and_exit',
        action='store_true',
        help="If present, we'll exit immediately - used in CI to check the wiring is valid"
    )

    parser.add_argument(
        '--no-spinner',
        dest='spinner',
        action='store_false',
        help='Do not show the progress spinner'
    )

    parser.add_argument(
        '--metrics-port',
        dest='metrics_port',
        type=int,
        default=0,
        help='Serve Prometheus metrics on this port (default: disabled)'
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ReplayConfig:
    return ReplayConfig(
        path=args.path,
        key=args.key,
        dataset=args.dataset,
        host=args.host,
        batch=args.batch,
        sleep=args.sleep,
        start=args.start,
        verbosity=args.verbosity,
        spinner=args.spinner,
        metrics_port=args.metrics_port,
    )


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.check_di_and_exit:
        logger.info("Flag is set, exiting instead of starting the service.")
        sys.exit(0)

    config = config_from_args(args)

    try:
        config.validate()
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)

    setup_logging(config.verbosity)

    try:
        Replayer(config).run()
    except ReplayError as e:
        logger.critical(str(e))
        sys.exit(1)

    sys.exit(0)


if __name__ == '__main__':
    main()
