#!/usr/bin/env python3

"""
Command line entry point: ``python -m poolprobe [DRIVER ...]``.

Each driver runs in its own test session so a driver that cannot start only
skips its own run. The process exit code is derived from the combined counts.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from poolprobe.caching.drivers import DRIVERS, get_pool
from poolprobe.config import ConfigFactory, ConfigurationError, HarnessConfig
from poolprobe.core.contract_verifier import ContractVerifier
from poolprobe.core.ledger import EXIT_FAILURE, LedgerCounts, derive_exit_code
from poolprobe.core.session import TestSession
from poolprobe.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m poolprobe",
        description="Run the cache pool conformance sequences against one or more drivers",
    )
    parser.add_argument(
        "drivers",
        nargs="*",
        metavar="DRIVER",
        help=f"Drivers to verify (known: {', '.join(DRIVERS)}; default: POOLPROBE_DRIVERS or all)",
    )
    parser.add_argument("--no-clear", action="store_true", help="Do not clear the pool or run the deletion checks")
    parser.add_argument("--mute-notices", action="store_true", help="Drop notice-level faults")
    parser.add_argument("--log-level", default=None, help="Log level for the poolprobe logger (default: WARNING)")
    parser.add_argument("--skip-get-all-items", action="store_true", help="Only run the CRUD sequence")
    return parser


def run_driver(driver_name: str, config: HarnessConfig, pool_clear: bool, get_all_items: bool) -> LedgerCounts:
    """Verify one driver in its own session and return the session counts."""
    exit_codes: list[int] = []
    with TestSession(f"{driver_name} driver", config=config, exit_func=exit_codes.append) as session:
        pool_config = ConfigFactory.get_default_config(driver_name)
        if pool_config is not None:
            session.pre_configure(pool_config)
        pool = get_pool(driver_name, pool_config)
        try:
            verifier = ContractVerifier(session)
            verifier.run_crud_tests(pool, pool_clear=pool_clear)
            if get_all_items:
                verifier.run_get_all_items_tests(pool)
        finally:
            pool.close()
    logger.debug(f"{driver_name} session exited with {exit_codes}")
    return session.ledger.counts


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = HarnessConfig.from_env()
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.mute_notices:
        config.mute_notices = True
    setup_logging(config.log_file, config.log_level, use_color=config.color)

    failed = skipped = passed = 0
    for driver_name in args.drivers or config.drivers:
        counts = run_driver(driver_name, config, pool_clear=not args.no_clear, get_all_items=not args.skip_get_all_items)
        failed += counts.failed
        skipped += counts.skipped
        passed += counts.passed
    return derive_exit_code(failed, skipped, passed)


if __name__ == "__main__":
    sys.exit(main())
