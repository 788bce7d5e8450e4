"""Command line entry point: ``fleet-backup backup`` and ``fleet-backup restore``.

Exit status:
    0  run completed (per-database failures included, unless --strict)
    1  fatal error: configuration, catalog enumeration or remote listing
    2  usage error
    3  --strict (or fail_on_item_error) and at least one database failed
"""
import argparse
import os
import sys
from typing import List, Optional

from .backup_manager import run_backup_all
from .config import load_config
from .exceptions import FleetBackupError
from .logger import get_logger, setup_logging
from .metrics import push_metrics
from .restore_manager import run_restore_all
from .schemas import BatchResult, Settings
from .storage import get_storage_provider

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_ITEM_FAILURES = 3

RESTORE_PREFIX_ENV = "S3_DIR"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-backup",
        description="Back up or restore every database on a PostgreSQL server to object storage.",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml (default: $FLEET_BACKUP_CONFIG or ./config.yaml)")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero when any single database fails")
    parser.add_argument(
        "--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper,
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument("--log-file", default=None, help="Also log to this rotating file (default: $LOG_FILE)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("backup", help="Dump every non-template database and upload it under a new run prefix")

    restore = subparsers.add_parser("restore", help="Download and restore every archive of a previous run")
    restore.add_argument("--prefix", default=None, help=f"Run prefix to restore (default: ${RESTORE_PREFIX_ENV})")
    restore.add_argument(
        "--database", dest="databases", action="append", default=None,
        help="Only restore this database (repeatable)",
    )
    return parser


def _finish(result: BatchResult, settings: Settings, strict: bool) -> int:
    if settings.metrics.pushgateway:
        push_metrics(settings.metrics.pushgateway, settings.metrics.job)

    if result.failed and (strict or settings.fail_on_item_error):
        logger.error(f"{len(result.failed)} of {len(result.items)} items failed")
        return EXIT_ITEM_FAILURES
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        settings = load_config(args.config)
        storage = get_storage_provider(settings.storage)

        if args.command == "backup":
            result = run_backup_all(settings, storage)
            logger.info(f"Run prefix: {result.prefix}")
        else:
            prefix = args.prefix or os.environ.get(RESTORE_PREFIX_ENV)
            if not prefix:
                parser.error(f"a run prefix is required: pass --prefix or set ${RESTORE_PREFIX_ENV}")
            result = run_restore_all(settings, storage, prefix, databases=args.databases)
    except FleetBackupError as e:
        logger.error(f"Error: {e}")
        return EXIT_FATAL

    return _finish(result, settings, args.strict)


def run():
    sys.exit(main())
