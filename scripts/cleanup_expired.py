#!/usr/bin/env python3
"""
Script to delete sign requests (and their events) past the retention window.
This can be run manually or via cron job when the in-process janitor is disabled.
"""

import argparse
import sys

from signlink.config import Settings
from signlink.core.janitor import RetentionJanitor
from signlink.core.logging_config import configure_logging
from signlink.core.store import SignRequestStore
from signlink.db.session import create_db_engine, create_session_factory, init_db

logger = configure_logging("signlink.cleanup", "signlink.log")


def main(argv=None):
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Delete expired sign requests past retention")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.retention_days,
        help=f"Days to keep a request after it expires (default: {settings.retention_days})"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without actually deleting"
    )
    args = parser.parse_args(argv)

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    store = SignRequestStore(create_session_factory(engine))
    janitor = RetentionJanitor(store, retention_days=args.retention_days, interval_seconds=0)

    logger.info(f"Starting cleanup of requests expired more than {args.retention_days} days ago")
    logger.info(f"Dry run: {args.dry_run}")

    try:
        if args.dry_run:
            requests, events = store.count_expired_before(janitor.cutoff())
            logger.info(f"Dry run - would delete {requests} requests and {events} events")
        else:
            requests, events = janitor.sweep()
            logger.info(f"Cleanup completed. Deleted requests: {requests}, events: {events}")
    except Exception:
        logger.exception("Error during cleanup")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
