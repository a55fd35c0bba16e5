import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

import structlog

from reservation_sync.logging_config import setup_logging
from reservation_sync.services.sync import sync_calendar_feed, sync_mailbox

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Sync a single mailbox connection or calendar feed from the command line.

    Usage:
        python scripts/sync_one_connection.py --mailbox 3
        python scripts/sync_one_connection.py --feed 12 --dry-run
    """
    parser = argparse.ArgumentParser(description="Run one sync synchronously")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--mailbox", type=int, help="Mailbox connection ID")
    target.add_argument("--feed", type=int, help="Calendar feed ID")
    parser.add_argument("--dry-run", action="store_true", help="Log only, skip DB writes")
    args = parser.parse_args()

    if args.mailbox is not None:
        report = sync_mailbox(args.mailbox, dry_run=args.dry_run)
    else:
        report = sync_calendar_feed(args.feed, dry_run=args.dry_run)

    logger.info("sync_report", **report.as_dict())
    if report.status == "failure":
        sys.exit(1)


if __name__ == "__main__":
    main()
