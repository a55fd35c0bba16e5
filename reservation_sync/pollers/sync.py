import structlog

from reservation_sync.config import DRY_RUN
from reservation_sync.logging_config import setup_logging
from reservation_sync.services.sync import sync_all

# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    # Run a full sync across all active feeds and mailbox connections
    reports = sync_all(dry_run=DRY_RUN)
    for report in reports:
        logger.info("source_report", **report.as_dict())


if __name__ == "__main__":
    main()
