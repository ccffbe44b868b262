# refresh_metadata.py
"""Re-probe stored videos and rewrite their metadata in the database.

    python refresh_metadata.py [--dataset ID]
"""
import argparse
import sys

from loguru import logger

from config import configure_logging
from database import SessionLocal, init_db
from errors import NotFoundError
import video_records


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="videoset-refresh-metadata",
        description="Re-extract duration and frame size for uploaded videos",
    )
    parser.add_argument(
        "--dataset", "-d",
        type=int,
        default=None,
        help="Only refresh videos in this dataset (default: all)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: from VIDEOSET_LOG_LEVEL)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    init_db()

    db = SessionLocal()
    try:
        updated, skipped = video_records.refresh_metadata(db, args.dataset)
    except NotFoundError as e:
        logger.error("{}", e)
        return 1
    finally:
        db.close()

    logger.info("Metadata refresh complete: {} updated, {} skipped", updated, skipped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
