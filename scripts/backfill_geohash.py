#!/usr/bin/env python3
"""
CLI script to backfill precomputed geohash keys (geohash_3 .. geohash_8) for
listings that have coordinates but are missing keys. Listings without keys
are aggregated into the "unknown" map cluster until this has run.

Run from the project root:
  python scripts/backfill_geohash.py
  python scripts/backfill_geohash.py --batch-size 5000 --max-batches 10
"""

import argparse
import sys
from pathlib import Path
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Ensure project root is on path when run as scripts/backfill_geohash.py
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from sqlalchemy.exc import SQLAlchemyError

from database import Database, ListingRepository


def run_backfill(db: Database, batch_size: int = 10000, max_batches: int = 0) -> int:
    """Backfill in committed batches until nothing is pending.

    Args:
        db: Database to update
        batch_size: Listings per batch
        max_batches: Stop after this many batches (0 = until complete)

    Returns:
        Total number of listings updated
    """
    total_updated = 0
    batches = 0
    while max_batches <= 0 or batches < max_batches:
        session = db.get_session()
        try:
            repo = ListingRepository(session)
            updated = repo.backfill_geohash_batch(batch_size=batch_size)
            session.commit()
            progress = repo.geohash_backfill_progress()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

        batches += 1
        total_updated += updated
        logger.info(
            f"Batch {batches}: updated {updated} "
            f"(remaining {progress['pending']}, completed {progress['completed']})"
        )
        if updated == 0 or progress["pending"] == 0:
            break
    return total_updated


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill listing geohash keys")
    parser.add_argument("--batch-size", type=int, default=10000)
    parser.add_argument("--max-batches", type=int, default=0)
    args = parser.parse_args()

    print("Geohash backfill: initializing database...")
    db = Database(statement_timeout_s=None)  # batches may outlast a search query
    db.create_tables()
    try:
        total = run_backfill(db, batch_size=args.batch_size, max_batches=args.max_batches)
    except SQLAlchemyError as e:
        print(f"Geohash backfill failed: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Geohash backfill complete. Updated {total} listings.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
