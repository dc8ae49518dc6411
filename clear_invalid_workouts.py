#!/usr/bin/env python3
"""
Delete workouts that were never completed or carry a completion date
older than MIN_COMPLETED_AT.
"""
import logging
import sys
from datetime import datetime

from sqlalchemy import or_

from database import SessionLocal
from models import Workout

logger = logging.getLogger("clear_invalid_workouts")

MIN_COMPLETED_AT = datetime(2020, 1, 1)


def clear_invalid_workouts(min_completed_at=MIN_COMPLETED_AT):
    """Returns the number of workouts removed."""
    db = SessionLocal()
    try:
        invalid = db.query(Workout).filter(
            or_(Workout.completed_at.is_(None), Workout.completed_at < min_completed_at)
        )
        for workout in invalid:
            logger.info(f"Workout {workout.id} ({workout.modality.value}) completed_at={workout.completed_at}")

        removed = invalid.delete(synchronize_session=False)
        db.commit()
        logger.info(f"Removed {removed} invalid workouts")
        return removed
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        clear_invalid_workouts()
    except Exception:
        logger.exception("Cleanup failed")
        sys.exit(1)
