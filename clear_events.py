#!/usr/bin/env python3
"""
Remove every event together with its attendance records.
"""
import logging
import sys

from database import SessionLocal
from models import Event, EventAttendance

logger = logging.getLogger("clear_events")


def clear_events():
    """Delete all attendance records and events; returns (attendances, events) removed."""
    db = SessionLocal()
    try:
        total = db.query(Event).count()
        logger.info(f"Found {total} events")
        if total == 0:
            return 0, 0

        attendances = db.query(EventAttendance).delete(synchronize_session=False)
        events = db.query(Event).delete(synchronize_session=False)
        db.commit()
        logger.info(f"Removed {attendances} attendance records and {events} events")
        return attendances, events
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        clear_events()
    except Exception:
        logger.exception("Cleanup failed")
        sys.exit(1)
