"""
Attendance ledger: one confirmation record per (event, user) pair.

Both operations lean on the unique constraint on
``event_attendances(event_id, user_id)``; concurrent writers for the same
pair are serialized by the database, not by this module.
"""
from typing import Iterable
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from models import EventAttendance

logger = logging.getLogger(__name__)

_NATIVE_UPSERT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _pair_query(db: Session, event_id: int, user_id: int):
    return db.query(EventAttendance).filter(
        EventAttendance.event_id == event_id,
        EventAttendance.user_id == user_id,
    )


def _upsert_without_on_conflict(db: Session, event_id: int, user_id: int, confirmed: bool):
    record = _pair_query(db, event_id, user_id).first()
    if record is None:
        try:
            with db.begin_nested():
                db.add(EventAttendance(event_id=event_id, user_id=user_id, confirmed=confirmed))
            return
        except IntegrityError:
            # Lost the insert race; the other writer's row is updated below
            record = _pair_query(db, event_id, user_id).one()
    record.confirmed = confirmed


def upsert_attendance(db: Session, event_id: int, user_id: int, confirmed: bool) -> EventAttendance:
    """
    Create or overwrite the attendance record for ``(event_id, user_id)``.

    Applying the same arguments twice leaves exactly one record whose
    ``confirmed`` value matches the last call.
    """
    insert = _NATIVE_UPSERT.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(EventAttendance).values(event_id=event_id, user_id=user_id, confirmed=confirmed)
        stmt = stmt.on_conflict_do_update(
            index_elements=[EventAttendance.event_id, EventAttendance.user_id],
            set_={"confirmed": stmt.excluded.confirmed, "updated_at": func.now()},
        )
        db.execute(stmt)
    else:
        _upsert_without_on_conflict(db, event_id, user_id, confirmed)
    db.commit()

    record = _pair_query(db, event_id, user_id).one()
    logger.info(f"Attendance for event {event_id} user {user_id} set to confirmed={record.confirmed}")
    return record


def seed_attendance(db: Session, event_id: int, user_ids: Iterable[int]) -> int:
    """
    Create one unconfirmed record per user id that has none for the event yet.

    Returns the number of records inserted; pairs that already exist are
    left untouched so a retried seed does not duplicate rows.
    """
    wanted = list(dict.fromkeys(user_ids))
    if not wanted:
        return 0

    existing = {
        user_id
        for (user_id,) in db.query(EventAttendance.user_id).filter(
            EventAttendance.event_id == event_id,
            EventAttendance.user_id.in_(wanted),
        )
    }
    new_records = [
        EventAttendance(event_id=event_id, user_id=user_id, confirmed=False)
        for user_id in wanted
        if user_id not in existing
    ]
    db.add_all(new_records)
    db.commit()

    logger.info(f"Seeded {len(new_records)} attendance records for event {event_id}")
    return len(new_records)
