from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import datetime, timezone
import logging

from attendance import seed_attendance, upsert_attendance
from database import get_db
from dependencies import get_current_admin_user, get_current_user
from errors import NotFoundError, ValidationError
from models import Event, EventAttendance, EventType, Role, User
from pagination import PageParams
from schemas import (
    Attendance, AttendanceUpdate, AttendanceWithEvent, AttendanceWithUser, Event as EventSchema,
    EventCreate, EventDetail, EventUpdate, MyEvent, TokenData,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_event_or_404(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def _target_students(db: Session, student_ids: Optional[list]) -> list:
    query = db.query(User.id).filter(User.role == Role.STUDENT)
    if student_ids is None:
        return [user_id for (user_id,) in query]

    found = {user_id for (user_id,) in query.filter(User.id.in_(student_ids))}
    unknown = sorted(set(student_ids) - found)
    if unknown:
        raise ValidationError(f"Unknown student ids: {unknown}")
    return list(dict.fromkeys(student_ids))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_event(
    event: EventCreate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Create a new event and invite the targeted students (admin only)"""
    student_ids = _target_students(db, event.student_ids)

    db_event = Event(**event.model_dump(exclude={"student_ids"}))
    db.add(db_event)
    db.commit()
    db.refresh(db_event)
    logger.info(f"Event {db_event.id} created by user {current_user.user_id}")

    # Invitations are best-effort; the event is already committed
    try:
        seed_attendance(db, db_event.id, student_ids)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to seed attendance for event {db_event.id}")

    return {
        "message": "Event created successfully",
        "event": EventSchema.model_validate(db_event),
    }


@router.get("/")
def get_events(
    type: Optional[EventType] = None,
    upcoming: bool = True,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """
    Get paginated list of events
    - type: only events of this type
    - upcoming: only events dated from now on (default true)
    """
    query = db.query(Event)
    if type is not None:
        query = query.filter(Event.type == type)
    if upcoming:
        query = query.filter(Event.date >= datetime.now(timezone.utc))

    total = query.count()
    events = pages.apply(
        query.options(selectinload(Event.attendances).selectinload(EventAttendance.user))
        .order_by(Event.date.asc())
    ).all()

    return {
        "events": [EventDetail.model_validate(event) for event in events],
        "pagination": pages.summary(total),
    }


@router.get("/my-events")
def get_my_events(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Events with the caller's own attendance status only"""
    mine = {
        record.event_id: record
        for record in db.query(EventAttendance).filter(EventAttendance.user_id == current_user.user_id)
    }
    events = db.query(Event).order_by(Event.date.asc()).all()

    return {
        "events": [
            MyEvent(
                **EventSchema.model_validate(event).model_dump(),
                my_attendance=Attendance.model_validate(mine[event.id]) if event.id in mine else None,
            )
            for event in events
        ]
    }


@router.get("/my/attendances")
def get_my_attendances(
    confirmed: Optional[bool] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    query = db.query(EventAttendance).filter(EventAttendance.user_id == current_user.user_id)
    if confirmed is not None:
        query = query.filter(EventAttendance.confirmed == confirmed)

    total = query.count()
    attendances = pages.apply(
        query.options(selectinload(EventAttendance.event))
        .order_by(EventAttendance.created_at.desc(), EventAttendance.id.desc())
    ).all()

    return {
        "attendances": [AttendanceWithEvent.model_validate(record) for record in attendances],
        "pagination": pages.summary(total),
    }


@router.get("/stats/overview")
def get_event_stats(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Event statistics (admin only)"""
    by_type = db.query(Event.type, func.count(Event.id)).group_by(Event.type).all()
    return {
        "total_events": db.query(Event).count(),
        "upcoming_events": db.query(Event).filter(Event.date >= datetime.now(timezone.utc)).count(),
        "total_attendances": db.query(EventAttendance).filter(EventAttendance.confirmed.is_(True)).count(),
        "events_by_type": [{"type": event_type, "count": count} for event_type, count in by_type],
    }


@router.get("/{event_id}")
def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Get a specific event with its attendance list"""
    event = _get_event_or_404(db, event_id)
    return {"event": EventDetail.model_validate(event)}


@router.put("/{event_id}")
def update_event(
    event_id: int,
    event_update: EventUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Update an existing event (admin only)"""
    db_event = _get_event_or_404(db, event_id)

    for field, value in event_update.model_dump().items():
        setattr(db_event, field, value)

    db.commit()
    db.refresh(db_event)
    return {
        "message": "Event updated successfully",
        "event": EventDetail.model_validate(db_event),
    }


@router.delete("/{event_id}")
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Delete an event and its attendance records (admin only)"""
    db_event = _get_event_or_404(db, event_id)

    db.delete(db_event)
    db.commit()
    logger.info(f"Event {event_id} deleted by user {current_user.user_id}")
    return {"message": "Event deleted successfully"}


def _record_rsvp(db: Session, event_id: int, user_id: int, confirmed: bool) -> Attendance:
    _get_event_or_404(db, event_id)
    return Attendance.model_validate(upsert_attendance(db, event_id, user_id, confirmed))


@router.put("/{event_id}/attendance")
def set_attendance(
    event_id: int,
    rsvp: AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Confirm or decline attendance"""
    attendance = _record_rsvp(db, event_id, current_user.user_id, rsvp.confirmed)
    return {
        "message": "Attendance confirmed" if rsvp.confirmed else "Attendance declined",
        "attendance": attendance,
    }


@router.post("/{event_id}/attend")
def attend_event(
    event_id: int,
    rsvp: AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Confirm or cancel attendance"""
    attendance = _record_rsvp(db, event_id, current_user.user_id, rsvp.confirmed)
    return {
        "message": "Attendance confirmed" if rsvp.confirmed else "Attendance cancelled",
        "attendance": attendance,
    }


@router.get("/{event_id}/attendances")
def get_event_attendances(
    event_id: int,
    confirmed: Optional[bool] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """List the attendance records of one event (admin only)"""
    _get_event_or_404(db, event_id)

    query = db.query(EventAttendance).filter(EventAttendance.event_id == event_id)
    if confirmed is not None:
        query = query.filter(EventAttendance.confirmed == confirmed)

    total = query.count()
    attendances = pages.apply(
        query.options(selectinload(EventAttendance.user))
        .order_by(EventAttendance.created_at.desc(), EventAttendance.id.desc())
    ).all()

    return {
        "attendances": [AttendanceWithUser.model_validate(record) for record in attendances],
        "pagination": pages.summary(total),
    }
