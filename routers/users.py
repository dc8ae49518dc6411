from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload
import logging

from accounts import get_user_by_id
from database import get_db
from dependencies import get_current_admin_user, get_current_user
from errors import NotFoundError
from models import Evaluation, Event, Role, StudentProfile, User, Workout
from pagination import PageParams
from schemas import (
    Attendance, Evaluation as EvaluationSchema, Event as EventSchema, ProfileUpdate, TokenData,
    User as UserSchema, Workout as WorkoutSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PROFILE_FIELDS = ("height", "weight", "goals", "limitations")


def _get_student_or_404(db: Session, student_id: int) -> User:
    student = get_user_by_id(db, student_id)
    if not student or student.role != Role.STUDENT:
        raise NotFoundError("Student not found")
    return student


def _apply_profile_update(user: User, update: ProfileUpdate) -> None:
    changes = update.model_dump(exclude_unset=True)
    profile_changes = {field: changes.pop(field) for field in PROFILE_FIELDS if field in changes}

    for field, value in changes.items():
        setattr(user, field, value)

    if profile_changes:
        if user.student_profile is None:
            user.student_profile = StudentProfile()
        for field, value in profile_changes.items():
            setattr(user.student_profile, field, value)


def _recent_workouts(user: User, limit: int) -> list:
    completed = sorted(
        (workout for workout in user.workouts if workout.completed_at is not None),
        key=lambda workout: workout.completed_at,
        reverse=True,
    )
    return [WorkoutSchema.model_validate(workout) for workout in completed[:limit]]


@router.get("/students")
def get_students(
    search: str = "",
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """List students, optionally filtered by name or email (admin only)"""
    query = db.query(User).filter(User.role == Role.STUDENT)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = query.count()
    students = pages.apply(
        query.options(selectinload(User.student_profile), selectinload(User.workouts))
        .order_by(User.created_at.desc(), User.id.desc())
    ).all()

    return {
        "students": [
            {**UserSchema.model_validate(student).model_dump(), "recent_workouts": _recent_workouts(student, 5)}
            for student in students
        ],
        "pagination": pages.summary(total),
    }


@router.get("/profile")
def get_profile(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    user = get_user_by_id(db, current_user.user_id)
    if user is None:
        raise NotFoundError("User not found")

    evaluations = sorted(user.evaluations, key=lambda e: (e.evaluated_at is not None, e.evaluated_at), reverse=True)
    return {
        "user": {
            **UserSchema.model_validate(user).model_dump(),
            "recent_workouts": _recent_workouts(user, 10),
            "recent_evaluations": [EvaluationSchema.model_validate(e) for e in evaluations[:5]],
        }
    }


@router.put("/profile")
def update_profile(
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Update the caller's own profile; role and email are not editable here"""
    user = get_user_by_id(db, current_user.user_id)
    if user is None:
        raise NotFoundError("User not found")

    _apply_profile_update(user, update)
    db.commit()
    db.refresh(user)
    return {
        "message": "Profile updated successfully",
        "user": UserSchema.model_validate(user),
    }


@router.get("/stats")
def get_stats(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Dashboard totals (admin only)"""
    recent = (
        db.query(Workout)
        .filter(Workout.completed_at.isnot(None))
        .order_by(Workout.completed_at.desc())
        .limit(10)
        .all()
    )
    return {
        "total_students": db.query(User).filter(User.role == Role.STUDENT).count(),
        "total_workouts": db.query(Workout).count(),
        "total_events": db.query(Event).count(),
        "recent_workouts": [
            {**WorkoutSchema.model_validate(workout).model_dump(), "user_name": workout.user.name}
            for workout in recent
        ],
    }


@router.get("/students/{student_id}")
def get_student(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Student detail with workouts, evaluations and attendances (admin only)"""
    student = _get_student_or_404(db, student_id)

    workouts = db.query(Workout).filter(Workout.user_id == student.id).order_by(Workout.completed_at.desc()).all()
    evaluations = (
        db.query(Evaluation).filter(Evaluation.user_id == student.id).order_by(Evaluation.evaluated_at.desc()).all()
    )
    return {
        "student": {
            **UserSchema.model_validate(student).model_dump(),
            "workouts": [WorkoutSchema.model_validate(w) for w in workouts],
            "evaluations": [EvaluationSchema.model_validate(e) for e in evaluations],
            "event_attendances": [
                {**Attendance.model_validate(a).model_dump(), "event": EventSchema.model_validate(a.event)}
                for a in student.event_attendances
            ],
        }
    }


@router.put("/students/{student_id}")
def update_student(
    student_id: int,
    update: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Update a student's data (admin only)"""
    student = _get_student_or_404(db, student_id)

    _apply_profile_update(student, update)
    db.commit()
    db.refresh(student)
    return {
        "message": "Student updated successfully",
        "user": UserSchema.model_validate(student),
    }


@router.delete("/students/{student_id}")
def delete_student(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Delete a student; profile, workouts, evaluations and attendances go with it (admin only)"""
    student = _get_student_or_404(db, student_id)

    db.delete(student)
    db.commit()
    logger.info(f"Student {student_id} deleted by user {current_user.user_id}")
    return {"message": "Student deleted successfully"}
