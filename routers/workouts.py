from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from datetime import datetime, timedelta, timezone
import logging

from accounts import get_user_by_id
from database import get_db
from dependencies import get_current_admin_user, get_current_user
from errors import NotFoundError, ValidationError
from models import (
    Exercise, Modality, PlanStatus, Role, StudentProfile, Workout, WorkoutPlan, WorkoutStatus,
)
from pagination import PageParams
from schemas import (
    AssignWorkout, AssignedWorkout, ExerciseIn, TokenData, Workout as WorkoutSchema, WorkoutPlan as WorkoutPlanSchema,
    WorkoutPlanCreate, WorkoutRecord,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_plan_or_404(db: Session, plan_id: int) -> WorkoutPlan:
    plan = db.query(WorkoutPlan).filter(WorkoutPlan.id == plan_id).first()
    if not plan:
        raise NotFoundError("Workout plan not found")
    return plan


def _build_exercises(exercises: List[ExerciseIn]) -> List[Exercise]:
    return [Exercise(**exercise.model_dump()) for exercise in exercises]


def _own_recorded_workout(db: Session, workout_id: int, user_id: int) -> Workout:
    # Only sessions the user recorded; assigned workouts are managed by the coach
    workout = (
        db.query(Workout)
        .filter(Workout.id == workout_id, Workout.user_id == user_id, Workout.workout_plan_id.is_(None))
        .first()
    )
    if not workout:
        raise NotFoundError("Workout not found or not authorized")
    return workout


def _adjust_totals(db: Session, user_id: int, workout: Workout, sign: int) -> None:
    profile = db.query(StudentProfile).filter(StudentProfile.user_id == user_id).first()
    if profile is None:
        profile = StudentProfile(user_id=user_id, total_workouts=0, total_calories=0, total_distance=0)
        db.add(profile)
        db.flush()
    profile.total_workouts = max(0, (profile.total_workouts or 0) + sign)
    profile.total_calories = max(0, (profile.total_calories or 0) + sign * (workout.calories or 0))
    profile.total_distance = max(0, (profile.total_distance or 0) + sign * (workout.distance or 0))


def _date_filtered(query, start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date is not None:
        query = query.filter(Workout.completed_at >= start_date)
    if end_date is not None:
        query = query.filter(Workout.completed_at <= end_date)
    return query


def _period_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now - timedelta(days=30)


@router.post("/plans", status_code=status.HTTP_201_CREATED)
def create_plan(
    plan: WorkoutPlanCreate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Create a workout plan, optionally assigning it to a student at once (admin only)"""
    if plan.user_id is not None and get_user_by_id(db, plan.user_id) is None:
        raise NotFoundError("User not found")

    db_plan = WorkoutPlan(**plan.model_dump(exclude={"exercises", "user_id"}))
    db_plan.exercises = _build_exercises(plan.exercises or [])
    db.add(db_plan)

    if plan.user_id is not None:
        db.add(Workout(
            user_id=plan.user_id,
            workout_plan=db_plan,
            modality=db_plan.modality,
            type=db_plan.type,
            course_type=db_plan.course_type,
            assigned_by=current_user.user_id,
            status=WorkoutStatus.ASSIGNED,
        ))

    db.commit()
    db.refresh(db_plan)
    logger.info(f"Workout plan {db_plan.id} created with {len(db_plan.exercises)} exercises")
    return {
        "message": "Workout plan created successfully",
        "workout_plan": WorkoutPlanSchema.model_validate(db_plan),
    }


@router.get("/plans")
def get_plans(
    modality: Optional[Modality] = None,
    status: Optional[PlanStatus] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    query = db.query(WorkoutPlan)
    if modality is not None:
        query = query.filter(WorkoutPlan.modality == modality)
    if status is not None:
        query = query.filter(WorkoutPlan.status == status)

    total = query.count()
    plans = pages.apply(
        query.options(selectinload(WorkoutPlan.exercises)).order_by(WorkoutPlan.workout_date.desc())
    ).all()

    return {
        "plans": [WorkoutPlanSchema.model_validate(plan) for plan in plans],
        "pagination": pages.summary(total),
    }


@router.get("/plans/{plan_id}")
def get_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    plan = _get_plan_or_404(db, plan_id)
    return {
        "workout_plan": {
            **WorkoutPlanSchema.model_validate(plan).model_dump(),
            "workouts": [
                {**WorkoutSchema.model_validate(w).model_dump(), "user_name": w.user.name}
                for w in plan.workouts
            ],
        }
    }


@router.put("/plans/{plan_id}")
def update_plan(
    plan_id: int,
    plan_update: WorkoutPlanCreate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Update a plan; a given exercise list replaces the existing one (admin only)"""
    plan = _get_plan_or_404(db, plan_id)

    for field, value in plan_update.model_dump(exclude={"exercises", "user_id"}).items():
        setattr(plan, field, value)
    if plan_update.exercises is not None:
        plan.exercises = _build_exercises(plan_update.exercises)

    db.commit()
    db.refresh(plan)
    return {
        "message": "Workout plan updated successfully",
        "workout_plan": WorkoutPlanSchema.model_validate(plan),
    }


@router.delete("/plans/{plan_id}")
def delete_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Delete a plan with its exercises and assignments (admin only)"""
    plan = _get_plan_or_404(db, plan_id)
    db.delete(plan)
    db.commit()
    return {"message": "Workout plan deleted successfully"}


@router.post("/assign", status_code=status.HTTP_201_CREATED)
def assign_workout(
    assignment: AssignWorkout,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Assign a plan to a student (admin only)"""
    user = get_user_by_id(db, assignment.user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.role != Role.STUDENT:
        raise ValidationError("Only students can be assigned workouts")

    plan = _get_plan_or_404(db, assignment.workout_plan_id)

    workout = Workout(
        user_id=user.id,
        workout_plan_id=plan.id,
        assigned_by=current_user.user_id,
        modality=plan.modality,
        type=plan.type,
        course_type=plan.course_type,
        notes=assignment.notes,
        status=WorkoutStatus.ASSIGNED,
    )
    db.add(workout)
    db.commit()
    db.refresh(workout)
    logger.info(f"Workout {workout.id} assigned to user {user.id}")
    return {
        "message": "Workout assigned successfully",
        "workout": AssignedWorkout.model_validate(workout),
    }


@router.get("/user/{user_id}")
def get_user_workouts(
    user_id: int,
    modality: Optional[Modality] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """A student's workouts (admin only)"""
    query = db.query(Workout).filter(Workout.user_id == user_id)
    if modality is not None:
        query = query.filter(Workout.modality == modality)
    query = _date_filtered(query, start_date, end_date)

    total = query.count()
    workouts = pages.apply(query.order_by(Workout.completed_at.desc(), Workout.id.desc())).all()
    return {
        "workouts": [WorkoutSchema.model_validate(w) for w in workouts],
        "pagination": pages.summary(total),
    }


@router.post("/record", status_code=status.HTTP_201_CREATED)
def record_workout(
    record: WorkoutRecord,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Record a session the caller performed"""
    data = record.model_dump()
    data["completed_at"] = data["completed_at"] or datetime.now(timezone.utc)
    workout = Workout(user_id=current_user.user_id, status=WorkoutStatus.COMPLETED, **data)
    db.add(workout)
    _adjust_totals(db, current_user.user_id, workout, +1)
    db.commit()
    db.refresh(workout)
    return {
        "message": "Workout recorded successfully",
        "workout": WorkoutSchema.model_validate(workout),
    }


@router.get("/my-workouts")
def get_my_workouts(
    modality: Optional[Modality] = None,
    status: Optional[WorkoutStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    query = db.query(Workout).filter(Workout.user_id == current_user.user_id)
    if modality is not None:
        query = query.filter(Workout.modality == modality)
    if status is not None:
        query = query.filter(Workout.status == status)
    query = _date_filtered(query, start_date, end_date)

    total = query.count()
    workouts = pages.apply(query.order_by(Workout.created_at.desc(), Workout.id.desc())).all()
    return {
        "workouts": [WorkoutSchema.model_validate(w) for w in workouts],
        "pagination": pages.summary(total),
    }


@router.put("/my-workouts/{workout_id}")
def update_my_workout(
    workout_id: int,
    record: WorkoutRecord,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    workout = _own_recorded_workout(db, workout_id, current_user.user_id)

    _adjust_totals(db, current_user.user_id, workout, -1)
    for field, value in record.model_dump(exclude_unset=True).items():
        setattr(workout, field, value)
    _adjust_totals(db, current_user.user_id, workout, +1)

    db.commit()
    db.refresh(workout)
    return {
        "message": "Workout updated successfully",
        "workout": WorkoutSchema.model_validate(workout),
    }


@router.delete("/my-workouts/{workout_id}")
def delete_my_workout(
    workout_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    workout = _own_recorded_workout(db, workout_id, current_user.user_id)

    _adjust_totals(db, current_user.user_id, workout, -1)
    db.delete(workout)
    db.commit()
    return {"message": "Workout deleted successfully"}


@router.get("/assigned-workouts")
def get_assigned_workouts(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    workouts = (
        db.query(Workout)
        .filter(Workout.user_id == current_user.user_id, Workout.workout_plan_id.isnot(None))
        .options(selectinload(Workout.workout_plan).selectinload(WorkoutPlan.exercises))
        .order_by(Workout.created_at.desc(), Workout.id.desc())
        .all()
    )
    return {
        "workouts": [AssignedWorkout.model_validate(w) for w in workouts],
        "total": len(workouts),
    }


@router.put("/assigned-workouts/{workout_id}/complete")
def complete_assigned_workout(
    workout_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    workout = (
        db.query(Workout)
        .filter(
            Workout.id == workout_id,
            Workout.user_id == current_user.user_id,
            Workout.status == WorkoutStatus.ASSIGNED,
        )
        .first()
    )
    if not workout:
        raise NotFoundError("Workout not found or already completed")

    workout.status = WorkoutStatus.COMPLETED
    workout.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(workout)
    return {
        "message": "Workout marked as completed",
        "workout": AssignedWorkout.model_validate(workout),
    }


@router.get("/stats")
def get_workout_stats(
    period: str = "month",
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """The caller's totals over a period: week, month or year (default last 30 days)"""
    now = datetime.now(timezone.utc)
    workouts = (
        _date_filtered(db.query(Workout).filter(Workout.user_id == current_user.user_id), _period_start(period, now), now)
        .order_by(Workout.completed_at.asc())
        .all()
    )

    return {
        "period": period,
        "total_workouts": len(workouts),
        "total_distance": sum(w.distance or 0 for w in workouts),
        "total_calories": sum(w.calories or 0 for w in workouts),
        "total_duration": sum(w.duration or 0 for w in workouts),
        "pace_evolution": [
            {"date": w.completed_at, "pace": w.pace, "distance": w.distance}
            for w in workouts
            if w.modality == Modality.RUNNING and w.pace
        ],
        "workouts": [WorkoutSchema.model_validate(w) for w in workouts[-10:]],
    }
