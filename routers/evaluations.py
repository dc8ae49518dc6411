from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
import logging

from accounts import get_user_by_id
from database import get_db
from dependencies import get_current_admin_user, get_current_user
from errors import ForbiddenError, NotFoundError
from models import Evaluation, EvaluationType, Role
from pagination import PageParams
from schemas import (
    ChartPoint, EvaluationCreate, EvaluationProgress, EvaluationUpdate, EvaluationWithUser, StudentProfile,
    TokenData,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_evaluation_or_404(db: Session, evaluation_id: int) -> Evaluation:
    evaluation = db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()
    if not evaluation:
        raise NotFoundError("Evaluation not found")
    return evaluation


def _check_owner_or_admin(current_user: TokenData, user_id: int) -> None:
    if current_user.role != Role.ADMIN and current_user.user_id != user_id:
        raise ForbiddenError("Access denied")


def _history(db: Session, user_id: int) -> List[Evaluation]:
    return (
        db.query(Evaluation)
        .filter(Evaluation.user_id == user_id)
        .order_by(Evaluation.evaluated_at.asc(), Evaluation.id.asc())
        .all()
    )


def _delta(current: Optional[float], previous: Optional[float]) -> float:
    if current is None or previous is None:
        return 0
    return current - previous


def _progress(evaluations: List[Evaluation]) -> List[EvaluationProgress]:
    """Attach the change of each measurement relative to the previous evaluation."""
    progress = []
    previous = None
    for evaluation in evaluations:
        entry = EvaluationProgress.model_validate(evaluation)
        if previous is not None:
            entry.weight_change = _delta(evaluation.weight, previous.weight)
            entry.body_fat_change = _delta(evaluation.body_fat, previous.body_fat)
            entry.muscle_mass_change = _delta(evaluation.muscle_mass, previous.muscle_mass)
        progress.append(entry)
        previous = evaluation
    return progress


def _series(evaluations: List[Evaluation], field: str) -> List[ChartPoint]:
    return [
        ChartPoint(date=evaluation.evaluated_at, value=getattr(evaluation, field))
        for evaluation in evaluations
        if getattr(evaluation, field) is not None
    ]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_evaluation(
    evaluation: EvaluationCreate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Record a physical evaluation for a user (admin only)"""
    if get_user_by_id(db, evaluation.user_id) is None:
        raise NotFoundError("User not found")

    db_evaluation = Evaluation(**evaluation.model_dump())
    db.add(db_evaluation)
    db.commit()
    db.refresh(db_evaluation)
    return {
        "message": "Evaluation created successfully",
        "evaluation": EvaluationWithUser.model_validate(db_evaluation),
    }


@router.get("/")
def get_evaluations(
    user_id: Optional[int] = None,
    type: Optional[EvaluationType] = None,
    pages: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """Admins see every evaluation (optionally one user's); students only their own"""
    query = db.query(Evaluation)
    if current_user.role == Role.ADMIN:
        if user_id is not None:
            query = query.filter(Evaluation.user_id == user_id)
    else:
        query = query.filter(Evaluation.user_id == current_user.user_id)
    if type is not None:
        query = query.filter(Evaluation.type == type)

    total = query.count()
    evaluations = pages.apply(
        query.options(selectinload(Evaluation.user)).order_by(Evaluation.evaluated_at.desc(), Evaluation.id.desc())
    ).all()

    return {
        "evaluations": [EvaluationWithUser.model_validate(e) for e in evaluations],
        "pagination": pages.summary(total),
    }


@router.get("/my/evolution")
def get_my_evolution(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    return {"evaluations": _progress(_history(db, current_user.user_id))}


@router.get("/stats/overview")
def get_evaluation_stats(
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Evaluation statistics (admin only)"""
    by_type = db.query(Evaluation.type, func.count(Evaluation.id)).group_by(Evaluation.type).all()
    recent = (
        db.query(Evaluation)
        .options(selectinload(Evaluation.user))
        .order_by(Evaluation.evaluated_at.desc(), Evaluation.id.desc())
        .limit(10)
        .all()
    )
    average_body_fat, average_muscle_mass = db.query(
        func.avg(Evaluation.body_fat), func.avg(Evaluation.muscle_mass)
    ).one()

    return {
        "total_evaluations": db.query(Evaluation).count(),
        "evaluations_by_type": [{"type": t, "count": count} for t, count in by_type],
        "recent_evaluations": [EvaluationWithUser.model_validate(e) for e in recent],
        "average_body_fat": average_body_fat,
        "average_muscle_mass": average_muscle_mass,
    }


@router.get("/user/{user_id}/history")
def get_user_history(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """A user's evaluations in chronological order with the change between steps"""
    _check_owner_or_admin(current_user, user_id)
    user = get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")

    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "student_profile": StudentProfile.model_validate(user.student_profile) if user.student_profile else None,
        },
        "evaluations": _progress(_history(db, user_id)),
    }


@router.get("/user/{user_id}/chart")
def get_user_chart(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    _check_owner_or_admin(current_user, user_id)
    evaluations = _history(db, user_id)
    return {
        "chart_data": {
            "weight": _series(evaluations, "weight"),
            "body_fat": _series(evaluations, "body_fat"),
            "muscle_mass": _series(evaluations, "muscle_mass"),
        }
    }


@router.get("/{evaluation_id}")
def get_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    evaluation = _get_evaluation_or_404(db, evaluation_id)
    _check_owner_or_admin(current_user, evaluation.user_id)
    return {"evaluation": EvaluationWithUser.model_validate(evaluation)}


@router.put("/{evaluation_id}")
def update_evaluation(
    evaluation_id: int,
    evaluation_update: EvaluationUpdate,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Update an evaluation (admin only)"""
    evaluation = _get_evaluation_or_404(db, evaluation_id)

    for field, value in evaluation_update.model_dump(exclude_unset=True).items():
        setattr(evaluation, field, value)

    db.commit()
    db.refresh(evaluation)
    return {
        "message": "Evaluation updated successfully",
        "evaluation": EvaluationWithUser.model_validate(evaluation),
    }


@router.delete("/{evaluation_id}")
def delete_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Delete an evaluation (admin only)"""
    evaluation = _get_evaluation_or_404(db, evaluation_id)

    db.delete(evaluation)
    db.commit()
    return {"message": "Evaluation deleted successfully"}
