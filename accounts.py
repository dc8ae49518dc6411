"""Credential store operations over the ``users`` table."""
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dependencies import get_password_hash, verify_password
from errors import ConflictError
from models import Role, StudentProfile, User
from schemas import UserRegister

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Return the user when the password matches, else None."""
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password):
        return None
    return user


def create_user(db: Session, data: UserRegister) -> User:
    """
    Register a new account; students also get an empty profile.

    The unique index on email is the final arbiter: a concurrent
    registration that slips past the pre-check still ends in ConflictError.
    """
    if get_user_by_email(db, data.email) is not None:
        raise ConflictError("Email already registered")

    user = User(
        email=data.email,
        password=get_password_hash(data.password),
        name=data.name,
        phone=data.phone,
        birth_date=data.birth_date,
        role=data.role,
    )
    if data.role is Role.STUDENT:
        user.student_profile = StudentProfile(height=data.height, weight=data.weight)

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")
    db.refresh(user)
    logger.info(f"Registered {user.role.value} account {user.id}")
    return user


def set_password(db: Session, user: User, new_password: str) -> None:
    user.password = get_password_hash(new_password)
    db.commit()
