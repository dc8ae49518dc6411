#!/usr/bin/env python3
"""
Create the tables and load an administrator plus sample students.
Safe to run repeatedly: accounts that already exist are left alone.
"""
import logging
import os
import sys
from datetime import datetime

from database import Base, SessionLocal, engine
from dependencies import get_password_hash
from models import Role, StudentProfile, User

logger = logging.getLogger("seed")

ADMIN = {
    "email": "admin@coaching.example.com",
    "name": "Head Coach",
    "phone": "(41) 99999-9999",
}

STUDENTS = [
    {
        "email": "adriane.xavier@example.com",
        "name": "Adriane Xavier da Silva",
        "phone": "(41) 99999-0001",
        "birth_date": datetime(1980, 5, 15),
        "height": 165,
        "weight": 65,
        "goals": "Improve conditioning and lose weight",
        "limitations": "Left knee injury",
    },
    {
        "email": "amanda.melo@example.com",
        "name": "Amanda Melo da Silva",
        "phone": "(41) 99999-0002",
        "birth_date": datetime(1992, 8, 22),
        "height": 170,
        "weight": 58,
        "goals": "Marathon preparation",
        "limitations": None,
    },
    {
        "email": "bruno.camargo@example.com",
        "name": "Bruno Matheus Camargo Brasil",
        "phone": "(41) 99999-0003",
        "birth_date": datetime(1988, 12, 10),
        "height": 180,
        "weight": 80,
        "goals": "Muscle gain",
        "limitations": None,
    },
]


def _ensure_user(db, email, **fields):
    user = db.query(User).filter(User.email == email).first()
    if user is not None:
        logger.info(f"{email} already exists, skipping")
        return user, False
    user = User(email=email, **fields)
    db.add(user)
    return user, True


def seed(admin_password="admin123", student_password="123456"):
    """Create tables and sample accounts; returns the number of accounts created."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    created = 0
    try:
        _, is_new = _ensure_user(db, password=get_password_hash(admin_password), role=Role.ADMIN, **ADMIN)
        created += is_new

        for data in STUDENTS:
            data = dict(data)
            profile = StudentProfile(
                height=data.pop("height"),
                weight=data.pop("weight"),
                goals=data.pop("goals"),
                limitations=data.pop("limitations"),
            )
            user, is_new = _ensure_user(db, password=get_password_hash(student_password), role=Role.STUDENT, **data)
            if is_new:
                user.student_profile = profile
                created += 1

        db.commit()
        logger.info(f"Seed finished, {created} accounts created")
        return created
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        seed(
            admin_password=os.getenv("SEED_ADMIN_PASSWORD", "admin123"),
            student_password=os.getenv("SEED_STUDENT_PASSWORD", "123456"),
        )
    except Exception:
        logger.exception("Seed failed")
        sys.exit(1)
