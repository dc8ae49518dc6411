import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


class Role(str, enum.Enum):
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class EventType(str, enum.Enum):
    TRAINING = "TRAINING"
    COMPETITION = "COMPETITION"
    WORKSHOP = "WORKSHOP"
    SOCIAL = "SOCIAL"


class EvaluationType(str, enum.Enum):
    INITIAL = "INITIAL"
    MONTHLY = "MONTHLY"
    FINAL = "FINAL"


class Modality(str, enum.Enum):
    RUNNING = "RUNNING"
    MUSCLE_TRAINING = "MUSCLE_TRAINING"
    FUNCTIONAL = "FUNCTIONAL"
    TRAIL_RUNNING = "TRAIL_RUNNING"


class PlanStatus(str, enum.Enum):
    PROPOSED = "PROPOSED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkoutStatus(str, enum.Enum):
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    role = Column(Enum(Role, name="user_role"), nullable=False, default=Role.STUDENT)
    phone = Column(String, nullable=True)
    birth_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student_profile = relationship(
        "StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    workouts = relationship(
        "Workout", back_populates="user", foreign_keys="Workout.user_id", cascade="all, delete-orphan"
    )
    evaluations = relationship("Evaluation", back_populates="user", cascade="all, delete-orphan")
    event_attendances = relationship("EventAttendance", back_populates="user", cascade="all, delete-orphan")


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    height = Column(Float, nullable=True)
    weight = Column(Float, nullable=True)
    goals = Column(Text, nullable=True)
    limitations = Column(Text, nullable=True)
    total_workouts = Column(Integer, nullable=False, default=0)
    total_calories = Column(Float, nullable=False, default=0)
    total_distance = Column(Float, nullable=False, default=0)

    user = relationship("User", back_populates="student_profile")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String, nullable=True)
    type = Column(Enum(EventType, name="event_type"), nullable=False)
    max_attendees = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    attendances = relationship("EventAttendance", back_populates="event", cascade="all, delete-orphan")

    @property
    def attendance_count(self) -> int:
        return len(self.attendances)


class EventAttendance(Base):
    __tablename__ = "event_attendances"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_attendance_event_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    confirmed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    event = relationship("Event", back_populates="attendances")
    user = relationship("User", back_populates="event_attendances")


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(EvaluationType, name="evaluation_type"), nullable=False)
    weight = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    body_fat = Column(Float, nullable=True)
    muscle_mass = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    evaluated_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="evaluations")


class WorkoutPlan(Base):
    __tablename__ = "workout_plans"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    modality = Column(Enum(Modality, name="modality"), nullable=False)
    type = Column(String, nullable=True)  # ramp, intervals, base...
    course_type = Column(String, nullable=True)  # uphill, downhill, flat...
    status = Column(Enum(PlanStatus, name="plan_status"), nullable=False, default=PlanStatus.PROPOSED)
    order = Column(Integer, nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    workout_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    exercises = relationship(
        "Exercise", back_populates="workout_plan", cascade="all, delete-orphan",
        order_by="Exercise.sequence",
    )
    workouts = relationship("Workout", back_populates="workout_plan", cascade="all, delete-orphan")


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, index=True)
    workout_plan_id = Column(Integer, ForeignKey("workout_plans.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=True)
    name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    sets = Column(Integer, nullable=True)
    reps = Column(Integer, nullable=True)
    load = Column(Float, nullable=True)
    interval = Column(String, nullable=True)
    instruction = Column(Text, nullable=True)
    observation = Column(Text, nullable=True)

    workout_plan = relationship("WorkoutPlan", back_populates="exercises")


class Workout(Base):
    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workout_plan_id = Column(Integer, ForeignKey("workout_plans.id", ondelete="CASCADE"), nullable=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    modality = Column(Enum(Modality, name="modality"), nullable=False)
    type = Column(String, nullable=True)
    course_type = Column(String, nullable=True)
    duration = Column(Float, nullable=True)  # minutes
    distance = Column(Float, nullable=True)  # km
    pace = Column(String, nullable=True)
    calories = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    additional_workout_type = Column(String, nullable=True)
    status = Column(Enum(WorkoutStatus, name="workout_status"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="workouts", foreign_keys=[user_id])
    assigned_by_user = relationship("User", foreign_keys=[assigned_by])
    workout_plan = relationship("WorkoutPlan", back_populates="workouts")
