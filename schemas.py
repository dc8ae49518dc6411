from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional, Union
from datetime import datetime

from models import EvaluationType, EventType, Modality, PlanStatus, Role, WorkoutStatus


class ORMModel(BaseModel):
    class Config:
        from_attributes = True
        populate_by_name = True


class RequestModel(BaseModel):
    class Config:
        populate_by_name = True


# User schemas
class StudentProfile(ORMModel):
    height: Optional[float] = None
    weight: Optional[float] = None
    goals: Optional[str] = None
    limitations: Optional[str] = None
    total_workouts: int = 0
    total_calories: float = 0
    total_distance: float = 0


class UserSummary(ORMModel):
    id: int
    name: str
    email: EmailStr


class User(ORMModel):
    id: int
    name: str
    email: EmailStr
    role: Role
    phone: Optional[str] = None
    birth_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    student_profile: Optional[StudentProfile] = None


class UserRegister(RequestModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)
    phone: Optional[str] = None
    birth_date: Optional[datetime] = Field(default=None, alias="birthDate")
    height: Optional[float] = Field(default=None, ge=100, le=250)
    weight: Optional[float] = Field(default=None, ge=30, le=200)
    role: Role = Role.STUDENT


class ProfileUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = None
    birth_date: Optional[datetime] = Field(default=None, alias="birthDate")
    height: Optional[float] = Field(default=None, gt=0)
    weight: Optional[float] = Field(default=None, gt=0)
    goals: Optional[str] = None
    limitations: Optional[str] = None


# Authentication schemas
class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class LoginResponse(BaseModel):
    message: str
    token: str
    user: User


class TokenData(BaseModel):
    user_id: int
    email: str
    role: Role


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(RequestModel):
    token: str
    new_password: str = Field(min_length=6, alias="newPassword")


# Event schemas
class EventBase(RequestModel):
    title: str = Field(min_length=3)
    description: Optional[str] = None
    date: datetime
    location: Optional[str] = None
    type: EventType
    max_attendees: Optional[int] = Field(default=None, gt=0, alias="maxAttendees")


class EventCreate(EventBase):
    # Students to invite; every student when omitted
    student_ids: Optional[List[int]] = Field(default=None, alias="studentIds")


class EventUpdate(EventBase):
    pass


class Event(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    date: datetime
    location: Optional[str] = None
    type: EventType
    max_attendees: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AttendanceUpdate(BaseModel):
    confirmed: bool


class Attendance(ORMModel):
    id: int
    event_id: int
    user_id: int
    confirmed: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AttendanceWithUser(Attendance):
    user: UserSummary


class AttendanceWithEvent(Attendance):
    event: Event


class EventDetail(Event):
    attendances: List[AttendanceWithUser] = []
    attendance_count: int = 0


class MyEvent(Event):
    my_attendance: Optional[Attendance] = None


# Evaluation schemas
class EvaluationBase(RequestModel):
    type: EvaluationType
    weight: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    body_fat: Optional[float] = Field(default=None, ge=0, le=100, alias="bodyFat")
    muscle_mass: Optional[float] = Field(default=None, gt=0, alias="muscleMass")
    notes: Optional[str] = None


class EvaluationCreate(EvaluationBase):
    user_id: int = Field(alias="userId")


class EvaluationUpdate(EvaluationBase):
    pass


class Evaluation(ORMModel):
    id: int
    user_id: int
    type: EvaluationType
    weight: Optional[float] = None
    height: Optional[float] = None
    body_fat: Optional[float] = None
    muscle_mass: Optional[float] = None
    notes: Optional[str] = None
    evaluated_at: Optional[datetime] = None


class EvaluationWithUser(Evaluation):
    user: UserSummary


class EvaluationProgress(Evaluation):
    weight_change: float = 0
    body_fat_change: float = 0
    muscle_mass_change: float = 0


class ChartPoint(BaseModel):
    date: Optional[datetime] = None
    value: float


# Workout schemas
class ExerciseIn(RequestModel):
    sequence: Optional[Union[int, str]] = None
    name: Optional[str] = None
    description: Optional[str] = None
    sets: Optional[Union[int, str]] = None
    reps: Optional[Union[int, str]] = None
    load: Optional[Union[float, str]] = None
    interval: Optional[str] = None
    instruction: Optional[str] = None
    observation: Optional[str] = None

    @field_validator("sequence", "sets", "reps", mode="before")
    @classmethod
    def coerce_int(cls, value):
        # Blank or non-numeric spreadsheet cells are stored as empty
        try:
            return int(value) if value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @field_validator("load", mode="before")
    @classmethod
    def coerce_float(cls, value):
        try:
            return float(value) if value not in (None, "") else None
        except (TypeError, ValueError):
            return None


class Exercise(ORMModel):
    id: int
    sequence: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    load: Optional[float] = None
    interval: Optional[str] = None
    instruction: Optional[str] = None
    observation: Optional[str] = None


class WorkoutPlanCreate(RequestModel):
    title: str = Field(min_length=3)
    description: Optional[str] = None
    modality: Modality
    type: Optional[str] = None
    course_type: Optional[str] = Field(default=None, alias="courseType")
    status: PlanStatus = PlanStatus.PROPOSED
    order: Optional[int] = None
    is_favorite: bool = Field(default=False, alias="isFavorite")
    workout_date: datetime = Field(alias="workoutDate")
    user_id: Optional[int] = Field(default=None, alias="userId")
    exercises: Optional[List[ExerciseIn]] = None


class WorkoutPlan(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    modality: Modality
    type: Optional[str] = None
    course_type: Optional[str] = None
    status: PlanStatus
    order: Optional[int] = None
    is_favorite: bool = False
    workout_date: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    exercises: List[Exercise] = []


class AssignWorkout(RequestModel):
    user_id: int = Field(alias="userId")
    workout_plan_id: int = Field(alias="workoutPlanId")
    notes: Optional[str] = None


class WorkoutRecord(RequestModel):
    modality: Modality
    type: Optional[str] = None
    course_type: Optional[str] = Field(default=None, alias="courseType")
    duration: Optional[float] = None
    distance: Optional[float] = None
    pace: Optional[str] = None
    calories: Optional[float] = None
    notes: Optional[str] = None
    additional_workout_type: Optional[str] = Field(default=None, alias="additionalWorkoutType")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")


class Workout(ORMModel):
    id: int
    user_id: int
    workout_plan_id: Optional[int] = None
    assigned_by: Optional[int] = None
    modality: Modality
    type: Optional[str] = None
    course_type: Optional[str] = None
    duration: Optional[float] = None
    distance: Optional[float] = None
    pace: Optional[str] = None
    calories: Optional[float] = None
    notes: Optional[str] = None
    additional_workout_type: Optional[str] = None
    status: Optional[WorkoutStatus] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AssignedWorkout(Workout):
    workout_plan: Optional[WorkoutPlan] = None
