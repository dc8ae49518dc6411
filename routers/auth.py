from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from accounts import authenticate_user, create_user, get_user_by_email, get_user_by_id, set_password
from database import get_db
from dependencies import (
    create_access_token, create_reset_token, get_current_admin_user, get_current_user, verify_reset_token,
)
from errors import InvalidTokenError, NotFoundError, ValidationError
from schemas import (
    ForgotPasswordRequest, LoginResponse, ResetPasswordRequest, TokenData, User as UserSchema,
    UserLogin, UserRegister,
)

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/login", response_model=LoginResponse)
def login(user_credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, user_credentials.email, user_credentials.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.id, user.email, user.role)
    logger.info(f"User {user.id} logged in")
    return {
        "message": "Login successful",
        "token": access_token,
        "user": UserSchema.model_validate(user),
    }

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    user: UserRegister,
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(get_current_admin_user)
):
    """Create an account (admin only)"""
    db_user = create_user(db, user)
    return {
        "message": "User created successfully",
        "user": UserSchema.model_validate(db_user),
    }

@router.get("/verify")
def verify(
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get current user information
    """
    user = get_user_by_id(db, current_user.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return {"user": UserSchema.model_validate(user)}

@router.post("/logout")
def logout():
    # Tokens are stateless; the client discards its copy
    return {"message": "Logout successful"}

@router.post("/forgot-password")
def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, request.email)
    # Same answer whether or not the email exists
    if user is not None:
        reset_token = create_reset_token(user.id)
        # TODO: deliver reset_token by email once an SMTP provider is configured
        logger.info(f"Password reset requested for user {user.id}")
        logger.debug(f"Reset token for user {user.id}: {reset_token}")
    return {
        "message": "If the email is registered you will receive instructions to reset your password."
    }

@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        user_id = verify_reset_token(request.token)
    except InvalidTokenError:
        raise ValidationError("Invalid or expired token")

    user = get_user_by_id(db, user_id)
    if user is None:
        raise ValidationError("Invalid or expired token")

    set_password(db, user, request.new_password)
    logger.info(f"Password reset for user {user.id}")
    return {"message": "Password reset successfully"}
