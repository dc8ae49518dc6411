from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from database import get_db, settings
from errors import (
    ForbiddenError, InvalidTokenError, MissingTokenError, TokenExpiredError, UnknownUserError,
)
from models import Role, User
from schemas import TokenData

logger = logging.getLogger(__name__)

# Security setup
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
RESET_TOKEN_EXPIRE = timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)
# auto_error is off so a missing header maps to 401 instead of HTTPBearer's own response
security = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(user_id: int, email: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a session token carrying the user's identity and role."""
    expire = datetime.now(timezone.utc) + (expires_delta if expires_delta is not None else ACCESS_TOKEN_EXPIRE)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": Role(role).value,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def create_reset_token(user_id: int) -> str:
    expire = datetime.now(timezone.utc) + RESET_TOKEN_EXPIRE
    return jwt.encode({"sub": str(user_id), "purpose": "reset", "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)

def _decode(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"require_exp": True})
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError as e:
        logger.info(f"JWT Error: {e}")
        raise InvalidTokenError()

def _user_id(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError()

def verify_token(token: str) -> TokenData:
    """
    Verify a session token and return the identity it carries.

    Raises TokenExpiredError once the embedded expiry has passed and
    InvalidTokenError for a bad signature or a malformed payload.
    """
    payload = _decode(token)
    if payload.get("purpose") is not None:
        raise InvalidTokenError()
    email = payload.get("email")
    if not email:
        raise InvalidTokenError()
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise InvalidTokenError()
    return TokenData(user_id=_user_id(payload), email=email, role=role)

def verify_reset_token(token: str) -> int:
    """Return the user id of a password-reset token."""
    payload = _decode(token)
    if payload.get("purpose") != "reset":
        raise InvalidTokenError()
    return _user_id(payload)

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()

    token_data = verify_token(credentials.credentials)
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        logger.warning(f"Token presented for missing user {token_data.user_id}")
        raise UnknownUserError()
    # The stored record is authoritative for the role
    return TokenData(user_id=user.id, email=user.email, role=user.role)

def require_role(role: Role):
    def role_checker(current_user: TokenData = Depends(get_current_user)) -> TokenData:
        if current_user.role != role:
            if role is Role.ADMIN:
                raise ForbiddenError("Access denied. Administrators only.")
            raise ForbiddenError("Access denied. Students only.")
        return current_user
    return role_checker

get_current_admin_user = require_role(Role.ADMIN)
get_current_student_user = require_role(Role.STUDENT)
