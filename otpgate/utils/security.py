"""
Caller identity for the OTP gate: bcrypt password checks, signed access tokens
and the FastAPI dependencies that resolve the caller and enforce staff access.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from passlib.context import CryptContext
from jose import jwt, JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from otpgate.database.database import get_db
from otpgate.models.models import User
from otpgate.schemas.enums import UserRole
from otpgate.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

# Roles allowed to stage for other users and to use the admin OTP routes
STAFF_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ---------- Passwords ----------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # stored value is not a bcrypt hash
        logger.warning("Unrecognised password hash format")
        return False


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """The user owning `email` if `password` matches, otherwise None."""
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


# ---------- Access tokens ----------
def issue_access_token(user: User, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Bearer token naming the user by email. The role claim is informational only."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user.email,
        "role": user.role.value,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Claims of a valid token; 401 for bad signatures and expired tokens."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Invalid or expired access token")


# ---------- Caller resolution ----------
def is_admin(user) -> bool:
    return getattr(user, "role", None) in STAFF_ROLES


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Resolve the caller from the bearer token. Permissions come from the stored role."""
    email = decode_access_token(token).get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_staff(user: User = Depends(get_current_user)) -> User:
    if not is_admin(user):
        logger.info("User %s refused a staff-only route", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return user
