from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Boolean, Text, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from otpgate.database.database import Base
from otpgate.schemas.enums import UserRole

# ---------- USER ----------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    otp_session = relationship("OTPSession", back_populates="user", uselist=False, cascade="all, delete-orphan")


# ---------- OTP SESSION ----------
class OTPSession(Base):
    """
    A staged transaction waiting for its one-time code.

    user_id is unique: a user owns at most one session row, so a concurrent
    second insert for the same user is rejected by the database.
    """
    __tablename__ = "otp_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_token = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    staged_payload = Column(Text, nullable=False)  # serialized verbatim, never parsed here
    code = Column(String(12), nullable=False)  # plaintext: the privileged delivery path reads it back
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    verified = Column(Boolean, default=False, nullable=False, index=True)
    resend_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_sent_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="otp_session")
