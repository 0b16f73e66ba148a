# otpgate/schemas/otp.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

# ------------------ STAGING ------------------
class CreateOTPSessionRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    payload: Dict[str, Any]  # transaction request, stored verbatim

class OTPSessionCreated(BaseModel):
    session_token: str
    expires_at: datetime
    max_attempts: int

# ------------------ VERIFY / RESEND ------------------
class VerifyOTPRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=10)

class VerifiedTransaction(BaseModel):
    user_id: int
    payload: Dict[str, Any]

class OTPResent(BaseModel):
    expires_at: datetime

# ------------------ ADMIN ------------------
class OTPSessionOut(BaseModel):
    session_token: str
    user_id: int
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    attempts: int
    max_attempts: int
    resend_count: int
    expires_at: datetime
    created_at: datetime
    payload: Dict[str, Any]

class OTPDeliveryOut(BaseModel):
    code: str
    user_id: int
    email: Optional[str] = None
    phone: Optional[str] = None
    expires_at: datetime

class OTPDeliveryResult(BaseModel):
    email: bool
    sms: bool

class CleanupResult(BaseModel):
    deleted: int
