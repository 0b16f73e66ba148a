"""
Failures surfaced by the OTP session operations.

Every error carries a stable ``reason`` string that routers pass through to
clients. Lookup failures share one reason so a client cannot tell an unknown
token from an expired or already used one.
"""
from typing import Optional


class OTPError(Exception):
    reason = "otp_error"
    message = "OTP operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class PersistenceError(OTPError):
    reason = "persistence_error"
    message = "Session storage is unavailable"


class InvalidOrExpiredSession(OTPError):
    reason = "invalid_or_expired_session"
    message = "Invalid or expired OTP session"


class AttemptsExceeded(OTPError):
    reason = "max_attempts_exceeded"
    message = "Maximum OTP attempts exceeded"


class InvalidSession(OTPError):
    reason = "invalid_session"
    message = "Invalid OTP session"


class InvalidCode(OTPError):
    reason = "invalid_code"

    def __init__(self, remaining_attempts: int):
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Invalid OTP. {remaining_attempts} attempts remaining.")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["remaining_attempts"] = self.remaining_attempts
        return data
