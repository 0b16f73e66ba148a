# otpgate/routers/admin_otp.py
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session
from typing import List

from otpgate.crud import crud
from otpgate.database.database import get_db
from otpgate.models.models import User
from otpgate.routers.otp import otp_http_error
from otpgate.schemas.otp import CleanupResult, OTPDeliveryOut, OTPDeliveryResult, OTPSessionOut
from otpgate.utils.errors import OTPError
from otpgate.utils.notifications import dispatch_otp
from otpgate.utils.security import get_current_user, require_staff

router = APIRouter(
    prefix="/admin/otp",
    tags=["Admin OTP"],
    dependencies=[Depends(require_staff)],
)

logger = logging.getLogger(__name__)


# --------------------- Live sessions ---------------------
@router.get("/sessions", response_model=List[OTPSessionOut])
def list_sessions(db: Session = Depends(get_db)):
    """All unverified, unexpired sessions with their owner's contact details."""
    try:
        sessions = crud.list_active_sessions(db)
    except OTPError as e:
        raise otp_http_error(e)
    return [
        OTPSessionOut(
            session_token=s.session_token,
            user_id=s.user_id,
            user_email=s.user.email if s.user else None,
            user_phone=s.user.phone if s.user else None,
            attempts=s.attempts,
            max_attempts=s.max_attempts,
            resend_count=s.resend_count,
            expires_at=s.expires_at,
            created_at=s.created_at,
            payload=json.loads(s.staged_payload),
        )
        for s in sessions
    ]


@router.delete("/sessions/{session_token}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_token: str, db: Session = Depends(get_db)):
    try:
        deleted = crud.delete_otp_session(db, session_token)
    except OTPError as e:
        raise otp_http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="OTP session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --------------------- Privileged delivery ---------------------
@router.get("/sessions/{session_token}/delivery", response_model=OTPDeliveryOut)
def read_for_delivery(
    session_token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Read the live code for manual delivery. Support tooling only."""
    try:
        delivery = crud.get_otp_for_delivery(db, session_token)
    except OTPError as e:
        raise otp_http_error(e)
    # the owner would be reading their own second factor
    if delivery.user_id == current_user.id:
        logger.warning("User %s refused the code of their own OTP session", current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot read the code of your own session")
    return OTPDeliveryOut(
        code=delivery.code,
        user_id=delivery.user_id,
        email=delivery.email,
        phone=delivery.phone,
        expires_at=delivery.expires_at,
    )


@router.post("/sessions/{session_token}/deliver", response_model=OTPDeliveryResult)
def redeliver(session_token: str, db: Session = Depends(get_db)):
    """Send the current code again without changing it or its deadline."""
    try:
        delivery = crud.get_otp_for_delivery(db, session_token)
    except OTPError as e:
        raise otp_http_error(e)
    return dispatch_otp(delivery.email, delivery.phone, delivery.code)


# --------------------- Housekeeping ---------------------
@router.post("/cleanup", response_model=CleanupResult)
def cleanup(db: Session = Depends(get_db)):
    return CleanupResult(deleted=crud.cleanup_expired_sessions(db))
