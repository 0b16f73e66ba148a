# otpgate/routers/otp.py
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from otpgate.crud import crud
from otpgate.database.database import get_db
from otpgate.models.models import User
from otpgate.schemas.otp import (
    CreateOTPSessionRequest,
    OTPResent,
    OTPSessionCreated,
    VerifiedTransaction,
    VerifyOTPRequest,
)
from otpgate.utils.errors import OTPError, PersistenceError
from otpgate.utils.notifications import dispatch_otp
from otpgate.utils.security import get_current_user, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/otp",
    tags=["OTP"],
    dependencies=[Depends(get_current_user)],
)


# --------------------- Helpers ---------------------
def otp_http_error(exc: OTPError) -> HTTPException:
    """Translate an OTP failure into the response the caller can show."""
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_dict())


def background_notifier(background_tasks: BackgroundTasks):
    """Hand the code to the dispatcher after the response is sent."""
    def _notify(email, phone, code):
        background_tasks.add_task(dispatch_otp, email, phone, code)
    return _notify


# --------------------- Stage a transaction ---------------------
@router.post("/sessions", response_model=OTPSessionCreated, status_code=status.HTTP_201_CREATED)
def create_session(
    request: CreateOTPSessionRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Stage a transaction behind a one-time code.
    The code goes out by email/SMS only; the response carries the session token.
    """
    if not is_admin(current_user) and current_user.id != request.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    try:
        issued = crud.create_otp_session(
            db, request.user_id, request.payload, notify=background_notifier(background_tasks)
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OTPError as e:
        raise otp_http_error(e)

    return OTPSessionCreated(
        session_token=issued.session_token,
        expires_at=issued.expires_at,
        max_attempts=issued.max_attempts,
    )


# --------------------- Verify ---------------------
@router.post("/sessions/{session_token}/verify", response_model=VerifiedTransaction)
def verify_session(session_token: str, request: VerifyOTPRequest, db: Session = Depends(get_db)):
    """Return the staged transaction once the code matches; the caller executes it."""
    try:
        verified = crud.verify_otp_session(db, session_token, request.code)
    except OTPError as e:
        raise otp_http_error(e)
    return VerifiedTransaction(user_id=verified.user_id, payload=verified.payload)


# --------------------- Resend ---------------------
@router.post("/sessions/{session_token}/resend", response_model=OTPResent)
def resend_session(
    session_token: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        reissued = crud.resend_otp_session(db, session_token, notify=background_notifier(background_tasks))
    except OTPError as e:
        raise otp_http_error(e)
    return OTPResent(expires_at=reissued.expires_at)
