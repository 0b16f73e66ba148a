import hmac
import json
import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from otpgate.config import OTP_LENGTH, OTP_EXPIRE_MINUTES, OTP_MAX_ATTEMPTS
from otpgate.models.models import OTPSession, User
from otpgate.schemas.enums import UserRole
from otpgate.schemas.user import UserCreate
from otpgate.utils.errors import (
    AttemptsExceeded,
    InvalidCode,
    InvalidOrExpiredSession,
    InvalidSession,
    PersistenceError,
)
from otpgate.utils.security import hash_password

logger = logging.getLogger(__name__)

# Receives (email, phone, code) once a code has been committed
Notifier = Callable[[Optional[str], Optional[str], str], Any]

# ----------------------------
# Helpers
# ----------------------------

def _utcnow() -> datetime:
    """Return current UTC time with timezone."""
    return datetime.now(timezone.utc)


def _generate_numeric_otp(length: int = OTP_LENGTH) -> str:
    """Generate a secure numeric OTP as a zero-padded string."""
    if length <= 0:
        length = 6
    return str(secrets.randbelow(10 ** length)).zfill(length)


def _generate_session_token() -> str:
    """64 hex chars from 32 random bytes."""
    return secrets.token_hex(32)


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _short(token: str) -> str:
    return (token or "")[:8]


def _serialize_payload(payload: Any) -> str:
    try:
        return json.dumps(payload)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Staged payload is not serializable: {exc}") from exc


@contextmanager
def _storage(db: Session, operation: str):
    """Roll back and re-raise storage failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("OTP %s failed on storage: %s", operation, exc)
        raise PersistenceError() from exc


def _open_session_filter(session_token: str, now: datetime):
    """Unverified and unexpired: the only sessions a code may be checked against."""
    return (
        OTPSession.session_token == session_token,
        OTPSession.verified == False,
        OTPSession.expires_at > now,
    )


def _delete_by_token(db: Session, session_token: str) -> int:
    return (
        db.query(OTPSession)
        .filter(OTPSession.session_token == session_token)
        .delete(synchronize_session=False)
    )


# ----------------------------
# Results
# ----------------------------

@dataclass(frozen=True)
class IssuedOTPSession:
    session_token: str
    code: str
    expires_at: datetime
    user_id: int
    max_attempts: int


@dataclass(frozen=True)
class VerifiedOTPSession:
    user_id: int
    payload: Any


@dataclass(frozen=True)
class ReissuedOTP:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class OTPDelivery:
    code: str
    user_id: int
    email: Optional[str]
    phone: Optional[str]
    expires_at: datetime


# ---------------------------- USERS ----------------------------
def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def get_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.id).all()


def create_user(db: Session, user: UserCreate, role: UserRole = UserRole.USER) -> User:
    db_user = User(
        name=user.name,
        email=user.email,
        phone=user.phone,
        hashed_password=hash_password(user.password),
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


# ---------------------------- OTP SESSIONS ----------------------------
def create_otp_session(
    db: Session,
    user_id: int,
    payload: Any,
    notify: Optional[Notifier] = None,
) -> IssuedOTPSession:
    """
    Stage `payload` for `user_id` behind a fresh one-time code.

    Any earlier session of the user is removed in the same transaction as the
    insert. `notify` is called with the owner's contact details and the code
    only after the commit; its failures are logged and never undo the session.
    """
    if not user_id:
        raise ValueError("user_id is required")
    blob = _serialize_payload(payload)

    with _storage(db, "create"):
        user = get_user(db, user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")
        email, phone = user.email, user.phone

        now = _utcnow()
        code = _generate_numeric_otp()
        token = _generate_session_token()
        expires_at = now + timedelta(minutes=OTP_EXPIRE_MINUTES)

        replaced = (
            db.query(OTPSession)
            .filter(OTPSession.user_id == user_id)
            .delete(synchronize_session=False)
        )
        db.add(OTPSession(
            session_token=token,
            user_id=user_id,
            staged_payload=blob,
            code=code,
            expires_at=expires_at,
            attempts=0,
            max_attempts=OTP_MAX_ATTEMPTS,
            verified=False,
            resend_count=0,
            created_at=now,
            last_sent_at=now,
        ))
        # A concurrent create for the same user loses on the unique user_id here
        db.commit()

    logger.info("OTP session %s created for user_id=%s (replaced=%s)", _short(token), user_id, replaced)

    if notify is not None:
        try:
            notify(email, phone, code)
        except Exception as e:
            logger.exception("OTP delivery hand-off failed for session %s: %s", _short(token), e)

    return IssuedOTPSession(
        session_token=token,
        code=code,
        expires_at=expires_at,
        user_id=user_id,
        max_attempts=OTP_MAX_ATTEMPTS,
    )


def verify_otp_session(db: Session, session_token: str, code: str) -> VerifiedOTPSession:
    """
    Check `code` against the session and release the staged payload on a match.

    Every call that reaches the comparison consumes one attempt. A wrong code
    that uses up the last attempt deletes the session. A matched session is
    marked verified and kept until the sweep removes it.
    """
    now = _utcnow()
    code = (code or "").strip()

    with _storage(db, "verify"):
        session = (
            db.query(OTPSession)
            .populate_existing()
            .filter(*_open_session_filter(session_token, now))
            .first()
        )
        if not session:
            raise InvalidOrExpiredSession()

        user_id, blob = session.user_id, session.staged_payload

        if session.attempts >= session.max_attempts:
            _delete_by_token(db, session_token)
            db.commit()
            logger.warning("OTP session %s removed: attempts exhausted", _short(session_token))
            raise AttemptsExceeded()

        # Guarded increment: concurrent callers cannot push attempts past the ceiling
        consumed = (
            db.query(OTPSession)
            .filter(
                *_open_session_filter(session_token, now),
                OTPSession.attempts < OTPSession.max_attempts,
            )
            .update({OTPSession.attempts: OTPSession.attempts + 1}, synchronize_session=False)
        )
        if not consumed:
            exhausted = (
                db.query(OTPSession.id)
                .filter(
                    OTPSession.session_token == session_token,
                    OTPSession.verified == False,
                    OTPSession.attempts >= OTPSession.max_attempts,
                )
                .first()
            )
            if exhausted:
                _delete_by_token(db, session_token)
                db.commit()
                raise AttemptsExceeded()
            db.commit()
            raise InvalidOrExpiredSession()

        # Read back inside the same transaction; the row stays locked by our update
        attempts, max_attempts, stored_code = (
            db.query(OTPSession.attempts, OTPSession.max_attempts, OTPSession.code)
            .filter(OTPSession.session_token == session_token)
            .one()
        )

        if not constant_time_equals(stored_code, code):
            if attempts >= max_attempts:
                _delete_by_token(db, session_token)
                db.commit()
                logger.warning("OTP session %s removed after %s failed attempts", _short(session_token), attempts)
                raise AttemptsExceeded()
            db.commit()
            logger.info("OTP session %s: wrong code (%s/%s)", _short(session_token), attempts, max_attempts)
            raise InvalidCode(remaining_attempts=max_attempts - attempts)

        marked = (
            db.query(OTPSession)
            .filter(OTPSession.session_token == session_token, OTPSession.verified == False)
            .update({OTPSession.verified: True}, synchronize_session=False)
        )
        db.commit()
        if not marked:
            # Another request verified it between our read and this update
            raise InvalidOrExpiredSession()

    logger.info("OTP session %s verified for user_id=%s", _short(session_token), user_id)
    return VerifiedOTPSession(user_id=user_id, payload=json.loads(blob))


def resend_otp_session(
    db: Session,
    session_token: str,
    notify: Optional[Notifier] = None,
) -> ReissuedOTP:
    """
    Replace the code of an unverified session and restart its clock.

    Expiry is not checked: a resend may revive a lapsed session because it
    sets a new deadline. Attempts go back to zero.
    """
    now = _utcnow()
    code = _generate_numeric_otp()
    expires_at = now + timedelta(minutes=OTP_EXPIRE_MINUTES)

    with _storage(db, "resend"):
        updated = (
            db.query(OTPSession)
            .filter(OTPSession.session_token == session_token, OTPSession.verified == False)
            .update(
                {
                    OTPSession.code: code,
                    OTPSession.expires_at: expires_at,
                    OTPSession.last_sent_at: now,
                    OTPSession.attempts: 0,
                    OTPSession.resend_count: OTPSession.resend_count + 1,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            db.rollback()
            raise InvalidSession()
        email, phone = (
            db.query(User.email, User.phone)
            .join(OTPSession, OTPSession.user_id == User.id)
            .filter(OTPSession.session_token == session_token)
            .one()
        )
        db.commit()

    logger.info("OTP session %s re-issued", _short(session_token))

    if notify is not None:
        try:
            notify(email, phone, code)
        except Exception as e:
            logger.exception("OTP delivery hand-off failed for session %s: %s", _short(session_token), e)

    return ReissuedOTP(code=code, expires_at=expires_at)


def cleanup_expired_sessions(db: Session) -> int:
    """Delete every session past its deadline. Best effort: storage errors are logged and return 0."""
    now = _utcnow()
    try:
        deleted = (
            db.query(OTPSession)
            .filter(OTPSession.expires_at < now)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to cleanup expired OTP sessions: %s", exc)
        return 0
    if deleted:
        logger.info("Removed %s expired OTP sessions", deleted)
    return deleted


def get_otp_for_delivery(db: Session, session_token: str) -> OTPDelivery:
    """
    Privileged read of the live code and the owner's contact details.

    Only the delivery subsystem and admin tooling may call this; it must never
    be reachable from the request path that submits the code.
    """
    now = _utcnow()
    with _storage(db, "delivery read"):
        row = (
            db.query(OTPSession.code, OTPSession.user_id, OTPSession.expires_at, User.email, User.phone)
            .join(User, User.id == OTPSession.user_id)
            .filter(*_open_session_filter(session_token, now))
            .first()
        )
    if not row:
        raise InvalidSession()
    logger.info("OTP session %s read through the privileged channel", _short(session_token))
    return OTPDelivery(code=row.code, user_id=row.user_id, email=row.email, phone=row.phone, expires_at=row.expires_at)


def list_active_sessions(db: Session) -> List[OTPSession]:
    """Unverified, unexpired sessions, newest first."""
    now = _utcnow()
    with _storage(db, "list"):
        return (
            db.query(OTPSession)
            .filter(OTPSession.verified == False, OTPSession.expires_at > now)
            .order_by(OTPSession.created_at.desc())
            .all()
        )


def delete_otp_session(db: Session, session_token: str) -> bool:
    with _storage(db, "delete"):
        deleted = _delete_by_token(db, session_token)
        db.commit()
    if deleted:
        logger.info("OTP session %s deleted by admin", _short(session_token))
    return bool(deleted)
