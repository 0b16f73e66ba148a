"""
Racing callers against one session, each on its own connection to the
file-backed test database.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from otpgate.crud import crud
from otpgate.crud.crud import IssuedOTPSession, VerifiedOTPSession
from otpgate.models.models import OTPSession
from otpgate.utils.errors import (
    AttemptsExceeded,
    InvalidCode,
    InvalidOrExpiredSession,
    OTPError,
    PersistenceError,
)

TRANSFER = {"type": "transfer", "amount": 900, "currency": "USD"}


def _race(session_factory, callers, call):
    """Run `call(db)` from `callers` threads released together; collect results or OTP errors."""
    start = threading.Barrier(callers)

    def _one(_):
        db = session_factory()
        try:
            start.wait()
            try:
                return call(db)
            except OTPError as e:
                return e
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=callers) as pool:
        return list(pool.map(_one, range(callers)))


def _wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


@pytest.mark.parametrize("callers", [4, 10])
def test_parallel_wrong_codes_never_exceed_the_ceiling(session_factory, db, clock, account_holder, callers):
    issued = crud.create_otp_session(db, account_holder.id, TRANSFER)
    wrong = _wrong(issued.code)

    outcomes = _race(session_factory, callers, lambda s: crud.verify_otp_session(s, issued.session_token, wrong))

    invalid = [o for o in outcomes if isinstance(o, InvalidCode)]
    assert len(invalid) <= issued.max_attempts - 1
    assert all(
        isinstance(o, (InvalidCode, AttemptsExceeded, InvalidOrExpiredSession, PersistenceError))
        for o in outcomes
    )
    assert len({o.remaining_attempts for o in invalid}) == len(invalid)

    db.expire_all()
    row = db.query(OTPSession).filter(OTPSession.session_token == issued.session_token).first()
    assert row is None or row.attempts <= issued.max_attempts

    with pytest.raises((InvalidCode, AttemptsExceeded, InvalidOrExpiredSession)):
        crud.verify_otp_session(db, issued.session_token, wrong)


def test_parallel_correct_codes_release_the_payload_once(session_factory, db, clock, account_holder):
    issued = crud.create_otp_session(db, account_holder.id, TRANSFER)

    outcomes = _race(session_factory, 5, lambda s: crud.verify_otp_session(s, issued.session_token, issued.code))

    released = [o for o in outcomes if isinstance(o, VerifiedOTPSession)]
    assert len(released) == 1
    assert released[0].payload == TRANSFER
    assert all(isinstance(o, (InvalidOrExpiredSession, PersistenceError)) for o in outcomes if o is not released[0])


def test_parallel_creates_leave_one_live_session(session_factory, db, clock, account_holder):
    outcomes = _race(
        session_factory, 4,
        lambda s: crud.create_otp_session(s, account_holder.id, {"type": "transfer", "amount": 1}),
    )

    issued = [o for o in outcomes if isinstance(o, IssuedOTPSession)]
    assert issued
    assert all(isinstance(o, (IssuedOTPSession, PersistenceError)) for o in outcomes)

    db.expire_all()
    rows = db.query(OTPSession).filter(OTPSession.user_id == account_holder.id).all()
    assert len(rows) == 1
    live = rows[0].session_token
    assert live in {i.session_token for i in issued}

    for stale in (i for i in issued if i.session_token != live):
        with pytest.raises(InvalidOrExpiredSession):
            crud.verify_otp_session(db, stale.session_token, stale.code)
    winner = next(i for i in issued if i.session_token == live)
    assert crud.verify_otp_session(db, live, winner.code).user_id == account_holder.id
