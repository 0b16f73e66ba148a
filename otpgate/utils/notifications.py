import logging
from typing import Dict, Optional

from otpgate.config import OTP_EXPIRE_MINUTES
from otpgate.schemas.enums import DeliveryChannel
from otpgate.utils.email import send_otp_email
from otpgate.utils.sms import send_sms

logger = logging.getLogger(__name__)


def format_otp_sms(code: str, expires_minutes: int) -> str:
    return f"Your transaction confirmation code is {code}. It expires in {expires_minutes} minutes. Do not share it."


def dispatch_otp(
    email: Optional[str],
    phone: Optional[str],
    code: str,
    expires_minutes: int = OTP_EXPIRE_MINUTES,
) -> Dict[str, bool]:
    """
    Deliver a one-time code to every contact channel the user has.
    Does not raise exceptions (logs instead); returns which channels accepted the message.
    """
    result = {DeliveryChannel.EMAIL.value: False, DeliveryChannel.SMS.value: False}

    if email:
        try:
            result[DeliveryChannel.EMAIL.value] = bool(send_otp_email(email, code, expires_minutes=expires_minutes))
        except Exception as e:
            logger.exception("OTP email dispatch failed to %s: %s", email, e)

    if phone:
        try:
            send_sms(format_otp_sms(code, expires_minutes), to_number=phone)
            result[DeliveryChannel.SMS.value] = True
        except Exception as e:
            logger.error("OTP SMS dispatch failed to %s: %s", phone, e)

    if not any(result.values()):
        logger.warning("OTP could not be delivered on any channel (email=%s phone=%s)", email, phone)
    return result
