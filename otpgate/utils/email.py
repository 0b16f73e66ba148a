# otpgate/utils/email.py
import os
import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, To, HtmlContent, PlainTextContent, Email

logger = logging.getLogger(__name__)

SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL")  # verified sender
SENDGRID_SANDBOX = os.getenv("SENDGRID_SANDBOX", "false").lower() in ("1", "true", "yes")


def build_otp_message(to_email: str, code: str, expires_minutes: int) -> Mail:
    subject = "Your transaction confirmation code"
    plain_text = (
        f"Your confirmation code is: {code}\n"
        f"It expires in {expires_minutes} minutes. Never share this code with anyone."
    )
    html = f"""
    <p>Your confirmation code is: <strong>{code}</strong></p>
    <p>It expires in {expires_minutes} minutes.</p>
    <p>If you did not request a transaction, contact support immediately.</p>
    """

    message = Mail(
        from_email=Email(SENDGRID_FROM_EMAIL),
        to_emails=To(to_email),
        subject=subject,
        plain_text_content=PlainTextContent(plain_text),
        html_content=HtmlContent(html)
    )

    # Sandbox mode available for dev (does not deliver)
    if SENDGRID_SANDBOX:
        message.mail_settings = {"sandbox_mode": {"enable": True}}
    return message


def send_otp_email(to_email: str, code: str, expires_minutes: int = 5) -> bool:
    """
    Send a one-time code via SendGrid.
    Returns True if send was accepted (200/202) - logs and returns False on failure.
    """
    if not SENDGRID_API_KEY or not SENDGRID_FROM_EMAIL:
        logger.error("SendGrid not configured (missing API key or sender email).")
        return False

    message = build_otp_message(to_email, code, expires_minutes)

    try:
        client = SendGridAPIClient(SENDGRID_API_KEY)
        resp = client.send(message)
        code_resp = resp.status_code if resp is not None else None
        logger.info("SendGrid send result: %s", code_resp)
        # SendGrid returns 202 on success, treat 200/202 as ok
        if code_resp in (200, 202):
            return True
        logger.warning("SendGrid returned non-2xx: %s %s", code_resp, getattr(resp, "body", ""))
        return False
    except Exception as e:
        logger.exception("Failed to send email via SendGrid: %s", e)
        return False
