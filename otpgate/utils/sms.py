# otpgate/utils/sms.py
import os
import requests
from requests.auth import HTTPBasicAuth

# SMSPortal credentials (set these in the environment / local .env)
SMSP_CLIENT_ID = os.getenv("SMSP_CLIENT_ID")        # the "Client ID" from SMSPortal (username)
SMSP_API_SECRET = os.getenv("SMSP_API_SECRET")      # the "API Secret" from SMSPortal (password)
SMSP_API_URL = os.getenv("SMSP_API_URL", "https://rest.smsportal.com/bulkmessages")
SMSP_TIMEOUT_SECONDS = int(os.getenv("SMSP_TIMEOUT_SECONDS", 15))


class SMSDeliveryError(Exception):
    pass


def normalize_number(num: str) -> str:
    """Convert a 00-prefixed number to +; anything else is returned stripped.
    Numbers are expected in international format."""
    if not num:
        return num
    s = num.strip().replace(" ", "")
    if s.startswith("00"):
        return "+" + s[2:]
    return s


def send_sms(message: str, to_number: str) -> dict:
    """
    Send SMS using SMSPortal bulk endpoint.
    - Expects SMSP_CLIENT_ID and SMSP_API_SECRET in env.
    - Returns parsed JSON response from SMSPortal, raises SMSDeliveryError on failure.
    """
    if not SMSP_CLIENT_ID or not SMSP_API_SECRET:
        raise SMSDeliveryError("SMSPortal credentials not configured. Set SMSP_CLIENT_ID and SMSP_API_SECRET.")
    if not to_number:
        raise SMSDeliveryError("Destination number not provided.")

    payload = {
        "messages": [
            {
                "content": message,
                "destination": normalize_number(to_number)
            }
        ]
    }

    try:
        resp = requests.post(
            SMSP_API_URL,
            json=payload,
            auth=HTTPBasicAuth(SMSP_CLIENT_ID, SMSP_API_SECRET),
            timeout=SMSP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise SMSDeliveryError(f"Network error sending SMS: {e}") from e

    if resp.status_code < 200 or resp.status_code >= 300:
        # include response body for easier debugging
        raise SMSDeliveryError(f"SMSPortal error: {resp.status_code} - {resp.text}")

    try:
        return resp.json()
    except ValueError:
        return {"raw_response": resp.text}
