import pytest

from otpgate.utils import email as email_utils
from otpgate.utils import notifications
from otpgate.utils import sms


@pytest.fixture
def channels(monkeypatch):
    calls = {"email": [], "sms": []}

    def _email(to_email, code, expires_minutes=5):
        calls["email"].append((to_email, code, expires_minutes))
        return True

    def _sms(message, to_number):
        calls["sms"].append((message, to_number))
        return {"eventId": 1}

    monkeypatch.setattr(notifications, "send_otp_email", _email)
    monkeypatch.setattr(notifications, "send_sms", _sms)
    return calls


def test_dispatch_uses_every_known_channel(channels):
    result = notifications.dispatch_otp("jane@example.com", "+27830000001", "482913", expires_minutes=5)

    assert result == {"email": True, "sms": True}
    assert channels["email"] == [("jane@example.com", "482913", 5)]
    message, number = channels["sms"][0]
    assert "482913" in message and number == "+27830000001"


def test_dispatch_skips_missing_contacts(channels):
    assert notifications.dispatch_otp(None, None, "482913") == {"email": False, "sms": False}
    assert channels == {"email": [], "sms": []}


def test_dispatch_never_raises(monkeypatch):
    def _boom(*args, **kwargs):
        raise sms.SMSDeliveryError("gateway timeout")

    monkeypatch.setattr(notifications, "send_otp_email", lambda *a, **k: False)
    monkeypatch.setattr(notifications, "send_sms", _boom)

    assert notifications.dispatch_otp("jane@example.com", "+27830000001", "482913") == {"email": False, "sms": False}


def test_email_without_sendgrid_config_is_not_sent(monkeypatch):
    monkeypatch.setattr(email_utils, "SENDGRID_API_KEY", None)
    assert email_utils.send_otp_email("jane@example.com", "482913") is False


def test_sms_requires_credentials(monkeypatch):
    monkeypatch.setattr(sms, "SMSP_CLIENT_ID", None)
    with pytest.raises(sms.SMSDeliveryError):
        sms.send_sms("hello", to_number="+27830000001")


class _FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


def test_sms_posts_to_gateway(monkeypatch):
    captured = {}

    def _post(url, json=None, auth=None, timeout=None):
        captured.update(url=url, json=json, timeout=timeout)
        return _FakeResponse(200, {"cost": 1})

    monkeypatch.setattr(sms, "SMSP_CLIENT_ID", "client")
    monkeypatch.setattr(sms, "SMSP_API_SECRET", "secret")
    monkeypatch.setattr(sms.requests, "post", _post)

    assert sms.send_sms("code 1", to_number="0027830000001") == {"cost": 1}
    assert captured["json"]["messages"][0]["destination"] == "+27830000001"


def test_sms_gateway_error(monkeypatch):
    monkeypatch.setattr(sms, "SMSP_CLIENT_ID", "client")
    monkeypatch.setattr(sms, "SMSP_API_SECRET", "secret")
    monkeypatch.setattr(sms.requests, "post", lambda *a, **k: _FakeResponse(401, {"error": "auth"}))

    with pytest.raises(sms.SMSDeliveryError):
        sms.send_sms("code 1", to_number="+27830000001")


@pytest.mark.parametrize("raw, expected", [
    ("+27830000001", "+27830000001"),
    ("0027830000001", "+27830000001"),
    (" +1 555 0001 ", "+15550001"),
])
def test_normalize_number(raw, expected):
    assert sms.normalize_number(raw) == expected
