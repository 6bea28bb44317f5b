from urllib.parse import quote

import requests

from signlink.core.logging_config import configure_logging

logger = configure_logging("signlink.integrations.twilio", "signlink.log")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SmsError(Exception):
    pass


class SmsTransport:
    """Sends SMS through the Twilio Messages REST API."""

    def __init__(self, account_sid="", auth_token="", from_number="", timeout=10, session=None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings):
        return cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            timeout=settings.delivery_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send(self, to: str, body: str) -> str:
        """Send one message and return the Twilio message SID."""
        if not self.is_configured:
            raise SmsError("SMS delivery is not configured.")

        url = f"{TWILIO_API_BASE}/Accounts/{quote(self.account_sid, safe='')}/Messages.json"
        try:
            response = self.session.post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SmsError(f"Twilio request failed: {e}") from e

        if not response.ok:
            try:
                message = response.json().get("message") or "Twilio SMS send failed."
            except ValueError:
                message = "Twilio SMS send failed."
            logger.warning(f"Twilio rejected SMS to ***{to[-4:]}: {response.status_code} {message}")
            raise SmsError(message)

        try:
            sid = response.json().get("sid", "")
        except ValueError:
            sid = ""
        logger.info(f"SMS sent to ***{to[-4:]} ({sid or 'no sid'})")
        return sid
