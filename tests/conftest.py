# ------------------------------------------------------------------------
# File: conftest.py
# Location: tests/conftest.py
# Description:
#     Shared fixtures: a throwaway SQLite store per test, fake email/SMS
#     transports that record what they were asked to send, and a clock the
#     tests can move forward to exercise expiry and retention.
# ------------------------------------------------------------------------

import base64
import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from signlink import create_app
from signlink.config import Settings
from signlink.core.delivery import DeliveryDispatcher
from signlink.core.lifecycle import SignLinkService
from signlink.core.store import SignRequestStore
from signlink.db.session import create_db_engine, create_session_factory, init_db
from signlink.integrations.twilio.sms import SmsError

BASE_URL = "https://sign.example.test"


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 2, 15, 30, 0, 250000, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEmailTransport:
    def __init__(self, configured=True, fail_for=()):
        self.configured = configured
        self.fail_for = set(fail_for)
        self.sent = []

    @property
    def is_configured(self):
        return self.configured

    def send(self, to, subject, text, html):
        if to in self.fail_for:
            raise OSError(f"connection to relay refused for {to}")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


class FakeSmsTransport:
    def __init__(self, configured=True, fail_for=()):
        self.configured = configured
        self.fail_for = set(fail_for)
        self.sent = []

    @property
    def is_configured(self):
        return self.configured

    def send(self, to, body):
        if to in self.fail_for:
            raise SmsError("The 'To' number is not a valid phone number.")
        self.sent.append({"to": to, "body": body})
        return "SM123"


def make_png_data_url(size=(4, 2)) -> str:
    buffer = io.BytesIO()
    Image.new("RGBA", size, (20, 30, 60, 255)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def provider_signed_contract(**overrides) -> dict:
    contract = {
        "province": "Ontario",
        "businessName": "Acme",
        "clientName": "Bo",
        "clientEmail": "bo@x.com",
        "projectFee": 500,
        "paymentDueDays": 14,
        "startDate": "2026-03-02",
        "signatures": {
            "provider": {
                "signerName": "A. Smith",
                "mode": "type",
                "typedSignature": "A. Smith",
                "finalType": "type",
                "finalValue": "A. Smith",
                "signedAt": "2026-03-02T15:00:00.000Z",
            }
        },
    }
    contract.update(overrides)
    return contract


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'signlink-test.db'}")
    init_db(engine)
    yield SignRequestStore(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def sms_transport():
    return FakeSmsTransport()


@pytest.fixture
def dispatcher(email_transport, sms_transport):
    return DeliveryDispatcher(email_transport, sms_transport)


@pytest.fixture
def service(store, dispatcher, clock):
    return SignLinkService(store, dispatcher, BASE_URL, clock=clock)


@pytest.fixture
def settings():
    return Settings(public_base_url=BASE_URL, rate_limit_max=20, run_background_jobs=False)


@pytest.fixture
def app(settings, store, dispatcher, clock):
    app = create_app(settings=settings, store=store, dispatcher=dispatcher, clock=clock, start_background=False)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
