# ------------------------------------------------------------------------
# File: test_lifecycle.py
# Location: tests/test_lifecycle.py
# Description:
#     End-to-end behaviour of the signing workflow against a real SQLite
#     store with fake transports: create, read, send, sign, re-sign,
#     expiry and the signed-copy notification bookkeeping.
# ------------------------------------------------------------------------

from datetime import timedelta

import pytest

from conftest import BASE_URL, FakeEmailTransport, FakeSmsTransport, make_png_data_url, provider_signed_contract
from signlink.core.contract import normalize
from signlink.core.delivery import DeliveryDispatcher
from signlink.core.errors import (
    DeliveryFailed,
    DuplicateToken,
    ExpiredLink,
    NotFound,
    OwnerContactRequired,
    PreconditionFailed,
    ValidationFailed,
)
from signlink.core.lifecycle import SignLinkService, generate_token, validate_sign_value
from signlink.core.timeutil import parse_iso, to_iso
from signlink.db.models import SignEventType, SignRequestStatus


def _event_types(store, token):
    return [event.event_type for event in store.list_events(token)]


def _create_and_send(service, **contract_overrides):
    contract = provider_signed_contract(**contract_overrides)
    created = service.create_link(contract)
    service.send_link(created.token, channel="auto", owner_email="owner@acme.com")
    return created


def test_generate_token_is_url_safe_and_unique():
    tokens = {generate_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 32
        assert all(ch.isalnum() or ch in "-_" for ch in token)


def test_create_link_snapshots_contract(service, store, clock):
    created = service.create_link(provider_signed_contract(), expires_in_days=30, ip="203.0.113.9")

    assert created.sign_url == f"{BASE_URL}/sign/{created.token}"
    assert created.created_at == to_iso(clock())
    assert parse_iso(created.expires_at) == clock() + timedelta(days=30)

    record = store.get(created.token)
    assert record.status == SignRequestStatus.PENDING
    assert record.sign_count == 0
    assert record.contract.remote_signing.token == created.token
    assert record.contract.remote_signing.sign_url == created.sign_url
    assert record.contract.remote_signing.expires_at == created.expires_at
    assert _event_types(store, created.token) == [SignEventType.LINK_CREATED]
    assert store.list_events(created.token)[0].payload == {"expiresInDays": 30}


@pytest.mark.parametrize("requested, expected", [
    (0, 1), (-5, 1), (1, 1), (45, 45), (90, 90), (365, 90), ("7", 7), (None, 30), ("soon", 30),
])
def test_create_link_clamps_expiry(service, clock, requested, expected):
    created = service.create_link(provider_signed_contract(), expires_in_days=requested)
    assert parse_iso(created.expires_at) == clock() + timedelta(days=expected)


@pytest.mark.parametrize("bad", [None, "contract", ["a"], 12])
def test_create_link_requires_contract_object(service, bad):
    with pytest.raises(ValidationFailed):
        service.create_link(bad)


def test_create_link_retries_token_collisions(store, dispatcher, clock):
    tokens = iter(["taken", "taken", "fresh"])
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock, token_factory=lambda: next(tokens))
    store.create("taken", normalize(provider_signed_contract()), clock(), clock() + timedelta(days=1))

    created = service.create_link(provider_signed_contract())
    assert created.token == "fresh"


def test_create_link_gives_up_after_three_collisions(store, dispatcher, clock):
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock, token_factory=lambda: "taken")
    store.create("taken", normalize(provider_signed_contract()), clock(), clock() + timedelta(days=1))

    with pytest.raises(DuplicateToken):
        service.create_link(provider_signed_contract())


def test_get_link_returns_snapshot_and_meta(service, clock):
    created = service.create_link(provider_signed_contract())
    view = service.get_link(created.token)

    assert view.contract.business_name == "Acme"
    assert view.meta == {
        "token": created.token,
        "status": "PENDING",
        "signCount": 0,
        "createdAt": to_iso(clock()),
        "updatedAt": to_iso(clock()),
        "expiresAt": created.expires_at,
        "lastSignedAt": None,
    }


def test_unknown_token_is_not_found(service):
    for call in (
        lambda: service.get_link("nope"),
        lambda: service.send_link("nope", owner_email="owner@acme.com"),
        lambda: service.sign_link("nope", "Bo", "type", "Bo"),
        lambda: service.render_signed_copy("nope"),
    ):
        with pytest.raises(NotFound):
            call()


def test_expired_link_rejects_everything_but_signed_copy(service, clock):
    created = service.create_link(provider_signed_contract(), expires_in_days=1)

    clock.advance(days=1)
    assert service.get_link(created.token)

    clock.advance(milliseconds=1)
    with pytest.raises(ExpiredLink):
        service.get_link(created.token)
    with pytest.raises(ExpiredLink):
        service.send_link(created.token, owner_email="owner@acme.com")
    with pytest.raises(ExpiredLink):
        service.sign_link(created.token, "Bo", "type", "Bo")
    assert service.render_signed_copy(created.token).meta["token"] == created.token


def test_send_link_by_email(service, store, email_transport, clock):
    created = service.create_link(provider_signed_contract())
    clock.advance(minutes=2)

    result = service.send_link(created.token, channel="auto", owner_email="Owner@Acme.com", ip="203.0.113.9")

    assert result.delivery.channel == "email"
    assert result.delivery.recipient == "bo@x.com"
    assert result.to_dict()["delivery"] == {"channel": "email", "recipient": "**@x.com", "sentAt": to_iso(clock())}
    assert result.to_dict()["notifications"] == {"ownerEmail": "ow***@acme.com", "ownerPhone": ""}
    assert email_transport.sent[0]["to"] == "bo@x.com"

    record = store.get(created.token)
    remote = record.contract.remote_signing
    assert remote.sent_via == "email"
    assert remote.sent_to == "bo@x.com"
    assert remote.sent_at == to_iso(clock())
    assert remote.notify_owner_email == "owner@acme.com"
    assert record.updated_at == clock()
    assert record.status == SignRequestStatus.PENDING

    sent_event = store.list_events(created.token)[-1]
    assert sent_event.event_type == SignEventType.LINK_SENT
    assert sent_event.payload == {"channel": "email", "recipient": "bo@x.com"}
    assert sent_event.ip == "203.0.113.9"


def test_send_link_uses_explicit_phone(service, store, sms_transport):
    created = service.create_link(provider_signed_contract())
    result = service.send_link(created.token, channel="sms", phone="(416) 555-0199", owner_phone="4165550100")

    assert result.delivery.channel == "sms"
    assert sms_transport.sent[0]["to"] == "+14165550199"
    contract = store.get(created.token).contract
    assert contract.client_phone == "+14165550199"
    assert contract.remote_signing.notify_owner_phone == "+14165550100"
    assert contract.remote_signing.delivery_channel == "sms"


def test_send_link_requires_provider_signature(service, store):
    created = service.create_link({"businessName": "Acme", "clientEmail": "bo@x.com"})
    with pytest.raises(PreconditionFailed):
        service.send_link(created.token, owner_email="owner@acme.com")
    assert _event_types(store, created.token) == [SignEventType.LINK_CREATED]


def test_send_link_requires_owner_contact(service, store, email_transport):
    created = service.create_link(provider_signed_contract())
    with pytest.raises(OwnerContactRequired):
        service.send_link(created.token, channel="email")
    assert email_transport.sent == []


def test_send_link_uses_stored_owner_contact(service):
    created = service.create_link(provider_signed_contract(remoteSigning={"notifyOwnerEmail": "owner@acme.com"}))
    result = service.send_link(created.token)
    assert result.owner_email == "owner@acme.com"


def test_failed_delivery_leaves_request_untouched(store, clock):
    dispatcher = DeliveryDispatcher(FakeEmailTransport(fail_for={"bo@x.com"}), FakeSmsTransport())
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock)
    created = service.create_link(provider_signed_contract())
    before = store.get(created.token)

    with pytest.raises(DeliveryFailed):
        service.send_link(created.token, channel="email", owner_email="owner@acme.com")

    assert store.get(created.token) == before
    assert _event_types(store, created.token) == [SignEventType.LINK_CREATED]


def test_sign_link_records_signature_and_notifies(service, store, email_transport, clock):
    created = _create_and_send(service)
    clock.advance(hours=1)

    outcome = service.sign_link(created.token, "  Bo  ", "type", " Bo ", ip="198.51.100.4", user_agent="UA/1")

    meta = outcome.request.meta
    assert meta["status"] == "SIGNED"
    assert meta["signCount"] == 1
    assert meta["lastSignedAt"] == to_iso(clock())

    client = outcome.request.contract.signatures.client
    assert client.signer_name == "Bo"
    assert client.final_type == "type"
    assert client.final_value == "Bo"
    assert client.typed_signature == "Bo"
    assert client.signed_at == to_iso(clock())
    assert outcome.request.contract.signatures.provider.final_value == "A. Smith"

    assert outcome.notification.sent
    assert outcome.notification.sent_count == 2
    assert outcome.notification.to_dict() == {
        "sent": True, "sentCount": 2, "sentAt": to_iso(clock()), "failedCount": 0,
    }
    recipients = [message["to"] for message in email_transport.sent]
    assert recipients == ["bo@x.com", "bo@x.com", "owner@acme.com"]
    assert f"{BASE_URL}/signed/{created.token}" in email_transport.sent[-1]["text"]

    record = store.get(created.token)
    assert record.signed_by_ip == "198.51.100.4"
    assert record.signed_user_agent == "UA/1"
    assert _event_types(store, created.token) == [
        SignEventType.LINK_CREATED,
        SignEventType.LINK_SENT,
        SignEventType.CLIENT_SIGNED,
        SignEventType.SIGNED_COPY_SENT,
    ]


def test_client_signed_event_matches_signed_at(service, store, clock):
    created = _create_and_send(service)
    clock.advance(minutes=3, microseconds=456789)
    outcome = service.sign_link(created.token, "Bo", "type", "Bo")

    signed_event = [e for e in store.list_events(created.token) if e.event_type == SignEventType.CLIENT_SIGNED][0]
    assert to_iso(signed_event.created_at) == outcome.request.contract.signatures.client.signed_at
    assert signed_event.payload["signCount"] == 1
    assert signed_event.payload["signType"] == "type"


def test_re_signing_overwrites_and_counts(service, store, clock):
    created = _create_and_send(service)
    service.sign_link(created.token, "Bo", "type", "Bo")
    clock.advance(minutes=10)

    drawn = make_png_data_url()
    outcome = service.sign_link(created.token, "Bo Lee", "draw", drawn)

    assert outcome.request.meta["signCount"] == 2
    client = outcome.request.contract.signatures.client
    assert client.signer_name == "Bo Lee"
    assert client.final_type == "draw"
    assert client.final_value == drawn
    assert client.typed_signature == ""
    assert client.signed_at == to_iso(clock())
    assert _event_types(store, created.token).count(SignEventType.CLIENT_SIGNED) == 2


@pytest.mark.parametrize("name, sign_type, value, message", [
    ("", "type", "Bo", "Signer name is required."),
    ("   ", "type", "Bo", "Signer name is required."),
    ("Bo", "stamp", "Bo", "Invalid signature type."),
    ("Bo", "type", "  ", "Typed signature is required."),
    ("Bo", "type", "x" * 150, "Typed signature is too long."),
    ("Bo", "draw", "not-a-data-url", "Drawn signature image is invalid."),
    ("Bo", "draw", "data:image/png;base64,aGVsbG8=", "Drawn signature image is invalid."),
])
def test_sign_link_validation(service, store, name, sign_type, value, message):
    created = _create_and_send(service)
    with pytest.raises(ValidationFailed) as excinfo:
        service.sign_link(created.token, name, sign_type, value)
    assert excinfo.value.message == message

    record = store.get(created.token)
    assert record.sign_count == 0
    assert record.status == SignRequestStatus.PENDING


def test_validate_sign_value_limits():
    assert validate_sign_value("type", "x" * 100) == "x" * 100
    assert validate_sign_value("type", "x" * 140) == "x" * 140
    with pytest.raises(ValidationFailed, match="too large"):
        validate_sign_value("draw", "data:image/png;base64," + "A" * 4_000_000)


def test_notification_failures_do_not_fail_signature(store, clock):
    dispatcher = DeliveryDispatcher(
        FakeEmailTransport(fail_for={"owner@acme.com"}),
        FakeSmsTransport(configured=False),
    )
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock)
    created = _create_and_send(service)

    outcome = service.sign_link(created.token, "Bo", "type", "Bo")

    assert outcome.request.meta["status"] == "SIGNED"
    assert outcome.notification.sent_count == 1
    assert outcome.notification.to_dict()["failedCount"] == 1

    events = store.list_events(created.token)
    assert [e.event_type for e in events][-2:] == [
        SignEventType.SIGNED_COPY_SENT,
        SignEventType.SIGNED_COPY_SEND_FAILED,
    ]
    failed = events[-1].payload["failures"]
    assert failed[0]["recipient"] == "ow***@acme.com"


def test_notification_crash_is_recorded(service, store, monkeypatch):
    created = _create_and_send(service)

    def explode(*args, **kwargs):
        raise ValueError("template blew up")

    monkeypatch.setattr(service.dispatcher, "send_signed_copy_notifications", explode)
    outcome = service.sign_link(created.token, "Bo", "type", "Bo")

    assert outcome.request.meta["signCount"] == 1
    assert not outcome.notification.sent
    assert outcome.notification.failures == [{"error": "template blew up"}]
    last = store.list_events(created.token)[-1]
    assert last.event_type == SignEventType.SIGNED_COPY_SEND_FAILED
    assert last.payload == {"message": "template blew up"}


def test_no_configured_channels_means_no_notification(store, clock):
    dispatcher = DeliveryDispatcher(FakeEmailTransport(), FakeSmsTransport(configured=False))
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock)
    created = _create_and_send(service)
    dispatcher.email_transport.configured = False

    outcome = service.sign_link(created.token, "Bo", "type", "Bo")

    assert outcome.notification.to_dict() == {"sent": False, "sentCount": 0, "sentAt": "", "failedCount": 0}
    assert _event_types(store, created.token)[-1] == SignEventType.CLIENT_SIGNED


def test_render_signed_copy_after_expiry(service, clock):
    created = _create_and_send(service)
    service.sign_link(created.token, "Bo", "type", "Bo")
    clock.advance(days=120)

    view = service.render_signed_copy(created.token)
    assert view.meta["status"] == "SIGNED"
    assert view.contract.signatures.client.final_value == "Bo"


class SignsDuringDispatch(DeliveryDispatcher):
    """Client opens a forwarded link and signs while the link message is still going out."""

    service = None

    def send_sign_link(self, channel, email, phone, sign_url, contract):
        token = sign_url.rsplit("/", 1)[-1]
        self.service.sign_link(token, "Bo", "type", "Bo R.")
        return super().send_sign_link(channel, email, phone, sign_url, contract)


def test_signature_during_delivery_is_kept(store, clock):
    dispatcher = SignsDuringDispatch(FakeEmailTransport(), FakeSmsTransport())
    service = SignLinkService(store, dispatcher, BASE_URL, clock=clock)
    dispatcher.service = service
    created = service.create_link(provider_signed_contract())

    service.send_link(created.token, channel="email", owner_email="owner@acme.com")

    record = store.get(created.token)
    client = record.contract.signatures.client
    assert record.status == SignRequestStatus.SIGNED
    assert record.sign_count == 1
    assert client.is_signed
    assert client.final_value == "Bo R."
    assert record.contract.remote_signing.sent_via == "email"
    assert record.contract.remote_signing.notify_owner_email == "owner@acme.com"
    assert _event_types(store, created.token)[-1] == SignEventType.LINK_SENT
