# ------------------------------------------------------------------------
# File: lifecycle.py
# Location: signlink/core/lifecycle.py
# Description:
#     The remote signing workflow: create a link bound to a contract
#     snapshot, read it back, send it to the client once the provider has
#     signed, and capture the client signature. Every request is PENDING
#     until the first client signature and SIGNED afterwards; re-signing is
#     allowed and only bumps sign_count. Expired requests reject every
#     operation except rendering the signed copy.
# ------------------------------------------------------------------------

import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List
from urllib.parse import quote

from signlink.core.contract import (
    ContractDocument,
    MAX_DRAWN_SIGNATURE_LENGTH,
    MAX_TYPED_SIGNATURE_LENGTH,
    SIGN_TYPES,
    Signer,
    clamp_integer,
    mask_recipient,
    normalize,
    normalize_delivery_channel,
    normalize_email,
    normalize_image_data_url,
    normalize_phone,
)
from signlink.core.delivery import DeliveryReceipt, provider_has_signed
from signlink.core.errors import (
    DuplicateToken,
    ExpiredLink,
    OwnerContactRequired,
    PreconditionFailed,
    ValidationFailed,
)
from signlink.core.logging_config import configure_logging
from signlink.core.signature_image import is_valid_signature_image
from signlink.core.store import SignRequestRecord
from signlink.core.timeutil import to_iso, utcnow
from signlink.db.models import SignEventType

logger = configure_logging("signlink.lifecycle", "signlink.log")

DEFAULT_EXPIRES_IN_DAYS = 30
MAX_EXPIRES_IN_DAYS = 90
TOKEN_ATTEMPTS = 3


def generate_token() -> str:
    # 24 random bytes -> 192 bits, URL-safe base64 without padding.
    return secrets.token_urlsafe(24)


@dataclass(frozen=True)
class SignRequestView:
    contract: ContractDocument
    meta: dict

    def to_dict(self) -> dict:
        return {"contract": self.contract.to_dict(), "meta": self.meta}


def view_of(record: SignRequestRecord) -> SignRequestView:
    return SignRequestView(
        contract=record.contract,
        meta={
            "token": record.token,
            "status": record.status.value,
            "signCount": record.sign_count,
            "createdAt": to_iso(record.created_at),
            "updatedAt": to_iso(record.updated_at),
            "expiresAt": to_iso(record.expires_at),
            "lastSignedAt": to_iso(record.last_signed_at) if record.last_signed_at else None,
        },
    )


@dataclass(frozen=True)
class CreatedLink:
    token: str
    sign_url: str
    expires_at: str
    created_at: str

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "token": self.token,
            "signUrl": self.sign_url,
            "expiresAt": self.expires_at,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class SendResult:
    delivery: DeliveryReceipt
    sent_at: str
    owner_email: str
    owner_phone: str
    sign_url: str

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "delivery": {
                "channel": self.delivery.channel,
                "recipient": self.delivery.masked_recipient,
                "sentAt": self.sent_at,
            },
            "notifications": {
                "ownerEmail": mask_recipient("email", self.owner_email),
                "ownerPhone": mask_recipient("sms", self.owner_phone),
            },
            "signUrl": self.sign_url,
        }


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of the signed-copy fan-out, reported next to (never instead of) the signature."""

    sent: bool = False
    sent_count: int = 0
    sent_at: str = ""
    failures: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sent": self.sent,
            "sentCount": self.sent_count,
            "sentAt": self.sent_at,
            "failedCount": len(self.failures),
        }


@dataclass(frozen=True)
class SignOutcome:
    request: SignRequestView
    notification: NotificationResult

    def to_dict(self) -> dict:
        data = {"ok": True}
        data.update(self.request.to_dict())
        data["notification"] = self.notification.to_dict()
        return data


def _required_text(value, message: str) -> str:
    candidate = value.strip() if isinstance(value, str) else ""
    if not candidate:
        raise ValidationFailed(message)
    return candidate


def validate_sign_value(sign_type: str, value) -> str:
    if sign_type == "type":
        typed = _required_text(value, "Typed signature is required.")
        if len(typed) > MAX_TYPED_SIGNATURE_LENGTH:
            raise ValidationFailed("Typed signature is too long.")
        return typed

    if isinstance(value, str) and len(value) > MAX_DRAWN_SIGNATURE_LENGTH:
        raise ValidationFailed("Drawn signature payload is too large.")
    drawn = normalize_image_data_url(value)
    if not drawn or not is_valid_signature_image(drawn):
        raise ValidationFailed("Drawn signature image is invalid.")
    return drawn


class SignLinkService:
    def __init__(self, store, dispatcher, public_base_url: str, clock=utcnow, token_factory=generate_token):
        self.store = store
        self.dispatcher = dispatcher
        self.public_base_url = public_base_url.rstrip("/")
        self.clock = clock
        self.token_factory = token_factory

    def sign_url(self, token: str) -> str:
        return f"{self.public_base_url}/sign/{quote(token, safe='')}"

    def signed_copy_url(self, token: str) -> str:
        return f"{self.public_base_url}/signed/{quote(token, safe='')}"

    def _load_active(self, token: str) -> SignRequestRecord:
        record = self.store.get(token)
        if record.is_expired(self.clock()):
            raise ExpiredLink()
        return record

    def create_link(self, contract_input, expires_in_days=DEFAULT_EXPIRES_IN_DAYS, ip="", user_agent="") -> CreatedLink:
        if not isinstance(contract_input, (dict, ContractDocument)):
            raise ValidationFailed("Contract details are required.")

        contract = normalize(contract_input)
        days = clamp_integer(expires_in_days, 1, MAX_EXPIRES_IN_DAYS, DEFAULT_EXPIRES_IN_DAYS)
        created_at = self.clock()
        expires_at = created_at + timedelta(days=days)

        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            token = self.token_factory()
            sign_url = self.sign_url(token)
            snapshot = contract.with_remote_signing(
                token=token, sign_url=sign_url, expires_at=to_iso(expires_at)
            )
            try:
                self.store.create(
                    token,
                    snapshot,
                    created_at=created_at,
                    expires_at=expires_at,
                    event_payload={"expiresInDays": days},
                    ip=ip,
                    user_agent=user_agent,
                )
            except DuplicateToken:
                logger.warning(f"Token collision on attempt {attempt}; generating a new token")
                continue

            return CreatedLink(
                token=token,
                sign_url=sign_url,
                expires_at=to_iso(expires_at),
                created_at=to_iso(created_at),
            )

        raise DuplicateToken("Could not allocate a unique signing token.")

    def get_link(self, token: str) -> SignRequestView:
        return view_of(self._load_active(token))

    def send_link(self, token, channel="auto", email="", phone="", owner_email="", owner_phone="", ip="", user_agent="") -> SendResult:
        record = self._load_active(token)
        contract = record.contract
        remote = contract.remote_signing

        if not provider_has_signed(contract):
            raise PreconditionFailed()

        requested_channel = normalize_delivery_channel(channel)
        email = normalize_email(email or contract.client_email)
        phone = normalize_phone(phone or contract.client_phone)
        owner_email = normalize_email(owner_email or remote.notify_owner_email)
        owner_phone = normalize_phone(owner_phone or remote.notify_owner_phone)

        if not owner_email and not owner_phone:
            raise OwnerContactRequired()

        sign_url = self.sign_url(token)
        receipt = self.dispatcher.send_sign_link(requested_channel, email, phone, sign_url, contract)

        sent_at = self.clock()
        self.store.record_delivery(
            token,
            sent_at,
            remote_changes={
                "token": token,
                "sign_url": sign_url,
                "expires_at": to_iso(record.expires_at),
                "sent_at": to_iso(sent_at),
                "sent_via": receipt.channel,
                "sent_to": receipt.recipient,
                "notify_owner_email": owner_email,
                "notify_owner_phone": owner_phone,
                "delivery_channel": requested_channel,
            },
            client_email=email,
            client_phone=phone,
            event_payload={"channel": receipt.channel, "recipient": receipt.recipient},
            ip=ip,
            user_agent=user_agent,
        )
        logger.info(f"Sign link {token[:8]}... sent via {receipt.channel}")

        return SendResult(
            delivery=receipt,
            sent_at=to_iso(sent_at),
            owner_email=owner_email,
            owner_phone=owner_phone,
            sign_url=sign_url,
        )

    def sign_link(self, token, signer_name, sign_type, sign_value, ip="", user_agent="") -> SignOutcome:
        self._load_active(token)

        name = _required_text(signer_name, "Signer name is required.")
        if sign_type not in SIGN_TYPES:
            raise ValidationFailed("Invalid signature type.")
        value = validate_sign_value(sign_type, sign_value)

        signed_at = self.clock()
        client = Signer(
            signer_name=name,
            mode=sign_type,
            typed_signature=value if sign_type == "type" else "",
            final_type=sign_type,
            final_value=value,
            signed_at=to_iso(signed_at),
        )

        updated = self.store.record_signature(
            token,
            client,
            signed_at,
            ip=ip,
            user_agent=user_agent,
            event_payload={"signType": sign_type, "signerName": name},
        )
        logger.info(f"Client signed {token[:8]}... (sign count {updated.sign_count})")

        notification = self._send_signed_copy(updated, ip, user_agent)
        return SignOutcome(request=view_of(updated), notification=notification)

    def _send_signed_copy(self, record: SignRequestRecord, ip: str, user_agent: str) -> NotificationResult:
        # The signature is already committed; nothing here may turn it into a failure.
        try:
            summary = self.dispatcher.send_signed_copy_notifications(
                record.contract, self.signed_copy_url(record.token)
            )
            event_at = self.clock()
            failures = [attempt.to_dict() for attempt in summary.failed]

            if summary.sent_count:
                self.store.append_event(
                    record.token,
                    SignEventType.SIGNED_COPY_SENT,
                    {
                        "sentCount": summary.sent_count,
                        "targets": summary.targets,
                        "signedCopyUrl": summary.signed_copy_url,
                    },
                    ip=ip,
                    user_agent=user_agent,
                    at=event_at,
                )
            if failures:
                self.store.append_event(
                    record.token,
                    SignEventType.SIGNED_COPY_SEND_FAILED,
                    {"message": "Signed-copy notification failed.", "failures": failures},
                    ip=ip,
                    user_agent=user_agent,
                    at=event_at,
                )
        except Exception as e:
            logger.exception(f"Signed-copy notification for {record.token[:8]}... failed")
            self._record_notification_failure(record.token, str(e), ip, user_agent)
            return NotificationResult(failures=[{"error": str(e)}])

        return NotificationResult(
            sent=summary.sent_count > 0,
            sent_count=summary.sent_count,
            sent_at=to_iso(event_at) if summary.sent_count else "",
            failures=failures,
        )

    def _record_notification_failure(self, token, message, ip, user_agent):
        try:
            self.store.append_event(
                token,
                SignEventType.SIGNED_COPY_SEND_FAILED,
                {"message": message or "Signed-copy notification failed."},
                ip=ip,
                user_agent=user_agent,
                at=self.clock(),
            )
        except Exception:
            logger.exception(f"Could not record notification failure for {token[:8]}...")

    def render_signed_copy(self, token: str) -> SignRequestView:
        """Signed copies stay viewable after expiry, until the retention sweep removes them."""
        return view_of(self.store.get(token))
