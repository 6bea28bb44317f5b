# ------------------------------------------------------------------------
# File: contract.py
# Location: signlink/core/contract.py
# Description:
#     The contract document exchanged with the invoice/contract UI. Any
#     JSON the UI (or the database) hands us goes through normalize(),
#     which never raises: invalid or missing fields are replaced with safe
#     defaults so downstream code can rely on a fully populated document.
# ------------------------------------------------------------------------

import math
import re
from dataclasses import dataclass, field, replace
from datetime import date

from signlink.core.timeutil import parse_iso

PROVINCES = (
    "Ontario",
    "British Columbia",
    "Alberta",
    "Quebec",
    "Manitoba",
    "Saskatchewan",
    "Nova Scotia",
    "New Brunswick",
    "Newfoundland and Labrador",
    "Prince Edward Island",
    "Yukon",
    "Northwest Territories",
    "Nunavut",
)
DEFAULT_PROVINCE = "Ontario"

DELIVERY_CHANNELS = ("email", "sms", "auto")
SIGN_TYPES = ("draw", "type")

MAX_PROJECT_FEE = 10_000_000
MAX_TYPED_SIGNATURE_LENGTH = 140
MAX_DRAWN_SIGNATURE_LENGTH = 4_000_000

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
IMAGE_DATA_URL_RE = re.compile(r"^data:image/(png|jpeg|jpg);base64,[A-Za-z0-9+/=]+$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
INT_PREFIX_RE = re.compile(r"^\s*[+-]?\d+")
FLOAT_PREFIX_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True)
class Signer:
    signer_name: str = ""
    mode: str = "draw"
    typed_signature: str = ""
    final_type: str = ""
    final_value: str = ""
    signed_at: str = ""

    @property
    def is_signed(self) -> bool:
        return bool(self.signed_at and self.final_type and self.final_value)

    def to_dict(self) -> dict:
        return {
            "signerName": self.signer_name,
            "mode": self.mode,
            "typedSignature": self.typed_signature,
            "finalType": self.final_type,
            "finalValue": self.final_value,
            "signedAt": self.signed_at,
        }


@dataclass(frozen=True)
class RemoteSigning:
    token: str = ""
    sign_url: str = ""
    expires_at: str = ""
    last_synced_at: str = ""
    sent_at: str = ""
    sent_via: str = ""
    sent_to: str = ""
    notify_owner_email: str = ""
    notify_owner_phone: str = ""
    delivery_channel: str = "auto"

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "signUrl": self.sign_url,
            "expiresAt": self.expires_at,
            "lastSyncedAt": self.last_synced_at,
            "sentAt": self.sent_at,
            "sentVia": self.sent_via,
            "sentTo": self.sent_to,
            "notifyOwnerEmail": self.notify_owner_email,
            "notifyOwnerPhone": self.notify_owner_phone,
            "deliveryChannel": self.delivery_channel,
        }


@dataclass(frozen=True)
class Signatures:
    provider: Signer = field(default_factory=Signer)
    client: Signer = field(default_factory=Signer)

    def to_dict(self) -> dict:
        return {"provider": self.provider.to_dict(), "client": self.client.to_dict()}


@dataclass(frozen=True)
class ContractDocument:
    province: str = DEFAULT_PROVINCE
    business_name: str = "Your Company"
    client_name: str = "Client Name"
    client_email: str = ""
    client_phone: str = ""
    service_type: str = "Professional services"
    start_date: str = ""
    project_fee: float = 0
    payment_due_days: int = 14
    included_revisions: int = 1
    scope_notes: str = ""
    remote_signing: RemoteSigning = field(default_factory=RemoteSigning)
    signatures: Signatures = field(default_factory=Signatures)

    def to_dict(self) -> dict:
        return {
            "province": self.province,
            "businessName": self.business_name,
            "clientName": self.client_name,
            "clientEmail": self.client_email,
            "clientPhone": self.client_phone,
            "serviceType": self.service_type,
            "startDate": self.start_date,
            "projectFee": self.project_fee,
            "paymentDueDays": self.payment_due_days,
            "includedRevisions": self.included_revisions,
            "scopeNotes": self.scope_notes,
            "remoteSigning": self.remote_signing.to_dict(),
            "signatures": self.signatures.to_dict(),
        }

    def with_remote_signing(self, **changes) -> "ContractDocument":
        return replace(self, remote_signing=replace(self.remote_signing, **changes))

    def with_client_signer(self, signer: Signer) -> "ContractDocument":
        return replace(self, signatures=replace(self.signatures, client=signer))


def text(value, fallback: str = "") -> str:
    if not isinstance(value, str):
        return fallback
    return value


def clamp_integer(value, minimum: int, maximum: int, fallback: int) -> int:
    """Lenient integer parse ("14 days" -> 14) clamped into [minimum, maximum]."""
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, float):
        if not math.isfinite(value):
            return fallback
        parsed = int(value)
    elif isinstance(value, int):
        parsed = value
    else:
        match = INT_PREFIX_RE.match(str(value))
        if not match:
            return fallback
        parsed = int(match.group(0))
    return max(minimum, min(maximum, parsed))


def clamp_number(value, minimum: float, maximum: float, fallback: float) -> float:
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        match = FLOAT_PREFIX_RE.match(str(value))
        if not match:
            return fallback
        parsed = float(match.group(0))
    if not math.isfinite(parsed):
        return fallback
    return max(minimum, min(maximum, parsed))


def normalize_province(value) -> str:
    return value if value in PROVINCES else DEFAULT_PROVINCE


def normalize_email(value) -> str:
    candidate = text(value).strip().lower()
    if candidate and EMAIL_RE.match(candidate):
        return candidate
    return ""


def normalize_phone(value) -> str:
    raw = text(value).strip()
    if not raw:
        return ""

    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""

    if raw.startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) >= 8:
        return f"+{digits}"
    return ""


def normalize_date(value, fallback: str) -> str:
    candidate = text(value)
    if ISO_DATE_RE.match(candidate):
        try:
            date.fromisoformat(candidate)
            return candidate
        except ValueError:
            pass
    return fallback


def normalize_delivery_channel(value) -> str:
    return value if value in DELIVERY_CHANNELS else "auto"


def normalize_image_data_url(value) -> str:
    candidate = text(value)
    if IMAGE_DATA_URL_RE.match(candidate):
        return candidate
    return ""


def normalize_signer(raw) -> Signer:
    if not isinstance(raw, dict):
        return Signer()

    final_type = raw.get("finalType") if raw.get("finalType") in SIGN_TYPES else ""
    final_value = text(raw.get("finalValue"))
    if final_type == "draw":
        final_value = normalize_image_data_url(final_value)
    elif final_type == "type" and (
        not final_value.strip() or len(final_value) > MAX_TYPED_SIGNATURE_LENGTH
    ):
        final_value = ""

    signed_at = text(raw.get("signedAt"))
    if parse_iso(signed_at) is None:
        signed_at = ""

    # A signer is signed only when all three parts are present and valid.
    if not (final_type and final_value and signed_at):
        final_type, final_value, signed_at = "", "", ""

    return Signer(
        signer_name=text(raw.get("signerName")),
        mode="type" if raw.get("mode") == "type" else "draw",
        typed_signature=text(raw.get("typedSignature")),
        final_type=final_type,
        final_value=final_value,
        signed_at=signed_at,
    )


def normalize_remote_signing(raw) -> RemoteSigning:
    if not isinstance(raw, dict):
        return RemoteSigning()

    return RemoteSigning(
        token=text(raw.get("token")),
        sign_url=text(raw.get("signUrl")),
        expires_at=text(raw.get("expiresAt")),
        last_synced_at=text(raw.get("lastSyncedAt")),
        sent_at=text(raw.get("sentAt")),
        sent_via=text(raw.get("sentVia")),
        sent_to=text(raw.get("sentTo")),
        notify_owner_email=normalize_email(raw.get("notifyOwnerEmail")),
        notify_owner_phone=normalize_phone(raw.get("notifyOwnerPhone")),
        delivery_channel=normalize_delivery_channel(raw.get("deliveryChannel")),
    )


def normalize(raw, fallback_start_date: str = None) -> ContractDocument:
    """
    Turn arbitrary client-supplied or persisted JSON into a ContractDocument.

    Never raises. Unknown provinces become "Ontario", invalid contact details
    become "", an unparseable start date becomes ``fallback_start_date`` (or
    today) and numbers are clamped into their ranges.
    """
    if isinstance(raw, ContractDocument):
        raw = raw.to_dict()

    today = fallback_start_date or date.today().isoformat()
    base = ContractDocument(start_date=today)

    if not isinstance(raw, dict):
        return base

    signatures = raw.get("signatures") if isinstance(raw.get("signatures"), dict) else {}

    return ContractDocument(
        province=normalize_province(raw.get("province")),
        business_name=text(raw.get("businessName"), base.business_name),
        client_name=text(raw.get("clientName"), base.client_name),
        client_email=normalize_email(raw.get("clientEmail")),
        client_phone=normalize_phone(raw.get("clientPhone")),
        service_type=text(raw.get("serviceType"), base.service_type),
        start_date=normalize_date(raw.get("startDate"), base.start_date),
        project_fee=clamp_number(raw.get("projectFee"), 0, MAX_PROJECT_FEE, base.project_fee),
        payment_due_days=clamp_integer(raw.get("paymentDueDays"), 0, 365, base.payment_due_days),
        included_revisions=clamp_integer(
            raw.get("includedRevisions"), 0, 200, base.included_revisions
        ),
        scope_notes=text(raw.get("scopeNotes")),
        remote_signing=normalize_remote_signing(raw.get("remoteSigning")),
        signatures=Signatures(
            provider=normalize_signer(signatures.get("provider")),
            client=normalize_signer(signatures.get("client")),
        ),
    )


def mask_recipient(channel: str, recipient: str) -> str:
    """Mask an email ("bo***@x.com") or phone ("***4567") for display."""
    if not recipient:
        return ""

    if channel == "email":
        local, _, domain = recipient.partition("@")
        if not local or not domain:
            return recipient
        if len(local) <= 2:
            return f"**@{domain}"
        return f"{local[:2]}***@{domain}"

    digits = re.sub(r"\D", "", recipient)
    if len(digits) < 4:
        return recipient
    return f"***{digits[-4:]}"
