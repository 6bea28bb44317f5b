# ------------------------------------------------------------------------
# File: delivery.py
# Location: signlink/core/delivery.py
# Description:
#     Chooses a channel (email or SMS) for the client signing link and
#     fans out signed-copy notifications. Link delivery raises on any
#     failure so the caller can leave the sign request untouched;
#     signed-copy notifications never raise for transport problems and
#     instead report one result per (channel, recipient) attempt.
# ------------------------------------------------------------------------

import smtplib
from dataclasses import dataclass, field
from typing import List, Tuple

from signlink.core import messages
from signlink.core.contract import ContractDocument, mask_recipient, normalize_email, normalize_phone
from signlink.core.errors import ChannelUnavailable, DeliveryFailed, NoDeliveryPath, PreconditionFailed
from signlink.core.logging_config import configure_logging
from signlink.integrations.twilio.sms import SmsError

logger = configure_logging("signlink.delivery", "signlink.log")

EMAIL = "email"
SMS = "sms"
AUTO = "auto"

TRANSPORT_ERRORS = (smtplib.SMTPException, OSError, SmsError, RuntimeError)


@dataclass(frozen=True)
class DeliveryReceipt:
    channel: str
    recipient: str

    @property
    def masked_recipient(self) -> str:
        return mask_recipient(self.channel, self.recipient)


@dataclass(frozen=True)
class DeliveryAttempt:
    channel: str
    recipient: str
    success: bool
    error: str = ""

    def to_dict(self) -> dict:
        data = {"channel": self.channel, "recipient": mask_recipient(self.channel, self.recipient)}
        if not self.success:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class NotificationSummary:
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    signed_copy_url: str = ""

    @property
    def sent(self) -> List[DeliveryAttempt]:
        return [attempt for attempt in self.attempts if attempt.success]

    @property
    def failed(self) -> List[DeliveryAttempt]:
        return [attempt for attempt in self.attempts if not attempt.success]

    @property
    def sent_count(self) -> int:
        return len(self.sent)

    @property
    def targets(self) -> List[dict]:
        return [attempt.to_dict() for attempt in self.sent]


def provider_has_signed(contract: ContractDocument) -> bool:
    provider = contract.signatures.provider
    return bool(provider.signed_at and provider.final_type and provider.final_value)


def _unique(values) -> list:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class DeliveryDispatcher:
    def __init__(self, email_transport, sms_transport):
        self.email_transport = email_transport
        self.sms_transport = sms_transport

    @property
    def email_configured(self) -> bool:
        return self.email_transport is not None and self.email_transport.is_configured

    @property
    def sms_configured(self) -> bool:
        return self.sms_transport is not None and self.sms_transport.is_configured

    def _send_link_email(self, to, sign_url, contract):
        message = messages.sign_link_email(contract, sign_url)
        self.email_transport.send(to, message.subject, message.text, message.html)

    def _send_link_sms(self, to, sign_url, contract):
        self.sms_transport.send(to, messages.sign_link_sms(contract, sign_url))

    def _dispatch(self, channel, recipient, send, *args) -> DeliveryReceipt:
        try:
            send(recipient, *args)
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Sign link {channel} delivery to {mask_recipient(channel, recipient)} failed: {e}")
            raise DeliveryFailed(f"Could not send signature link by {channel}: {e}") from e
        logger.info(f"Sign link sent by {channel} to {mask_recipient(channel, recipient)}")
        return DeliveryReceipt(channel=channel, recipient=recipient)

    def send_sign_link(self, channel, email, phone, sign_url, contract: ContractDocument) -> DeliveryReceipt:
        """
        Deliver the client signing link.

        Explicit channels must have both a contact and a configured provider
        (ChannelUnavailable otherwise). ``auto`` prefers email and falls back
        to SMS, raising NoDeliveryPath when neither can be used.
        """
        if not provider_has_signed(contract):
            raise PreconditionFailed()

        email = normalize_email(email)
        phone = normalize_phone(phone)

        if not email and not phone:
            raise NoDeliveryPath("Client email or phone is required.")

        if channel == EMAIL:
            if not email:
                raise ChannelUnavailable("A valid client email is required.")
            if not self.email_configured:
                raise ChannelUnavailable("Email delivery is not configured on server.")
            return self._dispatch(EMAIL, email, self._send_link_email, sign_url, contract)

        if channel == SMS:
            if not phone:
                raise ChannelUnavailable("A valid client phone is required.")
            if not self.sms_configured:
                raise ChannelUnavailable("SMS delivery is not configured on server.")
            return self._dispatch(SMS, phone, self._send_link_sms, sign_url, contract)

        if email and self.email_configured:
            return self._dispatch(EMAIL, email, self._send_link_email, sign_url, contract)
        if phone and self.sms_configured:
            return self._dispatch(SMS, phone, self._send_link_sms, sign_url, contract)

        raise NoDeliveryPath(
            "Delivery provider is not configured. Set SMTP_* (email) and/or TWILIO_* (sms) "
            "environment variables."
        )

    def signed_copy_tasks(self, contract: ContractDocument) -> List[Tuple[str, str]]:
        """Ordered (channel, recipient) pairs for the signed-copy fan-out."""
        remote = contract.remote_signing
        tasks = []
        if self.email_configured:
            emails = _unique([normalize_email(contract.client_email), normalize_email(remote.notify_owner_email)])
            tasks.extend((EMAIL, email) for email in emails)
        if self.sms_configured:
            phones = _unique([normalize_phone(contract.client_phone), normalize_phone(remote.notify_owner_phone)])
            tasks.extend((SMS, phone) for phone in phones)
        return tasks

    def send_signed_copy_notifications(self, contract: ContractDocument, signed_copy_url: str) -> NotificationSummary:
        attempts = []
        for channel, recipient in self.signed_copy_tasks(contract):
            try:
                if channel == EMAIL:
                    message = messages.signed_copy_email(contract, signed_copy_url)
                    self.email_transport.send(recipient, message.subject, message.text, message.html)
                else:
                    self.sms_transport.send(recipient, messages.signed_copy_sms(contract, signed_copy_url))
            except TRANSPORT_ERRORS as e:
                logger.warning(
                    f"Signed copy {channel} to {mask_recipient(channel, recipient)} failed: {e}"
                )
                attempts.append(DeliveryAttempt(channel, recipient, success=False, error=str(e)))
                continue
            attempts.append(DeliveryAttempt(channel, recipient, success=True))

        return NotificationSummary(attempts=attempts, signed_copy_url=signed_copy_url)
