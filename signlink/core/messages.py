# File: signlink/core/messages.py
# DESCRIPTION: Subject/body text for the sign-link and signed-copy notifications.

from dataclasses import dataclass

from markupsafe import escape

from signlink.core.contract import ContractDocument
from signlink.core.signed_copy import (
    add_days_to_date,
    format_cad,
    format_date_human,
    format_datetime_human,
)


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    text: str
    html: str


def _provider_signer(contract: ContractDocument) -> str:
    return contract.signatures.provider.signer_name or contract.business_name


def sign_link_email(contract: ContractDocument, sign_url: str) -> EmailMessage:
    business = contract.business_name or "A business"
    provider = _provider_signer(contract)
    provider_signed_at = format_datetime_human(contract.signatures.provider.signed_at)
    fee = format_cad(contract.project_fee)
    due_date = format_date_human(add_days_to_date(contract.start_date, contract.payment_due_days))
    client = contract.client_name or "Client"
    service = contract.service_type or "-"
    footer = (
        "This secure link opens your signer-only page where contract terms are locked "
        "and only your signature can be submitted."
    )

    text = "\n".join([
        f"Hello {client},",
        "",
        f"{business} has requested your signature on a service agreement.",
        f"Provider signed by: {provider} on {provider_signed_at}",
        f"Service: {service}",
        f"Project fee: {fee}",
        f"Payment due: {contract.payment_due_days} day(s) by {due_date}",
        "",
        f"Sign here: {sign_url}",
        "",
        footer,
    ])

    html = "".join([
        f"<p>Hello {escape(client)},</p>",
        f"<p><strong>{escape(business)}</strong> has requested your signature on a service agreement.</p>",
        f"<p><strong>Provider signed by:</strong> {escape(provider)} on {escape(provider_signed_at)}</p>",
        "<ul>",
        f"<li>Service: {escape(service)}</li>",
        f"<li>Project fee: {escape(fee)}</li>",
        f"<li>Payment due: {escape(str(contract.payment_due_days))} day(s) by {escape(due_date)}</li>",
        "</ul>",
        f'<p><a href="{escape(sign_url)}">Click here to review and sign</a></p>',
        f"<p>{escape(footer)}</p>",
    ])

    subject = f"{contract.business_name or 'Service Provider'} sent a contract for your signature"
    return EmailMessage(subject=subject, text=text, html=html)


def sign_link_sms(contract: ContractDocument, sign_url: str) -> str:
    business = contract.business_name or "Service Provider"
    service = contract.service_type or "professional services"
    provider = contract.signatures.provider.signer_name or business
    return (
        f"{business} sent your contract for signature (signed by {provider}). "
        f"Service: {service}. Sign here: {sign_url}"
    )


def signed_copy_email(contract: ContractDocument, signed_copy_url: str) -> EmailMessage:
    signed_at = format_datetime_human(contract.signatures.client.signed_at)
    fee = format_cad(contract.project_fee)
    rows = [
        ("Business", contract.business_name or "-"),
        ("Client", contract.client_name or "-"),
        ("Service", contract.service_type or "-"),
        ("Project fee", fee),
        ("Client signed at", signed_at),
    ]

    text = "\n".join(
        ["Signed contract copy", ""]
        + [f"{label}: {value}" for label, value in rows]
        + ["", f"View signed copy: {signed_copy_url}"]
    )
    html = "".join(
        ["<p><strong>Signed contract copy</strong></p>", "<ul>"]
        + [f"<li>{escape(label)}: {escape(value)}</li>" for label, value in rows]
        + ["</ul>", f'<p><a href="{escape(signed_copy_url)}">Open signed copy</a></p>']
    )

    subject = f"Signed contract copy: {contract.business_name or 'Service Agreement'}"
    return EmailMessage(subject=subject, text=text, html=html)


def signed_copy_sms(contract: ContractDocument, signed_copy_url: str) -> str:
    business = contract.business_name or "Service Provider"
    return f"Signed contract copy from {business}: {signed_copy_url}"
