# ------------------------------------------------------------------------
# File: signed_copy.py
# Location: signlink/core/signed_copy.py
# Description:
#     Contract wording and display formatting shared by the signed-copy
#     page and the outgoing email/SMS messages. The page itself is the
#     Jinja2 template templates/signed_copy.html; this module only builds
#     the values it needs.
# ------------------------------------------------------------------------

from datetime import date, timedelta

from signlink.core.contract import ContractDocument, Signer, clamp_integer, clamp_number, MAX_PROJECT_FEE
from signlink.core.timeutil import parse_iso


def add_days_to_date(start_date: str, days: int) -> str:
    try:
        start = date.fromisoformat(start_date)
    except (TypeError, ValueError):
        return ""
    return (start + timedelta(days=max(0, int(days)))).isoformat()


def format_date_human(value: str) -> str:
    """'2026-10-19' -> 'October 19, 2026'."""
    try:
        day = date.fromisoformat(value)
    except (TypeError, ValueError):
        return "-"
    return f"{day:%B} {day.day}, {day.year}"


def format_datetime_human(value: str) -> str:
    moment = parse_iso(value)
    if moment is None:
        return "-"
    return f"{moment:%b} {moment.day}, {moment.year}, {moment:%H:%M} UTC"


def format_cad(value) -> str:
    amount = clamp_number(value, 0, MAX_PROJECT_FEE, 0)
    return f"${amount:,.2f}"


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def governing_law_clause(province: str) -> str:
    if province == "Quebec":
        return (
            "Governing Law: This agreement is governed by the laws of Quebec and applicable "
            "federal laws of Canada, including the Civil Code of Quebec where relevant."
        )
    return (
        f"Governing Law: This agreement is governed by the laws of {province}, Canada, "
        "and the applicable federal laws of Canada."
    )


def contract_clauses(contract: ContractDocument) -> list:
    start_date = format_date_human(contract.start_date)
    due_date = format_date_human(add_days_to_date(contract.start_date, contract.payment_due_days))
    notes = contract.scope_notes.strip() or "No additional notes were provided."
    service = contract.service_type.strip() or "the listed professional services"
    revisions = clamp_integer(contract.included_revisions, 0, 500, 0)
    due_days = clamp_integer(contract.payment_due_days, 0, 365, 0)

    return [
        f"Scope of Work: The Service Provider will deliver {service} for the Client in a "
        "professional and timely manner as agreed in writing.",
        f"Fees and Payment: The Client will pay {format_cad(contract.project_fee)}. Payment is due "
        f"within {due_days} {_plural(due_days, 'day')} from {start_date} (due by {due_date}).",
        f"Revisions and Change Requests: The fee includes {revisions} {_plural(revisions, 'revision')}. "
        "Additional changes may require a written change order and additional fees.",
        "Independent Contractor: The Service Provider acts as an independent contractor and not as "
        "an employee, partner, or agent of the Client.",
        "Confidentiality: Each party will keep confidential information private and use it only for "
        "performing this agreement.",
        "Intellectual Property: Upon full payment, final deliverables transfer to the Client unless "
        "otherwise stated in writing. Provider retains ownership of pre-existing tools, templates, "
        "and know-how.",
        "Limitation and Liability: Each party is responsible for direct damages caused by its own "
        "breach. To the maximum extent permitted by law, neither party is liable for indirect or "
        "consequential damages.",
        "Termination: Either party may terminate for material breach with written notice and a "
        "reasonable cure period. Services completed up to termination remain payable.",
        governing_law_clause(contract.province),
        f"Additional Notes: {notes}",
    ]


def signer_block(signer: Signer) -> dict:
    return {
        "name": signer.signer_name or "-",
        "signed_at": format_datetime_human(signer.signed_at) if signer.signed_at else "Not signed yet",
        "final_type": signer.final_type if signer.is_signed else "",
        "final_value": signer.final_value if signer.is_signed else "",
    }


def signed_copy_context(contract: ContractDocument, meta: dict) -> dict:
    """Template variables for templates/signed_copy.html."""
    return {
        "meta": meta,
        "summary": [
            ("Province", contract.province),
            ("Business", contract.business_name),
            ("Client", contract.client_name),
            ("Service", contract.service_type),
            ("Start Date", format_date_human(contract.start_date)),
            ("Project Fee", format_cad(contract.project_fee)),
        ],
        "clauses": contract_clauses(contract),
        "provider": signer_block(contract.signatures.provider),
        "client": signer_block(contract.signatures.client),
    }
