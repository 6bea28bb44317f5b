# File: signlink/api/routes_signing.py
# DESCRIPTION: Server-rendered pages for the remote signer and the signed copy.

from flask import Blueprint, redirect, render_template, request, url_for

from signlink.api.services import get_request_ip, get_services, get_user_agent
from signlink.core.errors import ExpiredLink, NotFound, SignLinkError
from signlink.core.logging_config import configure_logging
from signlink.core.signed_copy import contract_clauses, signed_copy_context

logger = configure_logging("signlink.routes_signing", "signlink.log")

signing_bp = Blueprint("signlink_signing", __name__)


def _unavailable(error: SignLinkError):
    return render_template("link_unavailable.html", message=error.message), error.status_code


def _render_sign_page(token, view, error="", status=200):
    return render_template(
        "sign.html",
        token=token,
        contract=view.contract,
        meta=view.meta,
        clauses=contract_clauses(view.contract),
        error=error,
    ), status


@signing_bp.route("/sign/<token>", methods=["GET"])
def sign_page(token):
    logger.info(f"Opening signing page for token: {token[:8]}...")
    try:
        view = get_services().service.get_link(token)
    except (NotFound, ExpiredLink) as e:
        return _unavailable(e)
    return _render_sign_page(token, view)


@signing_bp.route("/sign/<token>", methods=["POST"])
def submit_signature(token):
    logger.info(f"Submitting signature form for token: {token[:8]}...")
    service = get_services().service
    try:
        service.sign_link(
            token,
            request.form.get("signerName"),
            request.form.get("signType", "type"),
            request.form.get("signValue"),
            ip=get_request_ip(),
            user_agent=get_user_agent(),
        )
    except (NotFound, ExpiredLink) as e:
        return _unavailable(e)
    except SignLinkError as e:
        return _render_sign_page(token, service.get_link(token), error=e.message, status=e.status_code)

    return redirect(url_for("signlink_signing.signed_copy", token=token))


@signing_bp.route("/signed/<token>", methods=["GET"])
def signed_copy(token):
    try:
        view = get_services().service.render_signed_copy(token)
    except NotFound:
        return "Signed copy not found.", 404
    return render_template("signed_copy.html", **signed_copy_context(view.contract, view.meta))
