# File: signlink/api/routes_api.py
# DESCRIPTION: JSON API used by the contract builder UI and the signer page.

from flask import Blueprint, jsonify, request

from signlink.api.services import get_request_ip, get_services, get_user_agent
from signlink.core.errors import RateLimited
from signlink.core.logging_config import configure_logging

logger = configure_logging("signlink.routes_api", "signlink.log")

api_bp = Blueprint("signlink_api", __name__, url_prefix="/api")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@api_bp.before_request
def enforce_rate_limit():
    if request.method == "OPTIONS":
        return None
    if not get_services().rate_limiter.hit(get_request_ip()):
        logger.warning(f"Rate limit exceeded for {get_request_ip() or 'unknown'}")
        raise RateLimited()
    return None


@api_bp.route("/sign-links", methods=["POST"])
def create_sign_link():
    data = _json_body()
    logger.info("Processing new sign link request")

    created = get_services().service.create_link(
        data.get("contract"),
        data.get("expiresInDays"),
        ip=get_request_ip(),
        user_agent=get_user_agent(),
    )
    return jsonify(created.to_dict()), 201


@api_bp.route("/sign-links/<token>", methods=["GET"])
def get_sign_link(token):
    return jsonify(get_services().service.get_link(token).to_dict())


@api_bp.route("/sign-links/<token>/full-contract", methods=["GET"])
def get_full_contract(token):
    return jsonify(get_services().service.get_link(token).to_dict())


@api_bp.route("/sign-links/<token>/send", methods=["POST"])
def send_sign_link(token):
    data = _json_body()
    logger.info(f"Sending sign link for token: {token[:8]}...")

    result = get_services().service.send_link(
        token,
        channel=data.get("channel"),
        email=data.get("email"),
        phone=data.get("phone"),
        owner_email=data.get("ownerEmail"),
        owner_phone=data.get("ownerPhone"),
        ip=get_request_ip(),
        user_agent=get_user_agent(),
    )
    return jsonify(result.to_dict())


@api_bp.route("/sign-links/<token>/sign", methods=["POST"])
def sign_sign_link(token):
    data = _json_body()
    logger.info(f"Submitting client signature for token: {token[:8]}...")

    outcome = get_services().service.sign_link(
        token,
        data.get("signerName"),
        data.get("signType"),
        data.get("signValue"),
        ip=get_request_ip(),
        user_agent=get_user_agent(),
    )
    return jsonify(outcome.to_dict())
