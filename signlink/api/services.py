# File: signlink/api/services.py
# DESCRIPTION: Per-app service container stored on app.extensions["signlink"].

from dataclasses import dataclass

from flask import current_app, request

from signlink.config import Settings
from signlink.core.janitor import RetentionJanitor
from signlink.core.lifecycle import SignLinkService
from signlink.core.rate_limit import RateLimiter
from signlink.core.store import SignRequestStore

EXTENSION_KEY = "signlink"


@dataclass
class AppServices:
    settings: Settings
    store: SignRequestStore
    service: SignLinkService
    rate_limiter: RateLimiter
    janitor: RetentionJanitor


def get_services() -> AppServices:
    return current_app.extensions[EXTENSION_KEY]


def get_request_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.remote_addr or ""


def get_user_agent() -> str:
    return request.headers.get("User-Agent", "")
