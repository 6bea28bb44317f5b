# File: signlink/core/errors.py
"""
Error taxonomy for the sign-link lifecycle.

Every error carries a stable ``code`` and the HTTP status the API layer maps
it to. Messages are safe to show to the caller verbatim.
"""


class SignLinkError(Exception):
    code = "SIGN_LINK_ERROR"
    status_code = 400
    default_message = "The request could not be completed."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationFailed(SignLinkError):
    code = "VALIDATION_FAILED"
    status_code = 400
    default_message = "The request is missing required information."


class NotFound(SignLinkError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Signature request not found."


class ExpiredLink(SignLinkError):
    code = "EXPIRED_LINK"
    status_code = 410
    default_message = "Signature link has expired."


class PreconditionFailed(SignLinkError):
    code = "PRECONDITION_FAILED"
    status_code = 409
    default_message = "Provider must sign before sending this contract to client."


class OwnerContactRequired(SignLinkError):
    code = "OWNER_CONTACT_REQUIRED"
    status_code = 400
    default_message = "Owner email or phone is required for signed-copy notifications."


class ChannelUnavailable(SignLinkError):
    code = "CHANNEL_UNAVAILABLE"
    status_code = 400
    default_message = "The requested delivery channel is not available."


class NoDeliveryPath(SignLinkError):
    code = "NO_DELIVERY_PATH"
    status_code = 400
    default_message = "No valid client contact or delivery provider is available."


class DeliveryFailed(SignLinkError):
    code = "DELIVERY_FAILED"
    status_code = 502
    default_message = "The delivery provider could not send the message."


class DuplicateToken(SignLinkError):
    code = "DUPLICATE_TOKEN"
    status_code = 500
    default_message = "Generated token already exists."


class RateLimited(SignLinkError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Too many requests. Please retry shortly."
