# ------------------------------------------------------------------------
# File: signature_image.py
# Location: signlink/core/signature_image.py
# Description:
#     Checks that a drawn signature data-URL actually carries a PNG or
#     JPEG image before it is stored on the contract. The pattern check in
#     contract.normalize_image_data_url only covers the URL shape.
# ------------------------------------------------------------------------

import base64
import binascii
import io
import re

from PIL import Image, UnidentifiedImageError

from signlink.core.logging_config import configure_logging

logger = configure_logging(name="signlink.signature_image", logfile="signlink.log")

DATA_URL_RE = re.compile(r"^data:image/(png|jpeg|jpg);base64,(.+)$", re.IGNORECASE)
ALLOWED_FORMATS = {"PNG", "JPEG"}


def decode_signature_image(data_url: str) -> bytes:
    match = DATA_URL_RE.match(data_url or "")
    if not match:
        raise ValueError("Signature is not an image data URL")

    b64_data = match.group(2).strip()
    missing_padding = len(b64_data) % 4
    if missing_padding:
        b64_data += "=" * (4 - missing_padding)

    try:
        return base64.b64decode(b64_data, validate=True)
    except (binascii.Error, ValueError) as decode_err:
        raise ValueError("Unable to decode signature image") from decode_err


def is_valid_signature_image(data_url: str) -> bool:
    """True when the data URL decodes to a PNG/JPEG that Pillow can verify."""
    try:
        signature_bytes = decode_signature_image(data_url)
        with Image.open(io.BytesIO(signature_bytes)) as image:
            image_format = image.format
            image.verify()
    except (ValueError, UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Rejected drawn signature: {e}")
        return False

    return image_format in ALLOWED_FORMATS
