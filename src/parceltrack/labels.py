"""Short codes, tracking URLs and QR payloads for printed labels."""

from __future__ import annotations

import base64
import io
import json
import secrets
import string

import qrcode
from qrcode.constants import ERROR_CORRECT_H

SHORT_CODE_ALPHABET = string.digits + string.ascii_uppercase
SHORT_CODE_LENGTH = 6
PAYLOAD_REVISION = 1


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def build_tracking_url(origin: str, short_code: str) -> str:
    return f"{origin.rstrip('/')}/track/{short_code}"


def build_encoded_payload(package_id: str) -> str:
    return json.dumps(
        {"pkg": package_id, "rev": PAYLOAD_REVISION}, separators=(",", ":")
    )


def render_qr_data_url(data: str, *, box_size: int = 10, border: int = 8) -> str:
    """Render ``data`` as a PNG data URL.

    Uses the highest error correction level; labels are printed on thermal
    paper and often partly damaged.
    """
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"
