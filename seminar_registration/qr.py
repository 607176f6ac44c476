"""
QR credential helpers

The credential is a PNG QR code of a compact JSON payload
{"id", "email", "paidAt"}. The scanner posts back either that decoded
text or just the participant id.
"""

import base64
import json
from io import BytesIO
from typing import Optional

import qrcode

from .exceptions import InvalidInputException


def build_qr_payload(participant_id: str, email: str, paid_at: str) -> str:
    return json.dumps(
        {"id": participant_id, "email": email, "paidAt": paid_at},
        separators=(",", ":"),
    )


def render_qr_data_url(payload: str, box_size: int = 8, border: int = 2) -> str:
    """Render payload as a QR code and return it as a PNG data URL"""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{encoded}"


def parse_scanned_payload(scanned: Optional[str]) -> str:
    """
    Extract the participant id from scanned QR text

    Accepts the JSON payload produced by build_qr_payload or a bare id.

    Raises:
        InvalidInputException: If no id can be found
    """
    text = (scanned or "").strip()
    if not text:
        raise InvalidInputException("payload", "Missing participant ID")

    if not text.startswith("{"):
        return text

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        raise InvalidInputException("payload", "Unrecognized QR payload")

    participant_id = data.get("id") if isinstance(data, dict) else None
    if not participant_id:
        raise InvalidInputException("payload", "QR does not contain participant id")
    return str(participant_id)
