"""Occupant QR codes.

The code carries the bare occupant ID; the scanner resolves it by exact
match (see bedbook.domain.scan).
"""

from io import BytesIO

import qrcode


def render_occupant_qr(occupant_id: str, *, box_size: int = 10, border: int = 4) -> bytes:
    """PNG image bytes of a QR code encoding ``occupant_id``."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(occupant_id)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
