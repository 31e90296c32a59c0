"""QR code rendering for the pairing page."""

import base64
import io

import qrcode


def qr_code_to_base64(code: str) -> str:
    """Convert QR code string to base64 PNG image."""
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(code)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")


def qr_code_to_data_url(code: str) -> str:
    """Render a pairing code as a PNG data URL usable directly in <img src>."""
    return f"data:image/png;base64,{qr_code_to_base64(code)}"
