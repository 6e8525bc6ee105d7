"""QR image rendering for printed feedback cards."""

import io

import qrcode


def feedback_url(base_url: str, qr_code_id: str) -> str:
    """Public URL a scanned code opens."""
    base = (base_url or "").rstrip("/")
    return f"{base}/feedback/{qr_code_id}"


def render_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
