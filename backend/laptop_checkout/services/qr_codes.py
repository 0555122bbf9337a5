"""QR code rendering for laptop scan URLs."""
from __future__ import annotations

import base64
import logging
from io import BytesIO

import qrcode
from PIL import Image as PILImage

from ..config import settings
from ..domain_errors import InternalError

logger = logging.getLogger(__name__)

QR_IMAGE_SIZE = 300


def laptop_scan_url(unique_id: str) -> str:
    return f"{settings.scan_base_url}/{unique_id}"


def generate_qr_png(data: str, size: int = QR_IMAGE_SIZE) -> bytes:
    """Render data as a square PNG QR code."""
    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        img = img.resize((size, size), PILImage.Resampling.NEAREST)

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()
    except Exception as exc:
        logger.exception("QR code generation failed for %s", data)
        raise InternalError(
            code="SRV_QR_GENERATION_FAILED",
            message="Failed to generate QR code",
        ) from exc


def generate_qr_data_url(data: str, size: int = QR_IMAGE_SIZE) -> str:
    png = generate_qr_png(data, size=size)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def laptop_qr_data_url(unique_id: str) -> str:
    return generate_qr_data_url(laptop_scan_url(unique_id))
