"""
QR image rendering for TOTP enrollment.

Turns provisioning data into a PNG an authenticator app can scan. The auth
core only hands over plain data; this is the single place that touches
image libraries.
"""

import io
from typing import TYPE_CHECKING

import qrcode
import qrcode.constants

if TYPE_CHECKING:
    from auth.types import TotpProvisioning

PNG_MIME_TYPE = "image/png"


class QrRenderer:
    """Render TotpProvisioning to PNG bytes."""

    def __init__(self, box_size: int = 10, border: int = 4):
        self._box_size = box_size
        self._border = border

    def render(self, provisioning: "TotpProvisioning") -> tuple[bytes, str]:
        """
        Render the provisioning URI as a QR code.

        Returns:
            Tuple of (PNG bytes, mime type)
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=self._box_size,
            border=self._border,
        )
        qr.add_data(provisioning.uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue(), PNG_MIME_TYPE
