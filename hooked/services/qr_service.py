"""
QR code generation and parsing for event join links
"""

import io
from typing import Optional
from urllib.parse import parse_qs, urlparse

import qrcode

from hooked.core.config import settings

class QRService:
    """Service for generating and reading join QR codes"""

    @staticmethod
    def get_join_url(event_code: str) -> str:
        """Get the URL that the QR code will point to"""
        return f"{settings.BASE_URL}/join?code={event_code.upper()}"

    @staticmethod
    def generate_event_qr(event_code: str, format: str = 'PNG') -> bytes:
        """Generate QR code for an event's join link"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(QRService.get_join_url(event_code))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()

    @staticmethod
    def parse_scanned_code(text: str) -> Optional[str]:
        """Extract an event code from scanned text.

        Accepts a join URL carrying ``?code=`` or a bare code longer than
        three characters.
        """
        text = (text or "").strip()
        parsed = urlparse(text)
        if parsed.scheme and parsed.netloc:
            codes = parse_qs(parsed.query).get("code")
            return codes[0].strip().upper() if codes and codes[0].strip() else None
        if len(text) > 3:
            return text.upper()
        return None
