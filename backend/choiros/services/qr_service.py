"""
Génération des QR codes de check-in d'un événement.

Le QR code encode un payload JSON (voir CheckInQrPayload) valable jusqu'à
début de l'événement + CHECKIN_VALIDITY_HOURS.
"""

import io
from datetime import datetime, timedelta, timezone
from typing import Optional

import qrcode

from choiros.config import settings
from choiros.models.event import Event
from choiros.schemas.checkin_qr import CheckInQrPayload


def _epoch_ms(value: datetime) -> int:
    # Les colonnes DateTime sont stockées en UTC sans tzinfo
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def build_checkin_payload(event: Event, now: Optional[datetime] = None) -> CheckInQrPayload:
    """Construit le payload de check-in d'un événement."""
    generated_at = now or datetime.now(timezone.utc)
    valid_until = event.start_at + timedelta(hours=settings.CHECKIN_VALIDITY_HOURS)
    return CheckInQrPayload(
        type=settings.CHECKIN_QR_TYPE,
        event_id=event.id,
        event_title=event.title,
        timestamp=_epoch_ms(generated_at),
        valid_until=_epoch_ms(valid_until),
    )


def generate_qr_image(data: str) -> bytes:
    """Génère une image PNG du QR code encodant data."""
    qr = qrcode.QRCode(box_size=10, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
