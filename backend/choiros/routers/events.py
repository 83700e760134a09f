"""
Routers liés à un événement : liste des présences et QR code de check-in.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from choiros.database import get_db
from choiros.schemas.attendance import AttendanceResponse
from choiros.schemas.checkin_qr import CheckInQrPayload
from choiros.services import attendance_service, qr_service
from choiros.tenancy import ALL_ROLES, TenantContext, require_roles

router = APIRouter(prefix="/api/v1/events", tags=["Événements"])


@router.get(
    "/{event_id}/attendance",
    response_model=List[AttendanceResponse],
    summary="Présences d'un événement",
)
def list_event_attendance(
    event_id: int,
    ctx: TenantContext = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    """Retourne les présences enregistrées pour l'événement. 404 si l'événement est introuvable."""
    try:
        return attendance_service.list_event_attendance(db, ctx.organization_id, event_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "/{event_id}/checkin-qr",
    response_model=CheckInQrPayload,
    response_model_by_alias=True,
    summary="Payload du QR code de check-in",
)
def get_checkin_qr(
    event_id: int,
    ctx: TenantContext = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    """Payload JSON encodé dans le QR code affiché à l'entrée de l'événement."""
    try:
        event = attendance_service.get_event(db, ctx.organization_id, event_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return qr_service.build_checkin_payload(event)


@router.get("/{event_id}/checkin-qr.png", summary="Image PNG du QR code de check-in")
def get_checkin_qr_image(
    event_id: int,
    ctx: TenantContext = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    """Image PNG à imprimer ou afficher à l'entrée de l'événement."""
    try:
        event = attendance_service.get_event(db, ctx.organization_id, event_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    payload = qr_service.build_checkin_payload(event)
    return Response(
        content=qr_service.generate_qr_image(payload.to_wire()),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr-event-{event_id}.png"},
    )
