"""
Router pour les check-ins de présence.
Reçoit les check-ins directs (client online) et ceux rejoués par la synchronisation offline.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from choiros.database import get_db
from choiros.schemas.attendance import AttendanceResponse, AttendanceStats, CheckInRequest
from choiros.services import attendance_service
from choiros.tenancy import MEMBER_ROLES, TenantContext, require_roles

router = APIRouter(prefix="/api/v1/attendance", tags=["Présences"])


@router.post(
    "/check-in",
    response_model=AttendanceResponse,
    status_code=201,
    summary="Enregistrer un check-in",
)
def check_in(
    data: CheckInRequest,
    response: Response,
    ctx: TenantContext = Depends(require_roles(*MEMBER_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Enregistre la présence de l'utilisateur courant à un événement de l'organisation.

    Comportement :
    - 201 : présence créée
    - 200 : présence déjà enregistrée pour (événement, utilisateur), alreadyRecorded=true
    - 404 : événement introuvable dans cette organisation
    - 403 : utilisateur non membre (ou invité)

    checkInAt (optionnel) est l'heure du scan côté client ; il est conservé tel quel.
    """
    try:
        attendance, created = attendance_service.record_check_in(
            db, ctx.organization_id, ctx.user.id, data
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    result = AttendanceResponse.model_validate(attendance)
    if not created:
        response.status_code = 200
        result.already_recorded = True
    return result


@router.get("/me", response_model=List[AttendanceResponse], summary="Mon historique de présence")
def my_attendance(
    limit: Optional[int] = None,
    ctx: TenantContext = Depends(require_roles(*MEMBER_ROLES)),
    db: Session = Depends(get_db),
):
    """Retourne les présences de l'utilisateur courant dans l'organisation, les plus récentes d'abord."""
    return attendance_service.list_user_attendance(db, ctx.organization_id, ctx.user.id, limit)


@router.get("/stats", response_model=AttendanceStats, summary="Mes statistiques de présence")
def my_stats(
    ctx: TenantContext = Depends(require_roles(*MEMBER_ROLES)),
    db: Session = Depends(get_db),
):
    """Nombre d'événements, présences et taux de présence (%) de l'utilisateur courant."""
    return attendance_service.get_attendance_stats(db, ctx.organization_id, ctx.user.id)
