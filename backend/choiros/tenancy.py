"""
Résolution du tenant (organisation) et contrôle des rôles.

Le tenant est identifié :
1. par le sous-domaine de l'en-tête Host (coro1.choiros.app → "coro1")
2. à défaut, par l'en-tête X-Organization-Slug (clients natifs / file offline)

L'utilisateur courant est identifié par l'en-tête X-User-Id.
Version minimale, sera remplacée par la session authentifiée.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from choiros.config import settings
from choiros.database import get_db
from choiros.models.membership import Membership
from choiros.models.organization import Organization
from choiros.models.user import User

logger = logging.getLogger(__name__)

ALL_ROLES = ("admin", "director", "secretary", "capo_section", "member", "guest")
# Tous les membres, invités exclus
MEMBER_ROLES = ("admin", "director", "secretary", "capo_section", "member")


@dataclass
class TenantContext:
    """Organisation résolue pour la requête, avec l'utilisateur et son appartenance."""
    organization: Organization
    user: User
    membership: Optional[Membership] = None

    @property
    def organization_id(self) -> int:
        return self.organization.id

    @property
    def role(self) -> Optional[str]:
        return self.membership.role if self.membership else None


def _strip_port(host: str) -> str:
    if host.startswith("["):
        # IPv6 : [::1]:8000
        return host[1:].split("]")[0]
    if host.count(":") == 1:
        return host.split(":")[0]
    return host


def _is_ip_address(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def extract_tenant_slug(host: str, header_slug: Optional[str] = None) -> Optional[str]:
    """
    Extrait le slug d'organisation depuis le Host, sinon depuis l'en-tête explicite.
    Le port est retiré ; une adresse IP, localhost, www ou le domaine racine ne désignent aucun tenant.
    """
    hostname = _strip_port(host or "")
    if "." in hostname and not _is_ip_address(hostname):
        subdomain = hostname.split(".")[0].lower()
        if subdomain and subdomain not in ("localhost", "www", settings.TENANT_ROOT_DOMAIN):
            return subdomain

    if header_slug and header_slug.strip():
        return header_slug.strip().lower()
    return None


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dépendance FastAPI : utilisateur courant, 401 s'il est absent ou inconnu."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Authentification requise.")
    user = db.execute(select(User).where(User.id == x_user_id)).scalar()
    if user is None:
        raise HTTPException(status_code=401, detail="Authentification requise.")
    return user


def get_tenant_context(
    request: Request,
    x_organization_slug: Optional[str] = Header(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TenantContext:
    """
    Dépendance FastAPI : organisation de la requête + appartenance de l'utilisateur.
    404 si l'organisation ne peut pas être identifiée.
    """
    slug = extract_tenant_slug(request.headers.get("host", ""), x_organization_slug)
    if slug is None:
        raise HTTPException(status_code=404, detail="Organisation introuvable. Vérifiez l'URL.")

    organization = db.execute(select(Organization).where(Organization.slug == slug)).scalar()
    if organization is None:
        raise HTTPException(status_code=404, detail="Organisation introuvable. Vérifiez l'URL.")

    # Seules les appartenances actives donnent un rôle dans l'organisation
    membership = db.execute(
        select(Membership).where(
            Membership.user_id == user.id,
            Membership.organization_id == organization.id,
            Membership.status == "active",
        )
    ).scalar()

    return TenantContext(organization=organization, user=user, membership=membership)


def require_roles(*allowed_roles: str):
    """
    Fabrique de dépendance : exige un rôle parmi allowed_roles dans l'organisation courante.
    403 si l'utilisateur n'est pas membre ou si son rôle est insuffisant.
    """

    def dependency(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        if ctx.role is None:
            raise HTTPException(status_code=403, detail="Vous n'êtes pas membre de cette organisation.")
        if ctx.role not in allowed_roles:
            logger.info(
                "Accès refusé : utilisateur %s, rôle %s, organisation %s",
                ctx.user.id, ctx.role, ctx.organization.slug,
            )
            raise HTTPException(
                status_code=403,
                detail=f"Accès refusé. Rôle requis : {' ou '.join(allowed_roles)}.",
            )
        return ctx

    return dependency
