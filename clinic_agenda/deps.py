# clinic_agenda/deps.py
"""
Contexto de la petición y permisos por rol.

La identidad la resuelve el gateway / servicio de identidad externo y llega
en cabeceras:
    X-Tenant-Id, X-User-Id, X-User-Role
`X-Admin-Token` igual a ADMIN_TOKEN otorga super_admin.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from . import models

logger = logging.getLogger(__name__)

SUPER_ADMIN = "super_admin"

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    SUPER_ADMIN: frozenset({
        "waiting_list_view", "waiting_list_manage", "waiting_list_auto_schedule",
        "appointment_view", "appointment_create", "appointment_update",
        "settings_view", "settings_update",
        "registry_view", "registry_manage",
        "super_admin_access",
    }),
    "clinic_owner": frozenset({
        "waiting_list_view", "waiting_list_manage", "waiting_list_auto_schedule",
        "appointment_view", "appointment_create", "appointment_update",
        "settings_view", "settings_update",
        "registry_view", "registry_manage",
    }),
    "clinic_manager": frozenset({
        "waiting_list_view", "waiting_list_manage", "waiting_list_auto_schedule",
        "appointment_view", "appointment_create", "appointment_update",
        "settings_view", "settings_update",
        "registry_view", "registry_manage",
    }),
    "professional": frozenset({
        "waiting_list_view",
        "appointment_view", "appointment_update",
        "settings_view",
        "registry_view",
    }),
    "receptionist": frozenset({
        "waiting_list_view", "waiting_list_manage",
        "appointment_view", "appointment_create", "appointment_update",
        "settings_view",
        "registry_view", "registry_manage",
    }),
}


@dataclass(frozen=True)
class RequestContext:
    tenant_id: int
    user_id: Optional[str]
    role: str

    def can(self, permission: str) -> bool:
        return permission in ROLE_PERMISSIONS.get(self.role, frozenset())


def is_admin_token(x_admin_token: Optional[str]) -> bool:
    expected = (settings.ADMIN_TOKEN or "").strip()
    return bool(expected) and (x_admin_token or "").strip() == expected


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = (settings.ADMIN_TOKEN or "").strip()
    if not expected:
        raise HTTPException(status_code=403, detail="ADMIN_TOKEN não configurado")
    if (x_admin_token or "").strip() != expected:
        raise HTTPException(status_code=401, detail="Token inválido")


def get_context(
    x_tenant_id: Optional[int] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_admin_token: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> RequestContext:
    if x_tenant_id is None:
        raise HTTPException(status_code=401, detail="Cabeçalho X-Tenant-Id ausente")

    role = (x_user_role or "").strip()
    if is_admin_token(x_admin_token):
        role = SUPER_ADMIN
    elif role == SUPER_ADMIN:
        # super_admin sólo con el token
        raise HTTPException(status_code=403, detail="Acesso de super admin requer token")
    if role not in ROLE_PERMISSIONS:
        raise HTTPException(status_code=403, detail="Perfil de usuário inválido")

    tenant = db.get(models.Tenant, x_tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Clínica não encontrada")
    if not tenant.is_active and role != SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Clínica inativa")

    return RequestContext(tenant_id=tenant.id, user_id=x_user_id, role=role)


def require_permission(permission: str) -> Callable[..., RequestContext]:
    def _dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        if not ctx.can(permission):
            logger.warning("Permiso denegado: user=%s role=%s perm=%s", ctx.user_id, ctx.role, permission)
            raise HTTPException(status_code=403, detail="Permissão insuficiente")
        return ctx
    return _dep
