# backend/dealmatch/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt  # PyJWT
from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .errors import CrossTenantError
from .models import AppUser, Tenant, TenantMembership


@dataclass(frozen=True)
class Principal:
    tenant_id: int
    user_id: int
    email: str
    role: str  # owner | manager | agent | viewer


ROLE_ORDER = {"viewer": 1, "agent": 2, "manager": 3, "owner": 4}


def _require_role(principal: Principal, min_role: str) -> None:
    if ROLE_ORDER.get(principal.role, 0) < ROLE_ORDER.get(min_role, 999):
        raise HTTPException(status_code=403, detail=f"Requires role >= {min_role}")


# -------------------------
# JWT helpers
# -------------------------
def create_access_token(*, user_id: int, tenant_id: int, role: str, minutes: int = 60 * 24) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "tid": int(tenant_id),
        "role": str(role),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(minutes))).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def _decode_token(token: str) -> dict[str, Any]:
    try:
        return dict(jwt.decode(token, settings.jwt_secret, algorithms=["HS256"]))
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# Membership helpers
# -------------------------
def _get_membership(db: Session, tenant_id: int, user_id: int) -> TenantMembership | None:
    return db.scalar(
        select(TenantMembership).where(TenantMembership.tenant_id == tenant_id, TenantMembership.user_id == user_id)
    )


def _principal_for(db: Session, *, tenant_id: int, user: AppUser) -> Principal:
    mem = _get_membership(db, tenant_id=int(tenant_id), user_id=int(user.id))
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this tenant")
    return Principal(tenant_id=int(tenant_id), user_id=int(user.id), email=str(user.email), role=str(mem.role))


def _dev_principal(db: Session, *, tenant_id: int, email: str, role_hint: str) -> Principal:
    tenant = db.get(Tenant, int(tenant_id))
    if tenant is None and settings.dev_auto_provision:
        tenant = Tenant(id=int(tenant_id), slug=f"tenant-{int(tenant_id)}", name=f"Tenant {int(tenant_id)}")
        db.add(tenant)
        db.commit()

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None and settings.dev_auto_provision:
        user = AppUser(email=email, display_name=email.split("@")[0])
        db.add(user)
        db.commit()
        db.refresh(user)

    if tenant is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/tenant")

    mem = _get_membership(db, tenant_id=int(tenant.id), user_id=int(user.id))
    if mem is None and settings.dev_auto_provision:
        mem = TenantMembership(
            tenant_id=int(tenant.id),
            user_id=int(user.id),
            role=role_hint if role_hint in ROLE_ORDER else "agent",
        )
        db.add(mem)
        db.commit()
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this tenant")

    return Principal(tenant_id=int(tenant.id), user_id=int(user.id), email=str(user.email), role=str(mem.role))


# -------------------------
# get_principal
# -------------------------
def get_principal(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    x_tenant_id: Optional[str] = Header(default=None, alias="X-Tenant-Id"),
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> Principal:
    """
    Resolves the active tenant + user. Credentials are owned by the identity
    layer; this only trusts what it hands over.

      1) Authorization: Bearer <jwt>  (claims: sub=user id, tid=tenant id)
      2) dev headers X-Tenant-Id + X-User-Email (ONLY if settings.auth_mode == "dev")
    """
    if authorization and authorization.lower().startswith("bearer "):
        claims = _decode_token(authorization.split(" ", 1)[1].strip())
        try:
            user_id = int(claims.get("sub") or 0)
            tenant_id = int(claims.get("tid") or 0)
        except (TypeError, ValueError):
            raise HTTPException(status_code=401, detail="Malformed token claims")
        user = db.get(AppUser, user_id) if user_id else None
        if user is None or not tenant_id:
            raise HTTPException(status_code=401, detail="Unknown user")
        return _principal_for(db, tenant_id=tenant_id, user=user)

    if settings.auth_mode == "dev":
        email = (x_user_email or "").strip().lower()
        if not email:
            raise HTTPException(status_code=401, detail="Missing X-User-Email for dev auth")
        try:
            tenant_id = int(str(x_tenant_id or "").strip())
        except ValueError:
            raise HTTPException(status_code=401, detail="Missing X-Tenant-Id (active tenant context)")
        role_hint = (x_user_role or "agent").strip().lower()
        return _dev_principal(db, tenant_id=tenant_id, email=email, role_hint=role_hint)

    raise HTTPException(status_code=401, detail="Not authenticated")


def require_tenant(tenant_id: int, p: Principal = Depends(get_principal)) -> Principal:
    """The path's tenant must be the caller's active tenant."""
    if int(tenant_id) != int(p.tenant_id):
        raise CrossTenantError("Tenant does not match the authenticated context")
    return p


def require_agent(p: Principal = Depends(require_tenant)) -> Principal:
    _require_role(p, "agent")
    return p
