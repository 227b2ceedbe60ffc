# backend/dealmatch/domain/candidate_selection.py
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import CrossTenantError
from ..models import Property
from .match_criteria import MatchCriteria

_BUY_SIDE = frozenset({"AVAILABLE", "UNDER_OFFER"})
_MANAGED = frozenset({"AVAILABLE", "RESERVED", "UNDER_OFFER"})

ELIGIBLE_STATUSES: dict[str, frozenset[str]] = {
    "ACHAT": _BUY_SIDE,
    "VENTE": _BUY_SIDE,
    "LOCATION": frozenset({"AVAILABLE"}),
    "GESTION": _MANAGED,
    "MANDAT": _MANAGED,
}


@dataclass(frozen=True)
class CandidateView:
    """
    Plain-data snapshot of a Property row. Scoring only ever sees these, so it
    never touches the ORM session and can run in another process.
    """

    property_id: int
    tenant_id: int
    internal_reference: Optional[str]
    property_type: str
    status: str

    price: Any
    currency: str

    location_zone: Optional[str]
    city: Optional[str]
    region: Optional[str]
    country: Optional[str]

    surface_area: Any
    rooms: Any
    bedrooms: Any

    # parsed JSON when parseable, otherwise the raw text
    type_specific_data: Any
    created_at: Optional[datetime]


def eligible_statuses(deal_type: str) -> frozenset[str]:
    return ELIGIBLE_STATUSES.get((deal_type or "").strip().upper(), frozenset())


def _parse_type_specific(raw: Optional[str]) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def to_candidate(row: Property) -> CandidateView:
    return CandidateView(
        property_id=int(row.id),
        tenant_id=int(row.tenant_id),
        internal_reference=row.internal_reference,
        property_type=row.property_type,
        status=row.status,
        price=row.price,
        currency=(row.currency or settings.default_currency).upper(),
        location_zone=row.location_zone,
        city=row.city,
        region=row.region,
        country=row.country,
        surface_area=row.surface_area,
        rooms=row.rooms,
        bedrooms=row.bedrooms,
        type_specific_data=_parse_type_specific(row.type_specific_data),
        created_at=row.created_at,
    )


def price_band(criteria: MatchCriteria, multiple: float) -> tuple[Optional[float], Optional[float]]:
    """Wide coarse band around the budget; (None, None) when the deal has no budget."""
    if not criteria.has_budget:
        return None, None
    m = max(1.0, float(multiple))
    lo = criteria.budget_min / m if criteria.budget_min is not None else None
    hi = criteria.budget_max * m if criteria.budget_max is not None else None
    return lo, hi


def select_candidates(
    db: Session,
    *,
    tenant_id: int,
    criteria: MatchCriteria,
    cap: Optional[int] = None,
    band_multiple: Optional[float] = None,
) -> list[CandidateView]:
    """
    Tenant-scoped, status-eligible candidates, ordered by id.

    The coarse price band only applies when the deal states a budget, and the cap
    keeps the most recent listings (created_at desc, id desc) before scoring.
    """
    statuses = eligible_statuses(criteria.deal_type)
    if not statuses:
        return []

    cap = settings.candidate_cap if cap is None else int(cap)
    band_multiple = settings.candidate_band_multiple if band_multiple is None else float(band_multiple)

    q = (
        select(Property)
        .where(Property.tenant_id == int(tenant_id))
        .where(Property.status.in_(sorted(statuses)))
    )

    lo, hi = price_band(criteria, band_multiple)
    if lo is not None:
        q = q.where(Property.price >= lo)
    if hi is not None:
        q = q.where(Property.price <= hi)

    q = q.order_by(desc(Property.created_at), desc(Property.id)).limit(max(0, cap))

    rows = db.scalars(q).all()

    out: list[CandidateView] = []
    for row in rows:
        if int(row.tenant_id) != int(tenant_id):
            raise CrossTenantError(f"Candidate {row.id} does not belong to tenant {tenant_id}")
        out.append(to_candidate(row))

    out.sort(key=lambda c: c.property_id)
    return out
