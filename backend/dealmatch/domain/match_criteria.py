# backend/dealmatch/domain/match_criteria.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import CrossTenantError, NotFoundError, ValidationError
from ..models import Deal

log = logging.getLogger(__name__)

DEAL_TYPES = frozenset({"ACHAT", "LOCATION", "VENTE", "GESTION", "MANDAT"})


@dataclass(frozen=True)
class MatchCriteria:
    """
    Normalized, immutable projection of a deal's matching-relevant fields.
    Every bound the deal does not state is None ("open"), never 0.
    """

    deal_id: int
    tenant_id: int
    deal_type: str

    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    currency: str = "XOF"

    zones: frozenset[str] = frozenset()
    region: Optional[str] = None
    country: Optional[str] = None

    min_surface: Optional[float] = None
    max_surface: Optional[float] = None
    min_rooms: Optional[int] = None
    min_bedrooms: Optional[int] = None

    features: frozenset[str] = frozenset()

    @property
    def has_budget(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None

    @property
    def has_location(self) -> bool:
        return bool(self.zones) or self.region is not None or self.country is not None

    @property
    def has_size(self) -> bool:
        return any(
            v is not None for v in (self.min_surface, self.max_surface, self.min_rooms, self.min_bedrooms)
        )


def norm_label(value: Any) -> Optional[str]:
    """Trim + casefold for zone / region / feature comparisons."""
    if value is None:
        return None
    s = " ".join(str(value).split()).casefold()
    return s or None


def _positive_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if f != f or f <= 0:  # NaN / non-positive → open bound
        return None
    return f


def _positive_int(value: Any) -> Optional[int]:
    f = _positive_number(value)
    return int(f) if f is not None else None


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = raw.get(k)
        if v is not None and v != "":
            return v
    return None


def _labels(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        return []
    out = []
    for item in items:
        n = norm_label(item)
        if n:
            out.append(n)
    return out


def _criteria_dict(deal: Deal) -> dict[str, Any]:
    raw = deal.criteria_json
    if not raw:
        return {}
    try:
        v = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("unparseable deal criteria_json; treating as empty", extra={"deal_id": deal.id})
        return {}
    if not isinstance(v, dict):
        log.warning("deal criteria_json is not an object; treating as empty", extra={"deal_id": deal.id})
        return {}
    return v


def load_deal_for_tenant(db: Session, *, tenant_id: int, deal_id: int) -> Deal:
    deal = db.get(Deal, int(deal_id))
    if deal is None:
        raise NotFoundError("Deal not found")
    if int(deal.tenant_id) != int(tenant_id):
        raise CrossTenantError("Deal belongs to another tenant")
    return deal


def extract_criteria(deal: Deal) -> MatchCriteria:
    deal_type = (deal.type or "").strip().upper()
    if deal_type not in DEAL_TYPES:
        raise ValidationError(f"Unsupported deal type: {deal.type!r}")

    raw = _criteria_dict(deal)

    budget_min = _positive_number(deal.budget_min)
    budget_max = _positive_number(deal.budget_max)
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        budget_min, budget_max = budget_max, budget_min

    zones = set(_labels(deal.location_zone))
    zones.update(_labels(raw.get("zones")))

    min_surface = _positive_number(_first(raw, "surfaceAreaMin", "surfaceMin", "surface"))
    max_surface = _positive_number(_first(raw, "surfaceAreaMax", "surfaceMax"))
    if min_surface is not None and max_surface is not None and min_surface > max_surface:
        min_surface, max_surface = max_surface, min_surface

    return MatchCriteria(
        deal_id=int(deal.id),
        tenant_id=int(deal.tenant_id),
        deal_type=deal_type,
        budget_min=budget_min,
        budget_max=budget_max,
        currency=(deal.currency or settings.default_currency).strip().upper(),
        zones=frozenset(zones),
        region=norm_label(raw.get("region")),
        country=(str(raw["country"]).strip().upper() or None) if raw.get("country") else None,
        min_surface=min_surface,
        max_surface=max_surface,
        min_rooms=_positive_int(_first(raw, "roomsMin", "rooms")),
        min_bedrooms=_positive_int(_first(raw, "bedroomsMin", "bedrooms")),
        features=frozenset(_labels(raw.get("features"))),
    )
