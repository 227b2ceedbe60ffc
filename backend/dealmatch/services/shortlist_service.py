# backend/dealmatch/services/shortlist_service.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..domain.match_criteria import load_deal_for_tenant
from ..errors import NotFoundError, ValidationError
from ..models import DealProperty
from .ownership import must_get_contact, must_get_property

log = logging.getLogger(__name__)

SHORTLIST_STATUSES = ("SHORTLISTED", "PROPOSED", "VISITED", "SELECTED", "REJECTED")


def _dumps(v: Any) -> str:
    try:
        return json.dumps(v, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError):
        raise ValidationError("matchExplanation must be JSON-serializable")


def loads_explanation(s: Optional[str]) -> Any:
    if not s:
        return None
    try:
        return json.loads(s)
    except ValueError:
        return None


def _find_entry(db: Session, *, tenant_id: int, deal_id: int, property_id: int) -> Optional[DealProperty]:
    return db.scalar(
        select(DealProperty).where(
            DealProperty.tenant_id == int(tenant_id),
            DealProperty.deal_id == int(deal_id),
            DealProperty.property_id == int(property_id),
        )
    )


def _validate_score(match_score: Optional[float]) -> Optional[int]:
    if match_score is None:
        return None
    try:
        v = float(match_score)
    except (TypeError, ValueError):
        raise ValidationError("matchScore must be a number")
    if not 0 <= v <= 100:
        raise ValidationError("matchScore must be between 0 and 100")
    return int(round(v))


def add_to_shortlist(
    db: Session,
    *,
    tenant_id: int,
    user_id: Optional[int],
    deal_id: int,
    property_id: int,
    match_score: Optional[float] = None,
    match_explanation: Any = None,
    source_owner_contact_id: Optional[int] = None,
) -> tuple[DealProperty, bool]:
    """
    Upsert the (deal, property) shortlist entry. Returns (row, created).

    Re-adding the same pair puts it back to SHORTLISTED and updates score /
    explanation / owner contact and the timestamp; fields passed as None keep
    their stored value. Two concurrent adds collapse onto one row through the
    unique constraint.
    """
    load_deal_for_tenant(db, tenant_id=tenant_id, deal_id=deal_id)
    must_get_property(db, tenant_id=tenant_id, property_id=property_id)
    if source_owner_contact_id is not None:
        must_get_contact(db, tenant_id=tenant_id, contact_id=source_owner_contact_id)

    score = _validate_score(match_score)
    explanation_json = _dumps(match_explanation) if match_explanation is not None else None
    now = datetime.utcnow()

    row = _find_entry(db, tenant_id=tenant_id, deal_id=deal_id, property_id=property_id)
    created = False

    if row is None:
        try:
            with db.begin_nested():
                row = DealProperty(
                    tenant_id=int(tenant_id),
                    deal_id=int(deal_id),
                    property_id=int(property_id),
                    match_score=score,
                    match_explanation_json=explanation_json,
                    source_owner_contact_id=source_owner_contact_id,
                    status="SHORTLISTED",
                    added_by_user_id=user_id,
                    added_at=now,
                    updated_at=now,
                )
                db.add(row)
            created = True
        except IntegrityError:
            # lost the race to a concurrent add of the same pair
            log.info(
                "shortlist insert collided; updating existing row",
                extra={"tenant_id": tenant_id, "deal_id": deal_id, "property_id": property_id},
            )
            row = _find_entry(db, tenant_id=tenant_id, deal_id=deal_id, property_id=property_id)
            if row is None:
                raise

    if not created:
        if score is not None:
            row.match_score = score
        if explanation_json is not None:
            row.match_explanation_json = explanation_json
        if source_owner_contact_id is not None:
            row.source_owner_contact_id = source_owner_contact_id
        row.status = "SHORTLISTED"
        row.updated_at = now
        db.add(row)

    db.commit()
    db.refresh(row)
    return row, created


def list_shortlist(db: Session, *, tenant_id: int, deal_id: int) -> list[DealProperty]:
    load_deal_for_tenant(db, tenant_id=tenant_id, deal_id=deal_id)
    return list(
        db.scalars(
            select(DealProperty)
            .where(DealProperty.tenant_id == int(tenant_id), DealProperty.deal_id == int(deal_id))
            .options(selectinload(DealProperty.source_owner))
            .order_by(desc(DealProperty.match_score), DealProperty.id)
        ).all()
    )


def update_shortlist_status(
    db: Session, *, tenant_id: int, deal_id: int, property_id: int, status: str
) -> DealProperty:
    s = (status or "").strip().upper()
    if s not in SHORTLIST_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SHORTLIST_STATUSES)}")

    load_deal_for_tenant(db, tenant_id=tenant_id, deal_id=deal_id)
    row = _find_entry(db, tenant_id=tenant_id, deal_id=deal_id, property_id=property_id)
    if row is None:
        raise NotFoundError("Property not found in deal shortlist")

    row.status = s
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
