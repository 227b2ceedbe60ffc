# backend/dealmatch/routers/matching.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ..auth import Principal, require_agent, require_tenant
from ..db import get_db
from ..middleware.request_id import bind_log_context
from ..domain.match_aggregation import ScoredCandidate
from ..models import DealProperty
from ..schemas import (
    ContactSummaryOut,
    MatchExplanationOut,
    MatchResponse,
    PropertyMatchOut,
    PropertySummaryOut,
    ShortlistAddIn,
    ShortlistEntryOut,
    ShortlistEntryResponse,
    ShortlistListResponse,
    ShortlistStatusIn,
)
from ..services.comparable_stats import ComparableStatsCache
from ..services.matching_service import match_properties_for_deal
from ..services.shortlist_service import (
    add_to_shortlist,
    list_shortlist,
    loads_explanation,
    update_shortlist_status,
)

router = APIRouter(prefix="/tenants/{tenant_id}/crm/deals/{deal_id}", tags=["matching"])


def get_stats_cache(request: Request) -> ComparableStatsCache:
    cache = getattr(request.app.state, "comparable_stats_cache", None)
    if cache is None:
        cache = ComparableStatsCache()
        request.app.state.comparable_stats_cache = cache
    return cache


def _match_out(m: ScoredCandidate) -> PropertyMatchOut:
    c = m.candidate
    summary = PropertySummaryOut(
        id=c.property_id,
        internal_reference=c.internal_reference,
        property_type=c.property_type,
        status=c.status,
        price=c.price,
        currency=c.currency,
        location_zone=c.location_zone,
        city=c.city,
        region=c.region,
        country=c.country,
        surface_area=c.surface_area,
        rooms=c.rooms,
        bedrooms=c.bedrooms,
        created_at=c.created_at,
    )
    return PropertyMatchOut(
        property_id=m.property_id,
        match_score=m.match_score,
        property=summary,
        explanation_text=m.explanation_text,
        explanation=MatchExplanationOut.model_validate(m.explanation()),
    )


def _entry_out(row: DealProperty) -> ShortlistEntryOut:
    return ShortlistEntryOut(
        id=row.id,
        deal_id=row.deal_id,
        property_id=row.property_id,
        match_score=row.match_score,
        match_explanation=loads_explanation(row.match_explanation_json),
        source_owner_contact_id=row.source_owner_contact_id,
        source_owner=ContactSummaryOut.model_validate(row.source_owner) if row.source_owner is not None else None,
        status=row.status,
        added_by_user_id=row.added_by_user_id,
        added_at=row.added_at,
        updated_at=row.updated_at,
    )


@router.post("/properties/match", response_model=MatchResponse)
def match_properties(
    tenant_id: int,
    deal_id: int,
    limit: Optional[int] = Query(default=None, ge=1),
    min_score: int = Query(default=0, ge=0, le=100),
    db: Session = Depends(get_db),
    stats_cache: ComparableStatsCache = Depends(get_stats_cache),
    p: Principal = Depends(require_agent),
):
    bind_log_context(tenant_id=p.tenant_id, user_id=p.user_id, deal_id=deal_id)
    run = match_properties_for_deal(
        db,
        tenant_id=p.tenant_id,
        deal_id=deal_id,
        limit=limit,
        min_score=min_score,
        stats_cache=stats_cache,
    )
    return MatchResponse(data=[_match_out(m) for m in run.matches])


@router.post("/properties", response_model=ShortlistEntryResponse)
def add_property_to_shortlist(
    tenant_id: int,
    deal_id: int,
    payload: ShortlistAddIn,
    response: Response,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_agent),
):
    bind_log_context(tenant_id=p.tenant_id, user_id=p.user_id, deal_id=deal_id)
    row, created = add_to_shortlist(
        db,
        tenant_id=p.tenant_id,
        user_id=p.user_id,
        deal_id=deal_id,
        property_id=payload.property_id,
        match_score=payload.match_score,
        match_explanation=payload.match_explanation,
        source_owner_contact_id=payload.source_owner_contact_id,
    )
    response.status_code = 201 if created else 200
    return ShortlistEntryResponse(data=_entry_out(row), created=created)


@router.get("/matches", response_model=ShortlistListResponse)
def get_shortlist(
    tenant_id: int,
    deal_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
):
    bind_log_context(tenant_id=p.tenant_id, user_id=p.user_id, deal_id=deal_id)
    rows = list_shortlist(db, tenant_id=p.tenant_id, deal_id=deal_id)
    return ShortlistListResponse(data=[_entry_out(r) for r in rows])


@router.post("/properties/{property_id}/status", response_model=ShortlistEntryResponse)
def set_shortlist_status(
    tenant_id: int,
    deal_id: int,
    property_id: int,
    payload: ShortlistStatusIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
):
    bind_log_context(tenant_id=p.tenant_id, user_id=p.user_id, deal_id=deal_id)
    row = update_shortlist_status(
        db, tenant_id=p.tenant_id, deal_id=deal_id, property_id=property_id, status=payload.status
    )
    return ShortlistEntryResponse(data=_entry_out(row))
