# backend/dealmatch/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter

from ..config import settings
from ..domain.candidate_selection import ELIGIBLE_STATUSES
from ..domain.match_aggregation import MatchWeights

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=dict)
def health():
    return {"ok": True}


@router.get("/meta/matching", response_model=dict)
def matching_config():
    """Active matching configuration, for support and tuning."""
    return {
        "engine_version": settings.engine_version,
        "weights": MatchWeights.from_settings().as_dict(),
        "eligible_statuses": {k: sorted(v) for k, v in sorted(ELIGIBLE_STATUSES.items())},
        "candidate_cap": settings.candidate_cap,
        "default_limit": settings.match_default_limit,
        "max_limit": settings.match_max_limit,
        "coherence_cache_ttl_seconds": settings.coherence_cache_ttl_seconds,
    }
