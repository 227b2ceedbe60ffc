# backend/dealmatch/services/matching_service.py
from __future__ import annotations

import logging
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..domain.candidate_selection import select_candidates
from ..domain.match_aggregation import MatchWeights, ScoredCandidate, aggregate, rank
from ..domain.match_criteria import MatchCriteria, extract_criteria, load_deal_for_tenant
from ..domain.match_dimensions import ScoreFailure, default_dimensions, score_candidates
from .comparable_stats import ComparableStatsCache, load_comparable_stats, stats_key
from .runtime_metrics import METRICS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchRun:
    criteria: MatchCriteria
    matches: list[ScoredCandidate]
    candidate_count: int
    scored_count: int
    failures: list[ScoreFailure]


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.match_default_limit
    return max(1, min(int(limit), settings.match_max_limit))


def match_properties_for_deal(
    db: Session,
    *,
    tenant_id: int,
    deal_id: int,
    limit: Optional[int] = None,
    min_score: int = 0,
    stats_cache: Optional[ComparableStatsCache] = None,
    weights: Optional[MatchWeights] = None,
    executor: Optional[Executor] = None,
) -> MatchRun:
    """
    Rank the tenant's inventory against a deal's criteria.

    Read-only: nothing is written, and the same deal/property state always
    yields the same ranked list.
    """
    t0 = time.perf_counter()
    deal = load_deal_for_tenant(db, tenant_id=tenant_id, deal_id=deal_id)
    criteria = extract_criteria(deal)
    weights = weights or MatchWeights.from_settings()

    candidates = select_candidates(db, tenant_id=tenant_id, criteria=criteria)
    METRICS.inc("match_runs")
    if not candidates:
        METRICS.observe_ms("match_run", (time.perf_counter() - t0) * 1000)
        log.info(
            "match run: no candidates",
            extra={"tenant_id": tenant_id, "deal_id": deal_id},
        )
        return MatchRun(criteria=criteria, matches=[], candidate_count=0, scored_count=0, failures=[])

    keys = {stats_key(c.tenant_id, c.location_zone, c.property_type) for c in candidates}
    stats = load_comparable_stats(db, tenant_id=tenant_id, keys=keys, cache=stats_cache)

    outcome = score_candidates(candidates, criteria, default_dimensions(stats), executor=executor)
    scored = [aggregate(s, weights) for s in outcome.scored]
    ranked = rank(scored, limit=clamp_limit(limit), min_score=min_score)

    METRICS.inc("match_candidates_scored", len(outcome.scored))
    METRICS.inc("match_candidates_dropped", len(outcome.failures))
    METRICS.observe_ms("match_run", (time.perf_counter() - t0) * 1000)

    log.info(
        "match run: %d candidates, %d scored, %d dropped, %d returned",
        len(candidates),
        len(outcome.scored),
        len(outcome.failures),
        len(ranked),
        extra={"tenant_id": tenant_id, "deal_id": deal_id},
    )

    return MatchRun(
        criteria=criteria,
        matches=ranked,
        candidate_count=len(candidates),
        scored_count=len(outcome.scored),
        failures=list(outcome.failures),
    )
