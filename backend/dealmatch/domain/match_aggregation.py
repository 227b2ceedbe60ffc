# backend/dealmatch/domain/match_aggregation.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ..config import settings
from .candidate_selection import CandidateView
from .match_dimensions import CandidateScore

DIMENSION_KEYS = ("budget", "location", "size", "features", "price_coherence")

_LABELS = {
    "budget": "budget",
    "location": "location",
    "size": "size",
    "features": "features",
    "price_coherence": "price coherence",
}


@dataclass(frozen=True)
class MatchWeights:
    """The one place dimension weights live. Must be non-negative and sum to 1.0."""

    budget: float = 0.35
    location: float = 0.25
    size: float = 0.15
    features: float = 0.15
    price_coherence: float = 0.10

    def __post_init__(self) -> None:
        values = self.as_dict()
        for k, v in values.items():
            if not math.isfinite(v) or v < 0:
                raise ValueError(f"match weight {k} must be a non-negative number, got {v!r}")
        total = sum(values.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"match weights must sum to 1.0, got {total:.6f}")

    @classmethod
    def from_settings(cls) -> "MatchWeights":
        return cls(
            budget=settings.match_weight_budget,
            location=settings.match_weight_location,
            size=settings.match_weight_size,
            features=settings.match_weight_features,
            price_coherence=settings.match_weight_price_coherence,
        )

    def as_dict(self) -> dict[str, float]:
        return {k: float(getattr(self, k)) for k in DIMENSION_KEYS}


@dataclass(frozen=True)
class ScoredCandidate:
    property_id: int
    match_score: int
    sub_scores: dict[str, float]
    dimension_reasons: dict[str, tuple[str, ...]]
    reasons: tuple[str, ...]
    explanation_text: str
    created_at: Optional[datetime]
    internal_reference: Optional[str]
    candidate: CandidateView

    def explanation(self) -> dict:
        return {
            "budgetScore": self.sub_scores["budget"],
            "locationScore": self.sub_scores["location"],
            "sizeScore": self.sub_scores["size"],
            "featuresScore": self.sub_scores["features"],
            "priceCoherenceScore": self.sub_scores["price_coherence"],
            "reasons": list(self.reasons),
        }


def round_half_up(x: float) -> int:
    # trim float noise first so 87.4999999 and 87.5 agree
    return int(math.floor(round(x, 6) + 0.5))


def weighted_score(sub_scores: dict[str, float], weights: MatchWeights) -> int:
    w = weights.as_dict()
    total = sum(w[k] * float(sub_scores.get(k, 0.0)) for k in DIMENSION_KEYS)
    return max(0, min(100, round_half_up(100.0 * total)))


def explanation_text(sub_scores: dict[str, float]) -> str:
    """One sentence naming the strongest and weakest dimensions."""
    ordered = [k for k in DIMENSION_KEYS if k in sub_scores]
    if not ordered:
        return "No criteria could be evaluated."

    best = max(ordered, key=lambda k: sub_scores[k])  # first wins on ties
    worst = min(ordered, key=lambda k: sub_scores[k])
    if sub_scores[best] == sub_scores[worst]:
        return f"Even fit across all criteria ({sub_scores[best]:.0%})."
    return (
        f"Strongest on {_LABELS[best]} ({sub_scores[best]:.0%}), "
        f"weakest on {_LABELS[worst]} ({sub_scores[worst]:.0%})."
    )


def aggregate(score: CandidateScore, weights: MatchWeights) -> ScoredCandidate:
    sub_scores = {k: round(r.score, 4) for k, r in score.results}
    dim_reasons = {k: r.reasons for k, r in score.results}
    reasons: list[str] = []
    for k, _ in score.results:
        reasons.extend(dim_reasons[k])

    c = score.candidate
    return ScoredCandidate(
        property_id=c.property_id,
        match_score=weighted_score({k: r.score for k, r in score.results}, weights),
        sub_scores=sub_scores,
        dimension_reasons=dim_reasons,
        reasons=tuple(reasons),
        explanation_text=explanation_text(sub_scores),
        created_at=c.created_at,
        internal_reference=c.internal_reference,
        candidate=c,
    )


def _rank_key(s: ScoredCandidate):
    ts = s.created_at.timestamp() if s.created_at is not None else float("-inf")
    ref = s.internal_reference
    return (-s.match_score, -ts, ref is None, ref or "", s.property_id)


def rank(
    scored: Sequence[ScoredCandidate],
    *,
    limit: Optional[int] = None,
    min_score: int = 0,
) -> list[ScoredCandidate]:
    """
    Highest match_score first; ties go to the most recent listing, then the
    lowest internal reference, then the lowest id.
    """
    limit = settings.match_default_limit if limit is None else int(limit)
    kept = [s for s in scored if s.match_score >= int(min_score)]
    kept.sort(key=_rank_key)
    return kept[: max(0, limit)]
