# backend/tests/test_match_aggregation.py
from __future__ import annotations

from datetime import datetime

import pytest

from dealmatch.domain.candidate_selection import CandidateView
from dealmatch.domain.match_aggregation import (
    MatchWeights,
    aggregate,
    explanation_text,
    rank,
    round_half_up,
    weighted_score,
)
from dealmatch.domain.match_dimensions import CandidateScore, DimensionResult


def _cand(property_id: int, *, ref=None, created_at=None) -> CandidateView:
    return CandidateView(
        property_id=property_id,
        tenant_id=1,
        internal_reference=ref,
        property_type="APARTMENT",
        status="AVAILABLE",
        price=25_000_000,
        currency="XOF",
        location_zone="Cocody",
        city=None,
        region=None,
        country="CI",
        surface_area=None,
        rooms=None,
        bedrooms=None,
        type_specific_data=None,
        created_at=created_at,
    )


def _scored(property_id: int, subs: dict[str, float], **kw):
    results = tuple((k, DimensionResult(v, (f"{k} reason",))) for k, v in subs.items())
    return aggregate(CandidateScore(candidate=_cand(property_id, **kw), results=results), MatchWeights())


FULL = {"budget": 1.0, "location": 1.0, "size": 1.0, "features": 1.0, "price_coherence": 1.0}


def test_default_weights_sum_to_one():
    w = MatchWeights()
    assert w.as_dict() == {
        "budget": 0.35,
        "location": 0.25,
        "size": 0.15,
        "features": 0.15,
        "price_coherence": 0.10,
    }
    assert MatchWeights.from_settings() == w


@pytest.mark.parametrize(
    "kw",
    [
        {"budget": 0.5},
        {"budget": -0.05, "location": 0.65},
        {"price_coherence": float("nan")},
    ],
)
def test_invalid_weights_are_rejected(kw):
    with pytest.raises(ValueError):
        MatchWeights(**kw)


def test_round_half_up():
    assert round_half_up(87.5) == 88
    assert round_half_up(2.5) == 3
    assert round_half_up(38.75) == 39
    assert round_half_up(87.4999999) == 88
    assert round_half_up(87.49) == 87


def test_weighted_score_examples():
    w = MatchWeights()
    assert weighted_score(FULL, w) == 100
    assert weighted_score({k: 0.0 for k in FULL}, w) == 0
    # in budget + zone + rooms, half the requested features, too few comparables
    assert weighted_score({**FULL, "features": 0.5, "price_coherence": 0.5}, w) == 88
    # same listing when the deal asks for no particular features
    assert weighted_score({**FULL, "price_coherence": 0.5}, w) == 95


def test_explanation_names_strongest_and_weakest():
    assert explanation_text({**FULL, "price_coherence": 0.5}) == (
        "Strongest on budget (100%), weakest on price coherence (50%)."
    )
    assert explanation_text({k: 0.5 for k in FULL}) == "Even fit across all criteria (50%)."


def test_aggregate_builds_explanation_in_dimension_order():
    s = _scored(1, {**FULL, "size": 0.75})
    assert s.match_score == 96
    ex = s.explanation()
    assert list(ex) == [
        "budgetScore",
        "locationScore",
        "sizeScore",
        "featuresScore",
        "priceCoherenceScore",
        "reasons",
    ]
    assert ex["sizeScore"] == 0.75
    assert ex["reasons"] == [
        "budget reason",
        "location reason",
        "size reason",
        "features reason",
        "price_coherence reason",
    ]


def test_rank_orders_by_score_then_recency_then_reference_then_id():
    older = datetime(2026, 1, 1)
    newer = datetime(2026, 6, 1)
    items = [
        _scored(5, FULL, ref="B", created_at=older),
        _scored(4, FULL, ref=None, created_at=older),
        _scored(3, FULL, ref="A", created_at=older),
        _scored(2, FULL, ref="Z", created_at=newer),
        _scored(1, {**FULL, "budget": 0.0}, ref="A", created_at=newer),
        _scored(6, FULL, ref=None, created_at=None),
        _scored(7, FULL, ref=None, created_at=older),
    ]

    ranked = rank(items, limit=100)
    assert [s.property_id for s in ranked] == [2, 3, 5, 4, 7, 6, 1]

    # input order never matters
    assert [s.property_id for s in rank(list(reversed(items)), limit=100)] == [2, 3, 5, 4, 7, 6, 1]


def test_rank_applies_min_score_and_limit():
    items = [_scored(i, {**FULL, "budget": i / 10}) for i in range(1, 11)]
    top = rank(items, limit=3)
    assert [s.property_id for s in top] == [10, 9, 8]

    floor = rank(items, limit=100, min_score=90)
    assert all(s.match_score >= 90 for s in floor)
    assert [s.property_id for s in floor] == [10, 9, 8, 7]
