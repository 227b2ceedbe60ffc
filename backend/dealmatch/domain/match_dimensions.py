# backend/dealmatch/domain/match_dimensions.py
from __future__ import annotations

import logging
import math
from concurrent.futures import Executor, ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence, Union

from ..config import settings
from ..errors import ComputationError, CrossTenantError
from ..services.comparable_stats import ComparableStats, StatsKey, stats_key
from .candidate_selection import CandidateView
from .match_criteria import MatchCriteria, norm_label

log = logging.getLogger(__name__)

NEUTRAL = 0.5


@dataclass(frozen=True)
class DimensionResult:
    score: float
    reasons: tuple[str, ...] = ()


class MatchDimension(Protocol):
    key: str
    label: str

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult: ...


# -----------------------------
# Field coercion (raise ComputationError on malformed data)
# -----------------------------
def _number(value: Any, *, field_name: str, candidate: CandidateView, dimension: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ComputationError(f"{field_name} is not numeric", property_id=candidate.property_id, dimension=dimension)
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise ComputationError(
            f"{field_name} is not numeric: {value!r}", property_id=candidate.property_id, dimension=dimension
        )
    if not math.isfinite(f) or f < 0:
        raise ComputationError(
            f"{field_name} out of range: {value!r}", property_id=candidate.property_id, dimension=dimension
        )
    return f


def _money(amount: float, currency: str) -> str:
    return f"{amount:,.0f} {currency}"


# -----------------------------
# Budget
# -----------------------------
@dataclass(frozen=True)
class BudgetDimension:
    key: str = "budget"
    label: str = "budget"
    tolerance_pct: float = field(default_factory=lambda: settings.budget_tolerance_pct)
    point_tolerance_pct: float = field(default_factory=lambda: settings.budget_point_tolerance_pct)
    point_tolerance_abs: Optional[float] = field(default_factory=lambda: settings.budget_point_tolerance_abs)

    def _tolerance(self, criteria: MatchCriteria, bound: float) -> float:
        lo, hi = criteria.budget_min, criteria.budget_max
        if lo is not None and hi is not None and hi > lo:
            return self.tolerance_pct * (hi - lo)
        if self.point_tolerance_abs is not None:
            return float(self.point_tolerance_abs)
        return self.point_tolerance_pct * bound

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult:
        if not criteria.has_budget:
            return DimensionResult(NEUTRAL, ("No budget stated",))

        price = _number(candidate.price, field_name="price", candidate=candidate, dimension=self.key)
        if price is None:
            raise ComputationError("price missing", property_id=candidate.property_id, dimension=self.key)

        if candidate.currency != criteria.currency:
            return DimensionResult(0.0, (f"Priced in {candidate.currency}, budget in {criteria.currency}",))

        lo, hi = criteria.budget_min, criteria.budget_max
        if (lo is None or price >= lo) and (hi is None or price <= hi):
            return DimensionResult(1.0, (f"Price {_money(price, candidate.currency)} within budget",))

        if hi is not None and price > hi:
            bound, distance, side = hi, price - hi, "above"
        else:
            bound, distance, side = lo, lo - price, "below"

        tol = self._tolerance(criteria, bound)
        score = max(0.0, 1.0 - distance / tol) if tol > 0 else 0.0
        pct = distance / bound if bound else 0.0
        return DimensionResult(score, (f"Price {pct:.0%} {side} budget ({_money(price, candidate.currency)})",))


# -----------------------------
# Location
# -----------------------------
@dataclass(frozen=True)
class LocationDimension:
    key: str = "location"
    label: str = "location"
    same_region_score: float = field(default_factory=lambda: settings.location_same_region_score)
    same_country_score: float = field(default_factory=lambda: settings.location_same_country_score)

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult:
        if not criteria.has_location:
            return DimensionResult(NEUTRAL, ("No location preference",))

        country = (candidate.country or "").strip().upper() or None
        if criteria.country and country and country != criteria.country:
            return DimensionResult(0.0, (f"Outside requested country ({criteria.country})",))

        zone = norm_label(candidate.location_zone)
        city = norm_label(candidate.city)
        where = candidate.location_zone or candidate.city or "unknown zone"

        if criteria.zones and (zone in criteria.zones or city in criteria.zones):
            return DimensionResult(1.0, (f"In requested zone ({where})",))

        if criteria.region is not None:
            if norm_label(candidate.region) == criteria.region:
                if not criteria.zones:
                    return DimensionResult(1.0, (f"In requested region ({candidate.region})",))
                return DimensionResult(self.same_region_score, (f"Same region, different zone ({where})",))
            return DimensionResult(self.same_country_score, (f"Different region ({candidate.region or 'unknown'})",))

        if criteria.zones:
            return DimensionResult(self.same_country_score, (f"Zone {where} not among requested zones",))

        return DimensionResult(1.0, (f"In requested country ({criteria.country})",))


# -----------------------------
# Size
# -----------------------------
@dataclass(frozen=True)
class SizeDimension:
    key: str = "size"
    label: str = "size"
    room_penalty: float = field(default_factory=lambda: settings.size_room_penalty)
    bedroom_penalty: float = field(default_factory=lambda: settings.size_bedroom_penalty)
    surface_penalty: float = field(default_factory=lambda: settings.size_surface_penalty)
    unknown_penalty: float = field(default_factory=lambda: settings.size_unknown_penalty)

    def _count_shortfall(
        self,
        value: Any,
        minimum: Optional[int],
        *,
        noun: str,
        penalty: float,
        candidate: CandidateView,
        reasons: list[str],
    ) -> float:
        if minimum is None:
            return 0.0
        n = _number(value, field_name=noun, candidate=candidate, dimension=self.key)
        if n is None:
            reasons.append(f"{noun.capitalize()} not reported")
            return self.unknown_penalty
        missing = max(0, minimum - int(n))
        if missing:
            reasons.append(f"{int(n)} {noun}, {minimum} wanted")
            return missing * penalty
        reasons.append(f"{int(n)} {noun} (min {minimum})")
        return 0.0

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult:
        if not criteria.has_size:
            return DimensionResult(NEUTRAL, ("No size criteria",))

        reasons: list[str] = []
        penalty = 0.0

        if criteria.min_surface is not None or criteria.max_surface is not None:
            surface = _number(candidate.surface_area, field_name="surface_area", candidate=candidate, dimension=self.key)
            if surface is None:
                reasons.append("Surface not reported")
                penalty += self.unknown_penalty
            elif criteria.min_surface is not None and surface < criteria.min_surface:
                short = (criteria.min_surface - surface) / criteria.min_surface
                penalty += short * self.surface_penalty
                reasons.append(f"Surface {surface:g} m² below {criteria.min_surface:g} m²")
            elif criteria.max_surface is not None and surface > criteria.max_surface:
                over = (surface - criteria.max_surface) / criteria.max_surface
                penalty += over * 0.5 * self.surface_penalty
                reasons.append(f"Surface {surface:g} m² above {criteria.max_surface:g} m²")
            else:
                reasons.append(f"Surface {surface:g} m² fits")

        penalty += self._count_shortfall(
            candidate.rooms, criteria.min_rooms, noun="rooms", penalty=self.room_penalty,
            candidate=candidate, reasons=reasons,
        )
        penalty += self._count_shortfall(
            candidate.bedrooms, criteria.min_bedrooms, noun="bedrooms", penalty=self.bedroom_penalty,
            candidate=candidate, reasons=reasons,
        )

        return DimensionResult(max(0.0, min(1.0, 1.0 - penalty)), tuple(reasons))


# -----------------------------
# Features
# -----------------------------
_FEATURE_LIST_KEYS = ("features", "amenities", "equipments")


def _flag_name(key: str) -> str:
    # hasPool / has_pool -> pool
    if key.startswith("has_"):
        return key[4:]
    if key.startswith("has") and len(key) > 3 and key[3].isupper():
        return key[3:]
    return key


def property_features(candidate: CandidateView) -> frozenset[str]:
    data = candidate.type_specific_data
    if data is None:
        return frozenset()

    def bad(why: str) -> ComputationError:
        return ComputationError(
            f"malformed type_specific_data: {why}", property_id=candidate.property_id, dimension="features"
        )

    out: set[str] = set()
    if isinstance(data, list):
        lists: list[Any] = [data]
        flags: dict[str, Any] = {}
    elif isinstance(data, dict):
        lists = []
        flags = {}
        for k, v in data.items():
            if k in _FEATURE_LIST_KEYS:
                if v is None:
                    continue
                if not isinstance(v, list):
                    raise bad(f"{k} is not a list")
                lists.append(v)
            else:
                flags[k] = v
    else:
        raise bad("expected an object or a list")

    for items in lists:
        for item in items:
            if not isinstance(item, str):
                raise bad(f"feature tag {item!r} is not a string")
            n = norm_label(item)
            if n:
                out.add(n)

    for k, v in flags.items():
        if v is True:
            for name in {k, _flag_name(k)}:
                n = norm_label(name)
                if n:
                    out.add(n)

    return frozenset(out)


@dataclass(frozen=True)
class FeaturesDimension:
    key: str = "features"
    label: str = "features"

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult:
        if not criteria.features:
            return DimensionResult(1.0, ("No specific features requested",))

        have = property_features(candidate)
        matched = sorted(criteria.features & have)
        missing = sorted(criteria.features - have)

        reasons = []
        if matched:
            reasons.append("Has " + ", ".join(matched))
        if missing:
            reasons.append("Missing " + ", ".join(missing))
        return DimensionResult(len(matched) / len(criteria.features), tuple(reasons))


# -----------------------------
# Price coherence
# -----------------------------
@dataclass(frozen=True)
class PriceCoherenceDimension:
    key: str = "price_coherence"
    label: str = "price coherence"
    stats: Mapping[StatsKey, ComparableStats] = field(default_factory=dict)
    min_comparables: int = field(default_factory=lambda: settings.coherence_min_comparables)
    tolerance: float = field(default_factory=lambda: settings.coherence_tolerance)

    def compute(self, candidate: CandidateView, criteria: MatchCriteria) -> DimensionResult:
        price = _number(candidate.price, field_name="price", candidate=candidate, dimension=self.key)
        if price is None or price == 0:
            return DimensionResult(NEUTRAL, ("No price to compare",))

        key = stats_key(candidate.tenant_id, candidate.location_zone, candidate.property_type)
        st = self.stats.get(key) if key is not None else None
        surface = _number(candidate.surface_area, field_name="surface_area", candidate=candidate, dimension=self.key)

        if st is not None and surface and st.count_per_sqm >= self.min_comparables and st.median_price_per_sqm:
            value, ref, n, unit = price / surface, st.median_price_per_sqm, st.count_per_sqm, " per m²"
        elif st is not None and st.count >= self.min_comparables and st.median_price:
            value, ref, n, unit = price, st.median_price, st.count, ""
        else:
            return DimensionResult(NEUTRAL, ("Not enough comparable listings",))

        deviation = abs(value - ref) / ref
        score = max(0.0, 1.0 - deviation / self.tolerance) if self.tolerance > 0 else float(deviation == 0)
        side = "above" if value > ref else "below"
        if deviation < 0.005:
            text = f"Price{unit} in line with {n} comparables"
        else:
            text = f"Price{unit} {deviation:.0%} {side} median of {n} comparables"
        return DimensionResult(score, (text,))


def default_dimensions(stats: Optional[Mapping[StatsKey, ComparableStats]] = None) -> tuple[MatchDimension, ...]:
    return (
        BudgetDimension(),
        LocationDimension(),
        SizeDimension(),
        FeaturesDimension(),
        PriceCoherenceDimension(stats=dict(stats or {})),
    )


# -----------------------------
# Batch scoring
# -----------------------------
@dataclass(frozen=True)
class CandidateScore:
    candidate: CandidateView
    results: tuple[tuple[str, DimensionResult], ...]

    @property
    def property_id(self) -> int:
        return self.candidate.property_id

    def score(self, key: str) -> float:
        for k, r in self.results:
            if k == key:
                return r.score
        raise KeyError(key)


@dataclass(frozen=True)
class ScoreFailure:
    property_id: int
    dimension: Optional[str]
    message: str


@dataclass(frozen=True)
class ScoringOutcome:
    scored: list[CandidateScore]
    failures: list[ScoreFailure]


def score_candidate(
    candidate: CandidateView, criteria: MatchCriteria, dimensions: Sequence[MatchDimension]
) -> CandidateScore:
    results = []
    for dim in dimensions:
        r = dim.compute(candidate, criteria)
        s = float(r.score)
        if not math.isfinite(s):
            raise ComputationError(f"non-finite {dim.key} score", property_id=candidate.property_id, dimension=dim.key)
        results.append((dim.key, DimensionResult(max(0.0, min(1.0, s)), tuple(r.reasons))))
    return CandidateScore(candidate=candidate, results=tuple(results))


def _score_chunk(
    chunk: Sequence[CandidateView], criteria: MatchCriteria, dimensions: Sequence[MatchDimension]
) -> list[Union[CandidateScore, ScoreFailure]]:
    out: list[Union[CandidateScore, ScoreFailure]] = []
    for c in chunk:
        try:
            out.append(score_candidate(c, criteria, dimensions))
        except ComputationError as e:
            out.append(ScoreFailure(property_id=c.property_id, dimension=e.dimension, message=e.message))
        except (ValueError, TypeError, ArithmeticError) as e:
            out.append(ScoreFailure(property_id=c.property_id, dimension=None, message=f"{type(e).__name__}: {e}"))
    return out


def _chunks(items: Sequence[CandidateView], size: int) -> list[Sequence[CandidateView]]:
    size = max(1, int(size))
    return [items[i : i + size] for i in range(0, len(items), size)]


def score_candidates(
    candidates: Sequence[CandidateView],
    criteria: MatchCriteria,
    dimensions: Sequence[MatchDimension],
    *,
    executor: Optional[Executor] = None,
    parallel_threshold: Optional[int] = None,
    workers: Optional[int] = None,
) -> ScoringOutcome:
    """
    Score every candidate on every dimension.

    A candidate whose data breaks a dimension is dropped (logged as a warning);
    the rest of the batch is unaffected. Large batches are fanned out to a
    process pool in chunks; results come back in input order, so the output
    never depends on how the work was scheduled.
    """
    for c in candidates:
        if int(c.tenant_id) != int(criteria.tenant_id):
            raise CrossTenantError(f"Candidate {c.property_id} does not belong to tenant {criteria.tenant_id}")

    threshold = settings.match_parallel_threshold if parallel_threshold is None else int(parallel_threshold)
    n_workers = settings.match_parallel_workers if workers is None else int(workers)

    items = list(candidates)
    raw: list[Union[CandidateScore, ScoreFailure]] = []

    if executor is not None or (n_workers > 0 and len(items) >= threshold > 0):
        fan_out = max(1, n_workers)
        chunks = _chunks(items, math.ceil(len(items) / (fan_out * 4)) if items else 1)
        crit = [criteria] * len(chunks)
        dims = [tuple(dimensions)] * len(chunks)
        if executor is not None:
            for part in executor.map(_score_chunk, chunks, crit, dims):
                raw.extend(part)
        else:
            with ProcessPoolExecutor(max_workers=fan_out) as pool:
                for part in pool.map(_score_chunk, chunks, crit, dims):
                    raw.extend(part)
    else:
        raw = _score_chunk(items, criteria, dimensions)

    scored: list[CandidateScore] = []
    failures: list[ScoreFailure] = []
    for r in raw:
        if isinstance(r, ScoreFailure):
            failures.append(r)
            log.warning(
                "dropping candidate: %s",
                r.message,
                extra={"tenant_id": criteria.tenant_id, "deal_id": criteria.deal_id, "property_id": r.property_id},
            )
        else:
            scored.append(r)

    return ScoringOutcome(scored=scored, failures=failures)
