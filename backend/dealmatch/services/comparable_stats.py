# backend/dealmatch/services/comparable_stats.py
from __future__ import annotations

import statistics
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.match_criteria import norm_label
from ..models import Property

StatsKey = tuple[int, str, str]  # (tenant_id, zone, property_type)


@dataclass(frozen=True)
class ComparableStats:
    count: int
    median_price: Optional[float]
    count_per_sqm: int
    median_price_per_sqm: Optional[float]


def stats_key(tenant_id: int, zone: Optional[str], property_type: Optional[str]) -> Optional[StatsKey]:
    z = norm_label(zone)
    t = norm_label(property_type)
    if z is None or t is None:
        return None
    return (int(tenant_id), z, t)


class ComparableStatsCache:
    """
    Keyed, time-bounded memo of comparable-price statistics.

    Holds derived numbers only (never entity rows). Entries expire `ttl_seconds`
    after they were stored; expired entries are dropped on read.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(settings.coherence_cache_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[StatsKey, tuple[float, ComparableStats]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: StatsKey) -> Optional[ComparableStats]:
        now = self._clock()
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            expires_at, stats = hit
            if expires_at <= now:
                del self._entries[key]
                return None
            return stats

    def put(self, key: StatsKey, stats: ComparableStats) -> None:
        if self._ttl <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, stats)

    def invalidate(self, tenant_id: Optional[int] = None) -> int:
        with self._lock:
            if tenant_id is None:
                n = len(self._entries)
                self._entries.clear()
                return n
            doomed = [k for k in self._entries if k[0] == int(tenant_id)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _positive(v) -> Optional[float]:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if f > 0 else None


def compute_stats(rows: Iterable[tuple[Optional[float], Optional[float]]]) -> ComparableStats:
    prices: list[float] = []
    per_sqm: list[float] = []
    for price, surface in rows:
        p = _positive(price)
        if p is None:
            continue
        prices.append(p)
        s = _positive(surface)
        if s is not None:
            per_sqm.append(p / s)

    return ComparableStats(
        count=len(prices),
        median_price=float(statistics.median(prices)) if prices else None,
        count_per_sqm=len(per_sqm),
        median_price_per_sqm=float(statistics.median(per_sqm)) if per_sqm else None,
    )


def load_comparable_stats(
    db: Session,
    *,
    tenant_id: int,
    keys: Iterable[StatsKey],
    cache: Optional[ComparableStatsCache] = None,
) -> dict[StatsKey, ComparableStats]:
    """
    Stats for every requested key. Cache hits are served as-is; misses are
    computed from one query over the tenant's priced, non-archived listings in
    the missing zones and property types.
    """
    wanted = sorted({k for k in keys if k is not None and k[0] == int(tenant_id)})
    out: dict[StatsKey, ComparableStats] = {}
    missing: list[StatsKey] = []

    for k in wanted:
        hit = cache.get(k) if cache is not None else None
        if hit is None:
            missing.append(k)
        else:
            out[k] = hit

    if not missing:
        return out

    missing_set = set(missing)
    zones = sorted({k[1] for k in missing})
    types = sorted({k[2] for k in missing})
    rows = db.execute(
        select(Property.location_zone, Property.property_type, Property.price, Property.surface_area)
        .where(Property.tenant_id == int(tenant_id))
        .where(Property.status != "ARCHIVED")
        .where(Property.price.is_not(None))
        .where(func.lower(func.trim(Property.location_zone)).in_(zones))
        .where(func.lower(func.trim(Property.property_type)).in_(types))
    ).all()

    grouped: dict[StatsKey, list[tuple[Optional[float], Optional[float]]]] = {k: [] for k in missing}
    for zone, ptype, price, surface in rows:
        k = stats_key(tenant_id, zone, ptype)
        if k in missing_set:
            grouped[k].append((price, surface))

    for k in missing:
        stats = compute_stats(grouped[k])
        out[k] = stats
        if cache is not None:
            cache.put(k, stats)

    return out
