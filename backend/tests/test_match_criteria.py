# backend/tests/test_match_criteria.py
from __future__ import annotations

import json

import pytest

from dealmatch.domain.match_criteria import extract_criteria, load_deal_for_tenant, norm_label
from dealmatch.errors import CrossTenantError, NotFoundError, ValidationError
from dealmatch.models import Deal


def _deal(**kw) -> Deal:
    criteria = kw.pop("criteria", None)
    kw.setdefault("id", 7)
    kw.setdefault("tenant_id", 1)
    kw.setdefault("type", "ACHAT")
    return Deal(criteria_json=json.dumps(criteria) if isinstance(criteria, dict) else criteria, **kw)


def test_norm_label_trims_and_casefolds():
    assert norm_label("  Cocody   Angré ") == "cocody angré"
    assert norm_label("   ") is None
    assert norm_label(None) is None


def test_budget_bounds_are_swapped_when_inverted():
    c = extract_criteria(_deal(budget_min=30_000_000, budget_max=20_000_000))
    assert (c.budget_min, c.budget_max) == (20_000_000, 30_000_000)


def test_non_positive_bounds_are_open():
    c = extract_criteria(_deal(budget_min=0, budget_max=None, criteria={"roomsMin": -1, "surfaceAreaMin": "abc"}))
    assert c.budget_min is None and c.budget_max is None
    assert not c.has_budget
    assert c.min_rooms is None
    assert c.min_surface is None
    assert not c.has_size


def test_zones_merge_location_zone_and_criteria_zones():
    c = extract_criteria(_deal(location_zone=" Cocody ", criteria={"zones": ["Plateau", "cocody"]}))
    assert c.zones == frozenset({"cocody", "plateau"})


def test_zones_accept_comma_separated_text():
    c = extract_criteria(_deal(location_zone=None, criteria={"zones": "Marcory, Treichville,"}))
    assert c.zones == frozenset({"marcory", "treichville"})


def test_room_aliases_and_features():
    c = extract_criteria(
        _deal(criteria={"rooms": 3, "bedrooms": "2", "features": ["Parking", " Garden "], "surface": 90})
    )
    assert c.min_rooms == 3
    assert c.min_bedrooms == 2
    assert c.min_surface == 90
    assert c.features == frozenset({"parking", "garden"})


def test_region_and_country_normalized():
    c = extract_criteria(_deal(criteria={"region": " Lagunes ", "country": "ci"}))
    assert c.region == "lagunes"
    assert c.country == "CI"
    assert c.has_location


def test_unparseable_criteria_json_behaves_as_empty():
    c = extract_criteria(_deal(criteria="{not json", location_zone=None))
    assert not c.has_size
    assert not c.features
    assert not c.has_location


def test_currency_defaults_and_deal_type_is_normalized():
    c = extract_criteria(_deal(type="location", currency=None))
    assert c.deal_type == "LOCATION"
    assert c.currency == "XOF"


def test_unknown_deal_type_is_rejected():
    with pytest.raises(ValidationError):
        extract_criteria(_deal(type="BARTER"))


def test_load_deal_for_tenant_not_found_and_cross_tenant(db, factory):
    t1 = factory.tenant()
    t2 = factory.tenant()
    d = factory.deal(t2)

    assert load_deal_for_tenant(db, tenant_id=t2.id, deal_id=d.id).id == d.id

    with pytest.raises(NotFoundError):
        load_deal_for_tenant(db, tenant_id=t1.id, deal_id=9999)

    with pytest.raises(CrossTenantError) as ei:
        load_deal_for_tenant(db, tenant_id=t1.id, deal_id=d.id)
    # still a validation failure from the caller's point of view
    assert isinstance(ei.value, ValidationError)
