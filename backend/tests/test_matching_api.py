# backend/tests/test_matching_api.py
from __future__ import annotations

import logging
from datetime import datetime

from dealmatch.auth import create_access_token


def _match_url(tenant_id: int, deal_id: int) -> str:
    return f"/api/tenants/{tenant_id}/crm/deals/{deal_id}/properties/match"


def _scenario(factory, *, features=None, a_features=None):
    t = factory.tenant()
    criteria = {"roomsMin": 3}
    if features is not None:
        criteria["features"] = features
    deal = factory.deal(t, budget_min=20_000_000, budget_max=30_000_000, zone="Cocody", criteria=criteria)
    a = factory.property(
        t, price=25_000_000, zone="Cocody", rooms=3, features=a_features, internal_reference="A",
        created_at=datetime(2026, 9, 1),
    )
    b = factory.property(
        t, price=50_000_000, zone="Yopougon", rooms=2, internal_reference="B", created_at=datetime(2026, 9, 2)
    )
    return t, deal, a, b


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert r.headers.get("X-Request-ID")


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "rid-123"})
    assert r.headers["X-Request-ID"] == "rid-123"


def test_scenario_deal_d_ranks_a_before_b(client, factory, headers):
    t, deal, a, b = _scenario(factory)

    r = client.post(_match_url(t.id, deal.id), headers=headers(t.id))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert [m["propertyId"] for m in body["data"]] == [a.id, b.id]

    top = body["data"][0]
    ex = top["explanation"]
    assert (ex["budgetScore"], ex["locationScore"], ex["sizeScore"]) == (1.0, 1.0, 1.0)
    # no features requested -> 1.0; two listings are too few comparables -> 0.5
    assert ex["featuresScore"] == 1.0
    assert ex["priceCoherenceScore"] == 0.5
    assert top["matchScore"] == 95
    assert top["explanationText"] == "Strongest on budget (100%), weakest on price coherence (50%)."
    assert top["property"]["id"] == a.id
    assert top["property"]["locationZone"] == "Cocody"
    assert ex["reasons"]

    low = body["data"][1]
    assert low["matchScore"] == 39
    assert low["explanation"]["budgetScore"] == 0.0
    assert low["explanation"]["locationScore"] == 0.3
    assert low["explanation"]["sizeScore"] == 0.75


def test_scenario_with_half_the_requested_features(client, factory, headers):
    t, deal, a, b = _scenario(factory, features=["parking", "garden"], a_features=["parking"])

    body = client.post(_match_url(t.id, deal.id), headers=headers(t.id)).json()
    top = body["data"][0]
    assert top["propertyId"] == a.id
    assert top["explanation"]["featuresScore"] == 0.5
    assert top["matchScore"] == 88
    assert body["data"][1]["matchScore"] == 24


def test_limit_and_min_score_query(client, factory, headers):
    t, deal, a, b = _scenario(factory)
    url = _match_url(t.id, deal.id)

    assert [m["propertyId"] for m in client.post(url + "?limit=1", headers=headers(t.id)).json()["data"]] == [a.id]
    assert [m["propertyId"] for m in client.post(url + "?min_score=50", headers=headers(t.id)).json()["data"]] == [a.id]

    r = client.post(url + "?limit=0", headers=headers(t.id))
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_empty_inventory(client, factory, headers):
    t = factory.tenant()
    deal = factory.deal(t)
    r = client.post(_match_url(t.id, deal.id), headers=headers(t.id))
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": []}


def test_error_envelopes(client, factory, headers):
    t = factory.tenant()
    other = factory.tenant()
    foreign = factory.deal(other)

    r = client.post(_match_url(t.id, 987654), headers=headers(t.id))
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Deal not found"}

    r = client.post(_match_url(t.id, foreign.id), headers=headers(t.id))
    assert r.status_code == 403
    assert r.json()["success"] is False

    # path tenant differs from the caller's active tenant
    r = client.post(_match_url(other.id, foreign.id), headers=headers(t.id))
    assert r.status_code == 403
    assert r.json()["success"] is False

    r = client.post(_match_url(t.id, 1))
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert r.json()["error"]


def test_viewer_cannot_run_match(client, factory, headers):
    t = factory.tenant()
    factory.user(t, email="viewer@demo.local", role="viewer")
    deal = factory.deal(t)
    r = client.post(_match_url(t.id, deal.id), headers=headers(t.id, email="viewer@demo.local"))
    assert r.status_code == 403
    assert r.json()["success"] is False

    # read access is enough for the persisted shortlist
    r = client.get(f"/api/tenants/{t.id}/crm/deals/{deal.id}/matches", headers=headers(t.id, email="viewer@demo.local"))
    assert r.status_code == 200


def test_bearer_token_auth(client, factory):
    t = factory.tenant()
    u = factory.user(t, email="jwt@demo.local", role="manager")
    deal = factory.deal(t)
    token = create_access_token(user_id=u.id, tenant_id=t.id, role="manager")

    r = client.post(_match_url(t.id, deal.id), headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200

    r = client.post(_match_url(t.id, deal.id), headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Invalid token"}


def test_access_log_carries_tenant_from_routed_path(client, factory, caplog):
    t = factory.tenant()
    u = factory.user(t, email="log@demo.local", role="agent")
    deal = factory.deal(t)
    token = create_access_token(user_id=u.id, tenant_id=t.id, role="agent")

    with caplog.at_level(logging.INFO, logger="dealmatch.request"):
        r = client.post(_match_url(t.id, deal.id), headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200

    lines = [rec for rec in caplog.records if rec.name == "dealmatch.request"]
    assert lines
    assert str(lines[-1].tenant_id) == str(t.id)
    assert "-> 200" in lines[-1].getMessage()


def test_shortlist_add_list_and_status(client, factory, headers):
    t, deal, a, b = _scenario(factory)
    owner = factory.contact(t)
    base = f"/api/tenants/{t.id}/crm/deals/{deal.id}"

    payload = {
        "propertyId": a.id,
        "matchScore": 95,
        "matchExplanation": {"budgetScore": 1.0, "reasons": ["Price within budget"]},
        "sourceOwnerContactId": owner.id,
    }
    r = client.post(base + "/properties", json=payload, headers=headers(t.id))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["created"] is True
    entry = body["data"]
    assert entry["propertyId"] == a.id
    assert entry["matchScore"] == 95
    assert entry["status"] == "SHORTLISTED"
    assert entry["sourceOwnerContactId"] == owner.id
    assert entry["sourceOwner"] == {"id": owner.id, "firstName": "Awa", "lastName": "Kouassi"}

    r = client.post(base + "/properties", json={"propertyId": a.id, "matchScore": 90}, headers=headers(t.id))
    assert r.status_code == 200
    assert r.json()["created"] is False
    assert r.json()["data"]["id"] == entry["id"]
    assert r.json()["data"]["matchExplanation"] == payload["matchExplanation"]

    client.post(base + "/properties", json={"propertyId": b.id, "matchScore": 39}, headers=headers(t.id))

    r = client.get(base + "/matches", headers=headers(t.id))
    assert [e["propertyId"] for e in r.json()["data"]] == [a.id, b.id]
    assert r.json()["data"][0]["sourceOwner"]["id"] == owner.id
    assert r.json()["data"][1]["sourceOwner"] is None

    r = client.post(base + f"/properties/{a.id}/status", json={"status": "VISITED"}, headers=headers(t.id))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "VISITED"

    r = client.post(base + f"/properties/{a.id}/status", json={"status": "LOST"}, headers=headers(t.id))
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_shortlist_rejects_bad_input(client, factory, headers):
    t, deal, a, b = _scenario(factory)
    foreign = factory.property(factory.tenant())
    base = f"/api/tenants/{t.id}/crm/deals/{deal.id}"

    r = client.post(base + "/properties", json={}, headers=headers(t.id))
    assert r.status_code == 400
    assert r.json()["success"] is False

    r = client.post(base + "/properties", json={"propertyId": a.id, "matchScore": 140}, headers=headers(t.id))
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "matchScore must be between 0 and 100"}

    r = client.post(base + "/properties", json={"propertyId": foreign.id}, headers=headers(t.id))
    assert r.status_code == 403

    r = client.post(base + "/properties", json={"propertyId": 999999}, headers=headers(t.id))
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Property not found"}


def test_metrics_and_matching_meta(client, factory, headers):
    t, deal, a, b = _scenario(factory)
    client.post(_match_url(t.id, deal.id), headers=headers(t.id))

    text = client.get("/api/metrics").text
    assert "dealmatch_match_runs 1" in text
    assert "dealmatch_match_candidates_scored 2" in text

    meta = client.get("/api/meta/matching").json()
    assert meta["weights"]["budget"] == 0.35
    assert meta["eligible_statuses"]["LOCATION"] == ["AVAILABLE"]
