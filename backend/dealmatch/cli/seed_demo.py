# backend/dealmatch/cli/seed_demo.py
from __future__ import annotations

import json
from datetime import datetime
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..models import AppUser, Contact, Deal, Property, Tenant, TenantMembership


@dataclass(frozen=True)
class SeedResult:
    tenant_id: int
    tenant_slug: str
    user_email: str
    deal_id: Optional[int]
    property_ids: list[int]


# Abidjan listings: a coherent Cocody cluster plus off-zone / off-budget noise.
_DEMO_PROPERTIES = [
    dict(internal_reference="CCD-001", price=48_000_000, location_zone="Cocody", surface_area=95, rooms=4,
         bedrooms=3, created_day=1, features=["parking", "garden"]),
    dict(internal_reference="CCD-002", price=52_000_000, location_zone="Cocody", surface_area=100, rooms=4,
         bedrooms=3, created_day=2, features=["parking"]),
    dict(internal_reference="CCD-003", price=50_000_000, location_zone="Cocody", surface_area=98, rooms=4,
         bedrooms=3, created_day=3, features=[]),
    dict(internal_reference="CCD-004", price=49_000_000, location_zone="Cocody", surface_area=92, rooms=3,
         bedrooms=2, created_day=4, features=["parking", "pool"]),
    dict(internal_reference="YOP-001", price=50_000_000, location_zone="Yopougon", surface_area=100, rooms=4,
         bedrooms=3, created_day=5, features=["parking", "garden"]),
    dict(internal_reference="CCD-005", price=120_000_000, location_zone="Cocody", surface_area=180, rooms=6,
         bedrooms=5, created_day=6, features=["pool", "garden", "parking"]),
]


def _get_or_create_tenant(db: Session, slug: str, name: str) -> Tenant:
    row = db.scalar(select(Tenant).where(Tenant.slug == slug))
    if row:
        return row
    row = Tenant(slug=slug, name=name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_user(db: Session, email: str, display_name: str) -> AppUser:
    row = db.scalar(select(AppUser).where(AppUser.email == email))
    if row:
        return row
    row = AppUser(email=email, display_name=display_name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_membership(db: Session, tenant_id: int, user_id: int, role: str = "owner") -> None:
    existing = db.scalar(
        select(TenantMembership).where(
            TenantMembership.tenant_id == int(tenant_id),
            TenantMembership.user_id == int(user_id),
        )
    )
    if existing:
        return
    db.add(TenantMembership(tenant_id=int(tenant_id), user_id=int(user_id), role=str(role)))
    db.commit()


def _seed_properties(db: Session, tenant_id: int) -> list[int]:
    existing = db.scalars(select(Property.id).where(Property.tenant_id == int(tenant_id)).order_by(Property.id)).all()
    if existing:
        return [int(x) for x in existing]

    ids: list[int] = []
    for item in _DEMO_PROPERTIES:
        p = Property(
            tenant_id=int(tenant_id),
            internal_reference=item["internal_reference"],
            property_type="HOUSE",
            status="AVAILABLE",
            price=float(item["price"]),
            currency="XOF",
            location_zone=item["location_zone"],
            city="Abidjan",
            region="Abidjan",
            country="CI",
            surface_area=float(item["surface_area"]),
            rooms=item["rooms"],
            bedrooms=item["bedrooms"],
            type_specific_data=json.dumps({"features": item["features"]}),
            created_at=datetime(2026, 9, item["created_day"]),
        )
        db.add(p)
        db.flush()
        ids.append(int(p.id))
    db.commit()
    return ids


def _seed_deal(db: Session, tenant_id: int) -> int:
    deal = db.scalar(select(Deal).where(Deal.tenant_id == int(tenant_id)).order_by(Deal.id))
    if deal:
        return int(deal.id)

    contact = Contact(tenant_id=int(tenant_id), first_name="Awa", last_name="Kouassi")
    db.add(contact)
    db.flush()

    deal = Deal(
        tenant_id=int(tenant_id),
        contact_id=int(contact.id),
        type="ACHAT",
        stage="QUALIFIED",
        budget_min=45_000_000,
        budget_max=55_000_000,
        currency="XOF",
        location_zone="Cocody",
        criteria_json=json.dumps({"roomsMin": 4, "bedroomsMin": 3, "features": ["parking", "garden"]}),
    )
    db.add(deal)
    db.commit()
    db.refresh(deal)
    return int(deal.id)


def seed_demo(
    *,
    tenant_slug: str = "demo",
    tenant_name: str = "Demo Agency",
    user_email: str = "agent@demo.local",
    user_name: str = "Demo Agent",
    create_sample_deal: bool = True,
    db: Optional[Session] = None,
) -> SeedResult:
    own_session = db is None
    db = db or SessionLocal()
    try:
        tenant = _get_or_create_tenant(db, tenant_slug, tenant_name)
        user = _get_or_create_user(db, user_email, user_name)
        _ensure_membership(db, tenant.id, user.id, role="owner")

        deal_id: Optional[int] = None
        property_ids: list[int] = []
        if create_sample_deal:
            property_ids = _seed_properties(db, tenant.id)
            deal_id = _seed_deal(db, tenant.id)

        return SeedResult(
            tenant_id=int(tenant.id),
            tenant_slug=tenant_slug,
            user_email=user_email,
            deal_id=deal_id,
            property_ids=property_ids,
        )
    finally:
        if own_session:
            db.close()
