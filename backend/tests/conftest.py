# backend/tests/conftest.py
from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any, Optional

# Must be set before dealmatch.config is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_MODE", "dev")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from dealmatch import models  # noqa: F401
from dealmatch.db import Base, get_db, make_engine
from dealmatch.main import create_app
from dealmatch.models import AppUser, Contact, Deal, Property, Tenant, TenantMembership
from dealmatch.services.runtime_metrics import METRICS


class Factory:
    """Tiny row builders; every helper commits and returns the refreshed row."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._n = 0

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        self.db.commit()  # release the SQLite read lock taken by refresh()
        return row

    def tenant(self, slug: Optional[str] = None) -> Tenant:
        self._n += 1
        slug = slug or f"agency-{self._n}"
        return self._save(Tenant(slug=slug, name=slug.title()))

    def user(self, tenant: Tenant, email: str = "agent@demo.local", role: str = "agent") -> AppUser:
        u = self._save(AppUser(email=email, display_name=email.split("@")[0]))
        self._save(TenantMembership(tenant_id=tenant.id, user_id=u.id, role=role))
        return u

    def contact(self, tenant: Tenant, first_name: str = "Awa") -> Contact:
        return self._save(Contact(tenant_id=tenant.id, first_name=first_name, last_name="Kouassi"))

    def property(
        self,
        tenant: Tenant,
        *,
        price: Optional[float] = 25_000_000,
        zone: Optional[str] = "Cocody",
        rooms: Optional[int] = 3,
        status: str = "AVAILABLE",
        features: Any = None,
        type_specific_data: Optional[str] = None,
        created_at: Optional[datetime] = None,
        **kw: Any,
    ) -> Property:
        if type_specific_data is None and features is not None:
            type_specific_data = json.dumps({"features": features})
        kw.setdefault("property_type", "APARTMENT")
        kw.setdefault("currency", "XOF")
        kw.setdefault("city", "Abidjan")
        kw.setdefault("region", "Abidjan")
        kw.setdefault("country", "CI")
        return self._save(
            Property(
                tenant_id=tenant.id,
                price=price,
                location_zone=zone,
                rooms=rooms,
                status=status,
                type_specific_data=type_specific_data,
                created_at=created_at or datetime(2026, 9, 1),
                **kw,
            )
        )

    def deal(
        self,
        tenant: Tenant,
        *,
        type: str = "ACHAT",
        budget_min: Optional[float] = 20_000_000,
        budget_max: Optional[float] = 30_000_000,
        zone: Optional[str] = "Cocody",
        criteria: Optional[dict] = None,
        currency: str = "XOF",
    ) -> Deal:
        return self._save(
            Deal(
                tenant_id=tenant.id,
                type=type,
                budget_min=budget_min,
                budget_max=budget_max,
                currency=currency,
                location_zone=zone,
                criteria_json=json.dumps(criteria) if criteria is not None else None,
            )
        )


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'dealmatch_test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def db(session_factory):
    s = session_factory(expire_on_commit=False)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def factory(db) -> Factory:
    return Factory(db)


@pytest.fixture()
def app(session_factory):
    METRICS.reset()
    app = create_app()

    def _get_db():
        s = session_factory()
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


def dev_headers(tenant_id: int, email: str = "agent@demo.local", role: Optional[str] = None) -> dict[str, str]:
    h = {"X-Tenant-Id": str(tenant_id), "X-User-Email": email}
    if role:
        h["X-User-Role"] = role
    return h


@pytest.fixture()
def headers():
    return dev_headers
