# backend/dealmatch/services/ownership.py
from __future__ import annotations

from sqlalchemy.orm import Session

from ..errors import CrossTenantError, NotFoundError
from ..models import Contact, Property


def must_get_property(db: Session, *, tenant_id: int, property_id: int) -> Property:
    row = db.get(Property, int(property_id))
    if row is None:
        raise NotFoundError("Property not found")
    if int(row.tenant_id) != int(tenant_id):
        raise CrossTenantError("Property belongs to another tenant")
    return row


def must_get_contact(db: Session, *, tenant_id: int, contact_id: int) -> Contact:
    row = db.get(Contact, int(contact_id))
    if row is None:
        raise NotFoundError("Contact not found")
    if int(row.tenant_id) != int(tenant_id):
        raise CrossTenantError("Contact belongs to another tenant")
    return row
