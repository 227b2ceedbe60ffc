# backend/dealmatch/models.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Multitenant tables
# -----------------------------
class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class TenantMembership(Base):
    __tablename__ = "tenant_memberships"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_tenant_memberships_tenant_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="agent")  # owner|manager|agent|viewer
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Listings (read-only to the matching engine)
# -----------------------------
class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_tenant_status", "tenant_id", "status"),
        Index("ix_properties_tenant_zone_type", "tenant_id", "location_zone", "property_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    internal_reference: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    property_type: Mapped[str] = mapped_column(String(40), nullable=False, default="APARTMENT")
    # DRAFT|UNDER_REVIEW|AVAILABLE|RESERVED|UNDER_OFFER|SOLD|RENTED|ARCHIVED
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")

    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="XOF")

    location_zone: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    country: Mapped[str] = mapped_column(String(2), nullable=False, default="CI")
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    surface_area: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # {"features": [...], "hasPool": true, ...}
    type_specific_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# CRM (deals are read-only to the matching engine)
# -----------------------------
class Contact(Base):
    __tablename__ = "crm_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class Deal(Base):
    __tablename__ = "crm_deals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    contact_id: Mapped[Optional[int]] = mapped_column(ForeignKey("crm_contacts.id", ondelete="SET NULL"), nullable=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # ACHAT|LOCATION|VENTE|GESTION|MANDAT
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default="NEW")

    budget_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    budget_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="XOF")
    location_zone: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    criteria_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    shortlist: Mapped[List["DealProperty"]] = relationship(back_populates="deal", cascade="all, delete-orphan")


class DealProperty(Base):
    """Shortlist entry: a property a user explicitly attached to a deal."""

    __tablename__ = "crm_deal_properties"
    __table_args__ = (
        UniqueConstraint("tenant_id", "deal_id", "property_id", name="uq_crm_deal_properties_tenant_deal_property"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    deal_id: Mapped[int] = mapped_column(ForeignKey("crm_deals.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)

    match_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    match_explanation_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_owner_contact_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("crm_contacts.id", ondelete="SET NULL"), nullable=True
    )
    # SHORTLISTED|PROPOSED|VISITED|SELECTED|REJECTED
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="SHORTLISTED")

    added_by_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("app_users.id"), nullable=True)
    added_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    deal: Mapped["Deal"] = relationship(back_populates="shortlist")
    property: Mapped["Property"] = relationship()
    source_owner: Mapped[Optional["Contact"]] = relationship()
