# backend/dealmatch/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, List, Any

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------- Envelopes --------------------

class ErrorOut(BaseModel):
    success: bool = False
    error: str


# -------------------- Matching --------------------

class PropertySummaryOut(CamelModel):
    id: int
    internal_reference: Optional[str] = None
    property_type: str
    status: str
    price: Optional[float] = None
    currency: str
    location_zone: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    surface_area: Optional[float] = None
    rooms: Optional[int] = None
    bedrooms: Optional[int] = None
    created_at: Optional[datetime] = None


class MatchExplanationOut(CamelModel):
    budget_score: float
    location_score: float
    size_score: float
    features_score: float
    price_coherence_score: float
    reasons: List[str] = Field(default_factory=list)


class PropertyMatchOut(CamelModel):
    property_id: int
    match_score: int
    property: PropertySummaryOut
    explanation_text: str
    explanation: MatchExplanationOut


class MatchResponse(BaseModel):
    success: bool = True
    data: List[PropertyMatchOut] = Field(default_factory=list)


# -------------------- Shortlist --------------------

class ShortlistAddIn(CamelModel):
    property_id: int
    match_score: Optional[float] = None
    match_explanation: Optional[dict[str, Any]] = None
    source_owner_contact_id: Optional[int] = None


class ShortlistStatusIn(BaseModel):
    status: str


class ContactSummaryOut(CamelModel):
    id: int
    first_name: str
    last_name: Optional[str] = None


class ShortlistEntryOut(CamelModel):
    id: int
    deal_id: int
    property_id: int
    match_score: Optional[int] = None
    match_explanation: Optional[Any] = None
    source_owner_contact_id: Optional[int] = None
    source_owner: Optional[ContactSummaryOut] = None
    status: str
    added_by_user_id: Optional[int] = None
    added_at: datetime
    updated_at: datetime


class ShortlistEntryResponse(BaseModel):
    success: bool = True
    data: ShortlistEntryOut
    created: Optional[bool] = None


class ShortlistListResponse(BaseModel):
    success: bool = True
    data: List[ShortlistEntryOut] = Field(default_factory=list)
