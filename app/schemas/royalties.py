"""Pydantic schemas for royalties API."""
from datetime import date
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# Request schemas

class RoyaltyUpdate(BaseModel):
    """Manual correction of a line item. Only provided fields change."""
    territory: Optional[str] = None
    exploitation_source_name: Optional[str] = None
    usage_count: Optional[int] = Field(default=None, ge=0)
    gross_amount: Optional[Decimal] = None
    admin_percent: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    broadcast_date: Optional[date] = None

    @field_validator("usage_count", "gross_amount", "admin_percent", "net_amount", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("gross_amount", "admin_percent", "net_amount")
    @classmethod
    def finite_decimal(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and not v.is_finite():
            raise ValueError("Amount must be a finite number")
        return v


class BulkDeleteRequest(BaseModel):
    """Ids of line items to delete (at most 1000)."""
    ids: List[UUID] = Field(min_length=1, max_length=1000)


# Response schemas

class RoyaltyLineItemOut(BaseModel):
    """A line item with amounts at full precision."""
    id: UUID
    artist_id: UUID
    track_id: Optional[UUID]
    title: str
    composer: str
    code: str
    territory: str
    source: str
    usage_count: int
    gross_amount: str
    admin_percent: str
    net_amount: str
    broadcast_date: Optional[date]


class QuarterSummary(BaseModel):
    """One quarter. Totals cover every item, `items` may be truncated."""
    key: str
    label: str
    short_label: str
    year: Optional[int]
    quarter: Optional[int]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_gross: str
    total_net: str
    total_usage: int
    item_count: int
    truncated: bool = False
    items: List[RoyaltyLineItemOut] = Field(default_factory=list)


class QuarterListResponse(BaseModel):
    artist_id: UUID
    total_gross: str
    total_net: str
    dateless_count: int = Field(description="Line items without a broadcast date, excluded from quarters")
    quarters: List[QuarterSummary]
    unassigned: Optional[QuarterSummary] = None


class BreakdownItem(BaseModel):
    key: str
    label: Optional[str] = None
    revenue: str
    gross: str
    usage_count: int
    item_count: int
    percentage: str


class AnalyticsResponse(BaseModel):
    artist_id: Optional[UUID] = None
    total_gross: str
    total_net: str
    total_usage: int
    item_count: int
    dateless_count: int
    tracks: List[BreakdownItem]
    territories: List[BreakdownItem]
    sources: List[BreakdownItem]
    months: List[BreakdownItem]
    quarters: List[QuarterSummary]


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: int
