"""Service request and bid schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from artisans.models.bid import BidStatus
from artisans.models.service_request import ServiceRequestStatus
from artisans.schemas.base import CamelModel


class ServiceRequestCreate(CamelModel):
    request_type: str
    service_type: str
    description: str
    location: str
    budget: Optional[int] = Field(None, ge=0)
    timeline: Optional[str] = None


class ServiceRequestOut(CamelModel):
    id: int
    client_id: int
    request_type: str
    service_type: str
    description: str
    budget: Optional[int] = None
    location: str
    timeline: Optional[str] = None
    status: ServiceRequestStatus
    assigned_service_provider_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BidCreate(CamelModel):
    bid_amount: int = Field(gt=0)
    timeframe: int = Field(gt=0)
    description: str
    points_used: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class BidOut(CamelModel):
    id: int
    service_request_id: int
    service_provider_id: int
    bid_amount: int
    timeframe: int
    description: str
    points_used: int
    notes: Optional[str] = None
    status: BidStatus
    created_at: Optional[datetime] = None


class ServiceRequestWithBids(ServiceRequestOut):
    bids: List[BidOut] = []


class AwardIn(CamelModel):
    bid_id: int
    service_provider_id: int
    admin_username: Optional[str] = None
