"""
Service requests router — clients post requests, providers bid on them.

    POST /api/service-requests              → create (client)
    GET  /api/service-requests              → requests visible to me
    GET  /api/service-requests/{id}         → one request
    POST /api/service-requests/{id}/bids    → submit a bid (service provider)
    GET  /api/service-requests/{id}/bids    → bids visible to me
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.routers.auth import get_context
from artisans.schemas.service_request import BidCreate, BidOut, ServiceRequestCreate, ServiceRequestOut
from artisans.services import bidding

router = APIRouter(prefix="/api/service-requests", tags=["service-requests"])


@router.post("", response_model=ServiceRequestOut, status_code=status.HTTP_201_CREATED)
async def create_service_request(
    body: ServiceRequestCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.create_service_request(db, ctx, body.model_dump())


@router.get("", response_model=List[ServiceRequestOut])
async def list_service_requests(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.list_service_requests(db, ctx)


@router.get("/{request_id}", response_model=ServiceRequestOut)
async def get_service_request(
    request_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.get_service_request(db, ctx, request_id)


@router.post("/{request_id}/bids", response_model=BidOut, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    request_id: int,
    body: BidCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.submit_bid(db, ctx, request_id, body.model_dump())


@router.get("/{request_id}/bids", response_model=List[BidOut])
async def list_bids(
    request_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.list_bids(db, ctx, request_id)
