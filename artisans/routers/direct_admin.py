"""
Admin router — publishing and awarding service requests.

    GET   /api/direct-admin/service-requests-with-bids
    PATCH /api/direct-admin/service-requests/{id}/publish
    PATCH /api/direct-admin/service-requests/{id}/award   {bidId, serviceProviderId}
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.models.service_request import ServiceRequestStatus
from artisans.routers.auth import get_context
from artisans.schemas.service_request import (
    AwardIn,
    BidOut,
    ServiceRequestOut,
    ServiceRequestWithBids,
)
from artisans.services import bidding
from artisans.services.notifications import send_award_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/direct-admin", tags=["admin"])


@router.get("/service-requests-with-bids", response_model=List[ServiceRequestWithBids])
async def service_requests_with_bids(
    status: Optional[ServiceRequestStatus] = None,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    rows = await bidding.list_requests_with_bids(db, ctx, status)
    return [
        ServiceRequestWithBids(
            **ServiceRequestOut.model_validate(request).model_dump(),
            bids=[BidOut.model_validate(b) for b in bids],
        )
        for request, bids in rows
    ]


@router.patch("/service-requests/{request_id}/publish", response_model=ServiceRequestOut)
async def publish_service_request(
    request_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await bidding.publish_service_request(db, ctx, request_id)


@router.patch("/service-requests/{request_id}/award", response_model=ServiceRequestWithBids)
async def award_service_request(
    request_id: int,
    body: AwardIn,
    background_tasks: BackgroundTasks,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    if body.admin_username and body.admin_username != ctx.require_admin().username:
        logger.warning(
            f"Award on request {request_id}: body names admin '{body.admin_username}', "
            f"acting as '{ctx.user.username}'"
        )
    service_request, bid, provider = await bidding.award_service_request(
        db, ctx, request_id, body.bid_id, body.service_provider_id
    )
    background_tasks.add_task(
        send_award_email,
        recipient_email=provider.email,
        provider_name=provider.business_name or provider.full_name,
        service_type=service_request.service_type,
        request_id=service_request.id,
    )
    bids = await bidding.list_bids(db, ctx, request_id)
    return ServiceRequestWithBids(
        **ServiceRequestOut.model_validate(service_request).model_dump(),
        bids=[BidOut.model_validate(b) for b in bids],
    )
