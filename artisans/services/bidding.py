"""
Service requests, bids and the award workflow.

    pending_admin ──publish──▶ published ──first bid──▶ bidding ──award──▶ awarded

Awarding accepts exactly one pending bid and rejects every other pending bid
on the request. Once a request is awarded, further award attempts fail with
``AlreadyAwarded`` and leave every bid untouched.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from artisans.config import settings
from artisans.context import RequestContext
from artisans.errors import (
    AlreadyAwarded,
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from artisans.models.bid import BidStatus, ServiceRequestBid
from artisans.models.notification import NotificationPriority
from artisans.models.service_request import OPEN_FOR_BIDDING, ServiceRequest, ServiceRequestStatus
from artisans.models.user import User, UserRole
from artisans.services.notifications import create_notification

logger = logging.getLogger(__name__)

PUBLISHABLE = {ServiceRequestStatus.PENDING_ADMIN, ServiceRequestStatus.APPROVED}


async def _get_request(db: AsyncSession, request_id: int) -> ServiceRequest:
    service_request = await db.get(ServiceRequest, request_id)
    if service_request is None:
        raise NotFound("Service request not found.")
    return service_request


async def _flush_versioned(db: AsyncSession) -> None:
    try:
        await db.flush()
    except StaleDataError:
        raise Conflict("The service request was updated concurrently. Reload and try again.")


# ═══════════════════════════════════════════════════════════════
#  Service requests
# ═══════════════════════════════════════════════════════════════

async def create_service_request(db: AsyncSession, ctx: RequestContext, data: dict) -> ServiceRequest:
    user = ctx.require_role(UserRole.CLIENT)
    for field in ("request_type", "service_type", "description", "location"):
        if not (data.get(field) or "").strip():
            raise ValidationFailed(f"{field.replace('_', ' ').capitalize()} is required.")

    service_request = ServiceRequest(
        client_id=user.id,
        request_type=data["request_type"].strip(),
        service_type=data["service_type"].strip(),
        description=data["description"].strip(),
        budget=data.get("budget"),
        location=data["location"].strip(),
        timeline=data.get("timeline"),
        status=ServiceRequestStatus.PENDING_ADMIN,
    )
    db.add(service_request)
    await db.flush()
    logger.info(f"Service request {service_request.id} created by user {user.id}")
    return service_request


async def list_service_requests(db: AsyncSession, ctx: RequestContext) -> List[ServiceRequest]:
    """Admins see all, clients their own, providers the open ones plus those awarded to them."""
    user = ctx.require_user()
    query = select(ServiceRequest).order_by(ServiceRequest.created_at.desc())
    if ctx.is_admin:
        pass
    elif user.role == UserRole.SERVICE_PROVIDER:
        query = query.where(
            or_(
                ServiceRequest.status.in_(OPEN_FOR_BIDDING),
                ServiceRequest.assigned_service_provider_id == user.id,
            )
        )
    else:
        query = query.where(ServiceRequest.client_id == user.id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_service_request(db: AsyncSession, ctx: RequestContext, request_id: int) -> ServiceRequest:
    user = ctx.require_user()
    service_request = await _get_request(db, request_id)
    visible = (
        ctx.is_admin
        or service_request.client_id == user.id
        or service_request.assigned_service_provider_id == user.id
        or (user.role == UserRole.SERVICE_PROVIDER and service_request.status in OPEN_FOR_BIDDING)
    )
    if not visible:
        raise PermissionDenied("You cannot view this service request.")
    return service_request


async def publish_service_request(db: AsyncSession, ctx: RequestContext, request_id: int) -> ServiceRequest:
    ctx.require_admin()
    service_request = await _get_request(db, request_id)
    if service_request.status not in PUBLISHABLE:
        raise InvalidState(f"Cannot publish a request in status '{service_request.status.value}'.")

    service_request.status = ServiceRequestStatus.PUBLISHED
    await _flush_versioned(db)

    create_notification(
        db,
        user_id=service_request.client_id,
        title="Service request published",
        message=f"Your {service_request.service_type} request is now open for bids",
        type="service_request",
        link=f"/service-requests/{service_request.id}",
    )
    logger.info(f"Service request {request_id} published")
    return service_request


# ═══════════════════════════════════════════════════════════════
#  Bids
# ═══════════════════════════════════════════════════════════════

async def submit_bid(
    db: AsyncSession, ctx: RequestContext, request_id: int, data: dict
) -> ServiceRequestBid:
    """A provider bids on an open request, spending bidding points."""
    provider = ctx.require_role(UserRole.SERVICE_PROVIDER)
    service_request = await _get_request(db, request_id)
    if service_request.status not in OPEN_FOR_BIDDING:
        raise InvalidState("This service request is not open for bidding.")

    existing = await db.execute(
        select(ServiceRequestBid.id).where(
            ServiceRequestBid.service_request_id == request_id,
            ServiceRequestBid.service_provider_id == provider.id,
        )
    )
    if existing.first() is not None:
        raise InvalidState("You have already bid on this service request.")

    bid_amount = data.get("bid_amount")
    timeframe = data.get("timeframe")
    if not isinstance(bid_amount, int) or bid_amount <= 0:
        raise ValidationFailed("Bid amount must be a positive number of cents.")
    if not isinstance(timeframe, int) or timeframe <= 0:
        raise ValidationFailed("Timeframe must be a positive number of days.")
    if not (data.get("description") or "").strip():
        raise ValidationFailed("Description is required.")

    points = data.get("points_used")
    points = settings.DEFAULT_BID_POINTS if points is None else points
    if points < 0:
        raise ValidationFailed("Points cannot be negative.")
    # Balance never goes negative, even across concurrent bids.
    spent = await db.execute(
        update(User)
        .where(User.id == provider.id, User.points >= points)
        .values(points=User.points - points)
        .execution_options(synchronize_session=False)
    )
    if spent.rowcount != 1:
        raise ValidationFailed(f"Not enough points: {points} required.")
    await db.refresh(provider, ["points"])

    bid = ServiceRequestBid(
        service_request_id=request_id,
        service_provider_id=provider.id,
        bid_amount=bid_amount,
        timeframe=timeframe,
        description=data["description"].strip(),
        points_used=points,
        notes=data.get("notes"),
        status=BidStatus.PENDING,
    )
    db.add(bid)

    if service_request.status == ServiceRequestStatus.PUBLISHED:
        service_request.status = ServiceRequestStatus.BIDDING
    await _flush_versioned(db)

    logger.info(f"Bid {bid.id} on request {request_id} by provider {provider.id} ({points} points)")
    return bid


async def list_bids(db: AsyncSession, ctx: RequestContext, request_id: int) -> List[ServiceRequestBid]:
    user = ctx.require_user()
    service_request = await _get_request(db, request_id)
    query = (
        select(ServiceRequestBid)
        .where(ServiceRequestBid.service_request_id == request_id)
        .order_by(ServiceRequestBid.bid_amount, ServiceRequestBid.id)
    )
    if not ctx.is_admin and service_request.client_id != user.id:
        query = query.where(ServiceRequestBid.service_provider_id == user.id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_requests_with_bids(
    db: AsyncSession, ctx: RequestContext, status: Optional[ServiceRequestStatus] = None
) -> List[Tuple[ServiceRequest, List[ServiceRequestBid]]]:
    """Admin overview: every request with its bids, newest request first."""
    ctx.require_admin()
    query = select(ServiceRequest).order_by(ServiceRequest.created_at.desc())
    if status is not None:
        query = query.where(ServiceRequest.status == status)
    requests = list((await db.execute(query)).scalars().all())
    if not requests:
        return []

    bids_result = await db.execute(
        select(ServiceRequestBid)
        .where(ServiceRequestBid.service_request_id.in_([r.id for r in requests]))
        .order_by(ServiceRequestBid.bid_amount, ServiceRequestBid.id)
    )
    by_request: Dict[int, List[ServiceRequestBid]] = {r.id: [] for r in requests}
    for bid in bids_result.scalars().all():
        by_request[bid.service_request_id].append(bid)
    return [(r, by_request[r.id]) for r in requests]


# ═══════════════════════════════════════════════════════════════
#  Award
# ═══════════════════════════════════════════════════════════════

async def award_service_request(
    db: AsyncSession,
    ctx: RequestContext,
    request_id: int,
    bid_id: int,
    provider_id: int,
) -> Tuple[ServiceRequest, ServiceRequestBid, User]:
    """
    Accept ``bid_id`` for ``request_id`` and award the request to its provider.

    Returns the request, the winning bid and the provider so the caller can
    schedule the award email.
    """
    ctx.require_admin()
    service_request = await _get_request(db, request_id)

    if service_request.status == ServiceRequestStatus.AWARDED:
        raise AlreadyAwarded()
    accepted = await db.execute(
        select(ServiceRequestBid.id).where(
            ServiceRequestBid.service_request_id == request_id,
            ServiceRequestBid.status == BidStatus.ACCEPTED,
        )
    )
    if accepted.first() is not None:
        raise AlreadyAwarded()
    if service_request.status not in OPEN_FOR_BIDDING:
        raise InvalidState(f"Cannot award a request in status '{service_request.status.value}'.")

    bid = await db.get(ServiceRequestBid, bid_id)
    if bid is None or bid.service_request_id != request_id:
        raise NotFound("Bid not found for this service request.")
    if bid.status != BidStatus.PENDING:
        raise InvalidState(f"Only pending bids can be accepted; this bid is {bid.status.value}.")
    if bid.service_provider_id != provider_id:
        raise ValidationFailed("The service provider does not match the selected bid.")

    provider = await db.get(User, provider_id)
    if provider is None:
        raise NotFound("Service provider not found.")

    bid.status = BidStatus.ACCEPTED
    service_request.status = ServiceRequestStatus.AWARDED
    service_request.assigned_service_provider_id = provider_id
    await _flush_versioned(db)

    await db.execute(
        update(ServiceRequestBid)
        .where(
            ServiceRequestBid.service_request_id == request_id,
            ServiceRequestBid.id != bid_id,
            ServiceRequestBid.status == BidStatus.PENDING,
        )
        .values(status=BidStatus.REJECTED)
        .execution_options(synchronize_session="fetch")
    )

    create_notification(
        db,
        user_id=provider_id,
        title="Bid accepted",
        message=f"Your bid on {service_request.service_type} request #{request_id} was accepted",
        type="bid",
        priority=NotificationPriority.HIGH,
        link=f"/provider/service-requests/{request_id}",
    )
    create_notification(
        db,
        user_id=service_request.client_id,
        title="Service request awarded",
        message=f"Your {service_request.service_type} request has been awarded to a provider",
        type="service_request",
        link=f"/service-requests/{request_id}",
    )
    logger.info(f"Service request {request_id} awarded to provider {provider_id} (bid {bid_id})")
    return service_request, bid, provider
