"""
Orders router — material orders for projects.

    POST  /api/orders               → place an order (project owner)
    GET   /api/orders               → my orders, or ?projectId= for one project
    GET   /api/orders/{id}          → one order
    PATCH /api/orders/{id}/status   → move an order along, or cancel it
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.routers.auth import get_context
from artisans.schemas.material import OrderCreate, OrderOut, OrderStatusUpdate
from artisans.services import orders as order_service

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump()
    return await order_service.create_order(db, ctx, body.project_id, data)


@router.get("", response_model=List[OrderOut])
async def list_orders(
    project_id: Optional[int] = Query(None, alias="projectId"),
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.list_orders(db, ctx, project_id)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_visible_order(db, ctx, order_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.update_order_status(db, ctx, order_id, body.status)
