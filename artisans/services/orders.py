"""
Material orders.

    processing ──▶ in_transit ──▶ delivered
        │
        └──▶ cancelled

Every order is for one project and one supplier. Prices are copied from the
catalogue when the order is placed; the total is always computed here.
"""

import json
import logging
import secrets
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import utcnow
from artisans.errors import InvalidState, NotFound, PermissionDenied, ValidationFailed
from artisans.models.material import Material
from artisans.models.order import Order, OrderStatus
from artisans.models.user import UserRole
from artisans.services.notifications import create_notification
from artisans.services.projects import ensure_can_manage, ensure_can_view, get_project

logger = logging.getLogger(__name__)

SUPPLIER_MOVES = {
    OrderStatus.PROCESSING: {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
}


def new_order_number() -> str:
    return f"ORD-{utcnow().year}-{secrets.token_hex(3).upper()}"


async def get_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found.")
    return order


async def get_visible_order(db: AsyncSession, ctx: RequestContext, order_id: int) -> Order:
    """The client, the supplier and anyone who can view the project may see an order."""
    user = ctx.require_user()
    order = await get_order(db, order_id)
    if user.id in (order.client_id, order.supplier_id):
        return order
    try:
        await ensure_can_view(db, ctx, await get_project(db, order.project_id))
    except PermissionDenied:
        raise NotFound("Order not found.")
    return order


async def create_order(db: AsyncSession, ctx: RequestContext, project_id: int, data: dict) -> Order:
    """
    Place an order for ``project_id``. ``data["items"]`` is a list of
    ``{"material_id", "quantity"}``; every material must be in stock and come
    from the same supplier.
    """
    project = await get_project(db, project_id)
    ensure_can_manage(ctx, project)

    address = (data.get("delivery_address") or "").strip()
    if not address:
        raise ValidationFailed("Delivery address is required.")

    quantities: Dict[int, int] = {}
    for item in data.get("items") or []:
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or quantity <= 0:
            raise ValidationFailed("Each item needs a positive quantity.")
        quantities[item["material_id"]] = quantities.get(item["material_id"], 0) + quantity
    if not quantities:
        raise ValidationFailed("An order needs at least one item.")

    result = await db.execute(select(Material).where(Material.id.in_(quantities)))
    materials = {m.id: m for m in result.scalars().all()}
    missing = sorted(set(quantities) - set(materials))
    if missing:
        raise NotFound(f"Unknown material(s): {', '.join(map(str, missing))}.")

    suppliers = {m.supplier_id for m in materials.values()}
    if len(suppliers) != 1:
        raise ValidationFailed("All items in one order must come from the same supplier.")
    out_of_stock = [m.name for m in materials.values() if not m.in_stock]
    if out_of_stock:
        raise InvalidState(f"Out of stock: {', '.join(out_of_stock)}.")

    items = [
        {
            "materialId": material_id,
            "name": materials[material_id].name,
            "quantity": quantity,
            "price": materials[material_id].price,
        }
        for material_id, quantity in quantities.items()
    ]
    order = Order(
        order_number=new_order_number(),
        client_id=ctx.user_id,
        project_id=project.id,
        supplier_id=suppliers.pop(),
        status=OrderStatus.PROCESSING,
        items_json=json.dumps(items),
        total_amount=sum(i["price"] * i["quantity"] for i in items),
        delivery_address=address,
        delivery_date=data.get("delivery_date"),
    )
    db.add(order)
    await db.flush()

    create_notification(
        db,
        user_id=order.supplier_id,
        title="New order",
        message=f"Order {order.order_number} for \"{project.name}\" is waiting to be processed",
        type="order",
        link=f"/orders/{order.id}",
    )
    logger.info(f"Order {order.order_number} placed by user {ctx.user_id} for project {project.id}")
    return order


async def list_orders(db: AsyncSession, ctx: RequestContext, project_id: Optional[int] = None) -> List[Order]:
    """
    With ``project_id``: every order for that project, for anyone who can view it.
    Without: admins see all, suppliers the orders they fulfil, clients their own.
    """
    user = ctx.require_user()
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if project_id is not None:
        project = await get_project(db, project_id)
        await ensure_can_view(db, ctx, project)
        query = query.where(Order.project_id == project_id)
    elif ctx.is_admin:
        pass
    elif user.role == UserRole.SUPPLIER:
        query = query.where(Order.supplier_id == user.id)
    else:
        query = query.where(Order.client_id == user.id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_order_status(
    db: AsyncSession, ctx: RequestContext, order_id: int, status: OrderStatus
) -> Order:
    """The supplier (or an admin) moves an order forward; the client may only cancel while processing."""
    user = ctx.require_user()
    order = await get_order(db, order_id)
    current = order.status

    if ctx.is_admin or order.supplier_id == user.id:
        if status not in SUPPLIER_MOVES.get(current, set()):
            raise InvalidState(f"Cannot move an order from '{current.value}' to '{status.value}'.")
        notify_id = order.client_id
    elif order.client_id == user.id:
        if status != OrderStatus.CANCELLED:
            raise PermissionDenied("Clients can only cancel their orders.")
        if current != OrderStatus.PROCESSING:
            raise InvalidState("Only orders that are still processing can be cancelled.")
        notify_id = order.supplier_id
    else:
        raise NotFound("Order not found.")

    order.status = status
    await db.flush()

    create_notification(
        db,
        user_id=notify_id,
        title="Order updated",
        message=f"Order {order.order_number} is now {status.value.replace('_', ' ')}",
        type="order",
        link=f"/orders/{order.id}",
    )
    logger.info(f"Order {order.order_number}: {current.value} -> {status.value} by user {user.id}")
    return order
