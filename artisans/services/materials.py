"""Supplier material catalogue."""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.errors import NotFound, PermissionDenied, ValidationFailed
from artisans.models.material import Material
from artisans.models.user import UserRole

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "description", "category", "unit", "price", "brand", "image_url", "in_stock"}


async def get_material(db: AsyncSession, material_id: int) -> Material:
    material = await db.get(Material, material_id)
    if material is None:
        raise NotFound("Material not found.")
    return material


def _ensure_can_edit(ctx: RequestContext, material: Material) -> None:
    user = ctx.require_user()
    if not ctx.is_admin and material.supplier_id != user.id:
        raise PermissionDenied("Only the supplier who listed this material can change it.")


async def list_materials(
    db: AsyncSession,
    category: Optional[str] = None,
    supplier_id: Optional[int] = None,
    in_stock_only: bool = False,
) -> List[Material]:
    query = select(Material).order_by(Material.category, Material.name, Material.id)
    if category:
        query = query.where(Material.category == category.strip().lower())
    if supplier_id is not None:
        query = query.where(Material.supplier_id == supplier_id)
    if in_stock_only:
        query = query.where(Material.in_stock == True)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_material(db: AsyncSession, ctx: RequestContext, data: dict) -> Material:
    supplier = ctx.require_role(UserRole.SUPPLIER)
    for field in ("name", "description", "category", "unit"):
        if not (data.get(field) or "").strip():
            raise ValidationFailed(f"{field.capitalize()} is required.")
    if not isinstance(data.get("price"), int) or data["price"] <= 0:
        raise ValidationFailed("Price must be a positive number of cents.")

    material = Material(
        supplier_id=supplier.id,
        name=data["name"].strip(),
        description=data["description"].strip(),
        category=data["category"].strip().lower(),
        unit=data["unit"].strip(),
        price=data["price"],
        brand=data.get("brand"),
        image_url=data.get("image_url"),
        in_stock=data.get("in_stock", True),
    )
    db.add(material)
    await db.flush()
    logger.info(f"Material {material.id} listed by supplier {supplier.id}")
    return material


async def update_material(db: AsyncSession, ctx: RequestContext, material_id: int, changes: dict) -> Material:
    material = await get_material(db, material_id)
    _ensure_can_edit(ctx, material)

    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS or value is None:
            continue
        if field == "price" and (not isinstance(value, int) or value <= 0):
            raise ValidationFailed("Price must be a positive number of cents.")
        if field == "category":
            value = value.strip().lower()
        setattr(material, field, value)
    await db.flush()
    return material


async def delete_material(db: AsyncSession, ctx: RequestContext, material_id: int) -> None:
    """Past orders keep their own copy of name and price, so they survive this."""
    material = await get_material(db, material_id)
    _ensure_can_edit(ctx, material)
    await db.delete(material)
    await db.flush()
    logger.info(f"Material {material_id} removed by user {ctx.user_id}")
