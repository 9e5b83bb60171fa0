"""
Materials router — supplier catalogue.

    GET    /api/materials              → browse (filter by category / supplier)
    GET    /api/materials/{id}         → one material
    POST   /api/materials              → list a material (supplier)
    PATCH  /api/materials/{id}         → edit (owning supplier or admin)
    DELETE /api/materials/{id}         → remove (owning supplier or admin)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.routers.auth import get_context
from artisans.schemas.material import MaterialCreate, MaterialOut, MaterialUpdate
from artisans.services import materials as material_service

router = APIRouter(prefix="/api/materials", tags=["materials"])


@router.get("", response_model=List[MaterialOut])
async def list_materials(
    category: Optional[str] = None,
    supplier_id: Optional[int] = None,
    in_stock: bool = False,
    db: AsyncSession = Depends(get_db),
):
    return await material_service.list_materials(db, category, supplier_id, in_stock_only=in_stock)


@router.get("/{material_id}", response_model=MaterialOut)
async def get_material(material_id: int, db: AsyncSession = Depends(get_db)):
    return await material_service.get_material(db, material_id)


@router.post("", response_model=MaterialOut, status_code=status.HTTP_201_CREATED)
async def create_material(
    body: MaterialCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await material_service.create_material(db, ctx, body.model_dump())


@router.patch("/{material_id}", response_model=MaterialOut)
async def update_material(
    material_id: int,
    body: MaterialUpdate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await material_service.update_material(db, ctx, material_id, body.model_dump(exclude_unset=True))


@router.delete("/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_material(
    material_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    await material_service.delete_material(db, ctx, material_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
