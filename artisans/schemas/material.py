"""Material catalogue and order schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from artisans.models.order import OrderStatus
from artisans.schemas.base import CamelModel


class MaterialCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str
    category: str = Field(min_length=1, max_length=100)
    unit: str = Field(min_length=1, max_length=50)
    price: int = Field(gt=0)
    brand: Optional[str] = None
    image_url: Optional[str] = None
    in_stock: bool = True


class MaterialUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    unit: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[int] = Field(None, gt=0)
    brand: Optional[str] = None
    image_url: Optional[str] = None
    in_stock: Optional[bool] = None


class MaterialOut(CamelModel):
    id: int
    supplier_id: int
    name: str
    description: str
    category: str
    unit: str
    price: int
    brand: Optional[str] = None
    image_url: Optional[str] = None
    in_stock: bool
    created_at: Optional[datetime] = None


class OrderItemIn(CamelModel):
    material_id: int
    quantity: int = Field(gt=0)


class OrderItemOut(CamelModel):
    material_id: int
    name: str
    quantity: int
    price: int


class OrderCreate(CamelModel):
    project_id: int
    items: List[OrderItemIn] = Field(min_length=1)
    delivery_address: str = Field(min_length=1)
    delivery_date: Optional[datetime] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderOut(CamelModel):
    id: int
    order_number: str
    client_id: int
    project_id: int
    supplier_id: int
    status: OrderStatus
    items: List[OrderItemOut]
    total_amount: int
    delivery_address: str
    delivery_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
