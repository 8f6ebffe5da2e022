# iaschool/schemas/store_schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.store import ProductStatus, OrderStatus


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(default=None)
    image_url: Optional[str] = Field(default=None, max_length=500)


class ProductCreate(BaseModel):
    category_id: Optional[UUID] = Field(default=None)
    name: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None)
    price: Decimal
    image_url: Optional[str] = Field(default=None, max_length=500)
    stock: int = Field(default=0, ge=0)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    is_required: bool = Field(default=False)


class ProductUpdate(BaseModel):
    category_id: Optional[UUID] = Field(default=None)
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None)
    price: Optional[Decimal] = Field(default=None)
    image_url: Optional[str] = Field(default=None, max_length=500)
    stock: Optional[int] = Field(default=None, ge=0)
    sizes: Optional[List[str]] = Field(default=None)
    colors: Optional[List[str]] = Field(default=None)
    is_required: Optional[bool] = Field(default=None)
    status: Optional[ProductStatus] = Field(default=None)


class CartItemAdd(BaseModel):
    product_id: UUID
    quantity: int = Field(default=1)
    size: Optional[str] = Field(default=None, max_length=20)
    color: Optional[str] = Field(default=None, max_length=30)


class CartItemUpdate(BaseModel):
    quantity: int


class CheckoutRequest(BaseModel):
    student_id: Optional[UUID] = Field(default=None)
    notes: Optional[str] = Field(default=None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = Field(default=None)
    payment_reference: Optional[str] = Field(default=None, max_length=100)
    delivery_date: Optional[datetime] = Field(default=None)
    notes: Optional[str] = Field(default=None)
