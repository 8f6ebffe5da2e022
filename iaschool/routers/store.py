from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_admin
from ..models.tenant_specific.store import OrderStatus
from ..models.tenant_specific.user import User
from ..schemas.store_schemas import (
    CategoryCreate, ProductCreate, ProductUpdate,
    CartItemAdd, CartItemUpdate, CheckoutRequest, OrderStatusUpdate
)
from ..services.store_service import StoreService

router = APIRouter(prefix="/api/v1/store", tags=["Store"])


# Catalog

@router.get("/categories")
async def list_categories(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    categories = await service.list_categories(current_user.school_id)
    return {"items": categories, "total": len(categories)}


@router.post("/categories", status_code=201)
async def create_category(
    payload: CategoryCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    category = await service.create_category(current_user.school_id, payload.model_dump())
    return service.format_category(category)


@router.get("/products")
async def list_products(
    category_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    products = await service.list_products(
        current_user.school_id,
        category_id=category_id,
        search=search,
        include_inactive=current_user.is_admin
    )
    return {"items": [service.format_product(p) for p in products], "total": len(products)}


@router.post("/products", status_code=201)
async def create_product(
    payload: ProductCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    product = await service.create_product(current_user.school_id, payload.model_dump())
    return service.format_product(product)


@router.get("/products/{product_id}")
async def get_product(
    product_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    product = await service.get_or_404(product_id, current_user.school_id)
    return service.format_product(product)


@router.put("/products/{product_id}")
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    product = await service.update_product(
        current_user.school_id, product_id, payload.model_dump(exclude_unset=True)
    )
    return service.format_product(product)


# Cart

@router.get("/cart")
async def get_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    return await service.get_cart(current_user)


@router.post("/cart", status_code=201)
async def add_to_cart(
    payload: CartItemAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    item = await service.add_to_cart(current_user, payload.model_dump())
    return service.format_cart_item(item)


@router.put("/cart/{item_id}")
async def update_cart_item(
    item_id: UUID,
    payload: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Set the line quantity; zero or less removes the line"""
    service = StoreService(db)
    item = await service.set_cart_quantity(current_user, item_id, payload.quantity)
    if item is None:
        return {"message": "Item removed from cart"}
    return service.format_cart_item(item)


@router.delete("/cart/{item_id}")
async def remove_cart_item(
    item_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    await service.remove_cart_item(current_user, item_id)
    return {"message": "Item removed from cart"}


@router.delete("/cart")
async def clear_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    await service.clear_cart(current_user)
    return {"message": "Cart cleared"}


# Orders

@router.post("/checkout", status_code=201)
async def checkout(
    payload: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    order = await service.checkout(current_user, payload.model_dump())
    return service.format_order(order)


@router.get("/orders")
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    orders = await service.list_orders(current_user, status)
    return {"items": [service.format_order(o) for o in orders], "total": len(orders)}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    order = await service.get_order(current_user, order_id)
    return service.format_order(order)


@router.patch("/orders/{order_id}")
async def update_order(
    order_id: UUID,
    payload: OrderStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = StoreService(db)
    order = await service.update_order_status(current_user, order_id, payload.model_dump(exclude_unset=True))
    return service.format_order(order)
