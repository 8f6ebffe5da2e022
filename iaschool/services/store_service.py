# iaschool/services/store_service.py
"""School store: catalog, per-user cart, checkout and order fulfilment."""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.cache import cache_manager
from ..core.exceptions import BadRequestError, NotFoundError
from ..core.security_utils import sanitize_search_term
from ..models.tenant_specific.store import (
    StoreCategory, StoreProduct, CartItem, StoreOrder, StoreOrderItem,
    ProductStatus, OrderStatus, ORDER_TRANSITIONS
)
from ..models.tenant_specific.user import User, UserRole
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


def categories_cache_key(school_id: UUID) -> str:
    return cache_manager.make_key("store", "categories", school_id)


class StoreService(BaseService[StoreProduct]):
    resource_name = "Product"

    def __init__(self, db: AsyncSession):
        super().__init__(StoreProduct, db)
        self.roster = RosterService(db)

    # Categories

    async def list_categories(self, school_id: UUID) -> List[Dict[str, Any]]:
        key = categories_cache_key(school_id)
        cached = await cache_manager.get(key)
        if cached is not None:
            return cached

        result = await self.db.execute(
            select(StoreCategory).where(
                StoreCategory.school_id == school_id,
                StoreCategory.is_active == True,
                StoreCategory.is_deleted == False
            ).order_by(StoreCategory.order, StoreCategory.name)
        )
        categories = [self.format_category(c) for c in result.scalars().all()]
        await cache_manager.set(key, categories)
        return categories

    async def create_category(self, school_id: UUID, data: Dict[str, Any]) -> StoreCategory:
        if not (data.get("name") or "").strip():
            raise BadRequestError("Category name is required", field="name")
        last_order = (await self.db.execute(
            select(func.max(StoreCategory.order)).where(StoreCategory.school_id == school_id)
        )).scalar()

        values = {k: v for k, v in data.items() if v is not None}
        category = StoreCategory(school_id=school_id, order=(last_order or 0) + 1, **values)
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)
        await cache_manager.delete(categories_cache_key(school_id))
        return category

    async def _get_category(self, school_id: UUID, category_id: UUID) -> StoreCategory:
        result = await self.db.execute(
            select(StoreCategory).where(
                StoreCategory.id == category_id,
                StoreCategory.school_id == school_id,
                StoreCategory.is_deleted == False
            )
        )
        category = result.scalar_one_or_none()
        if not category:
            raise BadRequestError("Category not found", field="category_id")
        return category

    # Products

    async def list_products(
        self,
        school_id: UUID,
        category_id: Optional[UUID] = None,
        search: Optional[str] = None,
        include_inactive: bool = False
    ) -> List[StoreProduct]:
        stmt = select(StoreProduct).where(StoreProduct.school_id == school_id, StoreProduct.is_deleted == False)
        if not include_inactive:
            stmt = stmt.where(StoreProduct.status != ProductStatus.INACTIVE)
        if category_id:
            stmt = stmt.where(StoreProduct.category_id == category_id)
        term = sanitize_search_term(search)
        if term:
            pattern = f"%{term}%"
            stmt = stmt.where(or_(
                StoreProduct.name.ilike(pattern, escape="\\"),
                StoreProduct.description.ilike(pattern, escape="\\")
            ))
        result = await self.db.execute(stmt.order_by(StoreProduct.name))
        return result.scalars().all()

    def _validate_product(self, product: StoreProduct):
        if not (product.name or "").strip():
            raise BadRequestError("Product name is required", field="name")
        if product.price is None or Decimal(str(product.price)) <= 0:
            raise BadRequestError("Price must be greater than zero", field="price")

    def _sync_stock_status(self, product: StoreProduct):
        if product.status == ProductStatus.INACTIVE:
            return
        product.status = ProductStatus.ACTIVE if product.stock > 0 else ProductStatus.OUT_OF_STOCK

    async def create_product(self, school_id: UUID, data: Dict[str, Any]) -> StoreProduct:
        if not data.get("category_id"):
            raise BadRequestError("Category is required", field="category_id")
        await self._get_category(school_id, data["category_id"])

        values = {k: v for k, v in data.items() if v is not None}
        product = StoreProduct(school_id=school_id, **values)
        product.stock = product.stock or 0
        product.status = product.status or ProductStatus.ACTIVE
        self._validate_product(product)
        self._sync_stock_status(product)

        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        logger.info(f"Product {product.id} created with stock {product.stock}")
        return product

    async def update_product(self, school_id: UUID, product_id: UUID, data: Dict[str, Any]) -> StoreProduct:
        product = await self.get_or_404(product_id, school_id)
        if data.get("category_id"):
            await self._get_category(school_id, data["category_id"])
        for key, value in data.items():
            if value is not None:
                setattr(product, key, value)
        self._validate_product(product)
        if "status" not in data or data["status"] is None:
            self._sync_stock_status(product)

        await self.db.commit()
        await self.db.refresh(product)
        return product

    # Cart

    async def _cart_items(self, user: User) -> List[CartItem]:
        result = await self.db.execute(
            select(CartItem).where(
                CartItem.user_id == user.id,
                CartItem.school_id == user.school_id,
                CartItem.is_deleted == False
            ).order_by(CartItem.created_at)
        )
        return result.scalars().all()

    async def get_cart(self, user: User) -> Dict[str, Any]:
        items = await self._cart_items(user)
        lines = [self.format_cart_item(item) for item in items]
        total = sum((Decimal(line["line_total"]) for line in lines), Decimal("0"))
        return {
            "items": lines,
            "item_count": sum(item.quantity for item in items),
            "total": str(total.quantize(Decimal("0.01"))),
        }

    async def add_to_cart(self, user: User, data: Dict[str, Any]) -> CartItem:
        quantity = data.get("quantity") or 1
        if quantity <= 0:
            raise BadRequestError("Quantity must be greater than zero", field="quantity")

        product = await self.get_or_404(data["product_id"], user.school_id)
        if product.status != ProductStatus.ACTIVE:
            raise BadRequestError("Product is not available")

        items = await self._cart_items(user)
        in_cart = sum(i.quantity for i in items if i.product_id == product.id)
        if product.stock < in_cart + quantity:
            raise BadRequestError("Insufficient stock", available=product.stock)

        size, color = data.get("size"), data.get("color")
        line = next((i for i in items if i.product_id == product.id and i.size == size and i.color == color), None)
        if line:
            line.quantity += quantity
        else:
            line = CartItem(
                school_id=user.school_id,
                user_id=user.id,
                product_id=product.id,
                quantity=quantity,
                size=size,
                color=color,
            )
            self.db.add(line)

        await self.db.commit()
        await self.db.refresh(line)
        return line

    async def _get_cart_item(self, user: User, item_id: UUID) -> CartItem:
        result = await self.db.execute(
            select(CartItem).where(CartItem.id == item_id, CartItem.user_id == user.id, CartItem.is_deleted == False)
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Cart item", item_id)
        return item

    async def set_cart_quantity(self, user: User, item_id: UUID, quantity: int) -> Optional[CartItem]:
        item = await self._get_cart_item(user, item_id)
        if quantity <= 0:
            await self.db.delete(item)
            await self.db.commit()
            return None

        items = await self._cart_items(user)
        others = sum(i.quantity for i in items if i.product_id == item.product_id and i.id != item.id)
        if item.product.stock < others + quantity:
            raise BadRequestError("Insufficient stock", available=item.product.stock)

        item.quantity = quantity
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def remove_cart_item(self, user: User, item_id: UUID):
        item = await self._get_cart_item(user, item_id)
        await self.db.delete(item)
        await self.db.commit()

    async def clear_cart(self, user: User):
        await self.db.execute(delete(CartItem).where(CartItem.user_id == user.id))
        await self.db.commit()

    # Orders

    async def _next_order_number(self, school_id: UUID) -> str:
        prefix = f"ORD-{utcnow().strftime('%y%m%d')}-"
        count = (await self.db.execute(
            select(func.count()).select_from(StoreOrder).where(
                StoreOrder.school_id == school_id,
                StoreOrder.order_number.like(f"{prefix}%")
            )
        )).scalar()
        return f"{prefix}{count + 1:04d}"

    async def checkout(self, user: User, data: Dict[str, Any]) -> StoreOrder:
        items = await self._cart_items(user)
        if not items:
            raise BadRequestError("Cart is empty")

        if data.get("student_id") and user.role == UserRole.PADRE:
            await self.roster.ensure_child_of(user, data["student_id"])

        requested: Dict[UUID, int] = {}
        for item in items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        products = {item.product_id: item.product for item in items}
        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.status == ProductStatus.INACTIVE or product.stock < quantity:
                raise BadRequestError(
                    f"Insufficient stock for {product.name}",
                    product_id=str(product_id),
                    available=product.stock
                )

        order = StoreOrder(
            school_id=user.school_id,
            order_number=await self._next_order_number(user.school_id),
            user_id=user.id,
            student_id=data.get("student_id"),
            notes=data.get("notes"),
            status=OrderStatus.PENDING,
        )
        subtotal = Decimal("0")
        order_items = []
        for item in items:
            unit_price = Decimal(str(item.product.price))
            line_total = unit_price * item.quantity
            subtotal += line_total
            order_items.append(StoreOrderItem(
                product_id=item.product_id,
                product_name=item.product.name,
                unit_price=unit_price,
                quantity=item.quantity,
                size=item.size,
                color=item.color,
                subtotal=line_total,
            ))
        order.items = order_items
        order.subtotal = subtotal
        order.total = subtotal

        for product_id, quantity in requested.items():
            product = products[product_id]
            product.stock -= quantity
            if product.stock == 0:
                product.status = ProductStatus.OUT_OF_STOCK

        self.db.add(order)
        for item in items:
            await self.db.delete(item)

        await self.db.commit()
        await self.db.refresh(order)
        logger.info(f"Order {order.order_number} placed by {user.id} for {order.total}")
        return order

    async def list_orders(self, user: User, status: Optional[OrderStatus] = None) -> List[StoreOrder]:
        stmt = select(StoreOrder).where(StoreOrder.school_id == user.school_id, StoreOrder.is_deleted == False)
        if not user.is_admin:
            stmt = stmt.where(StoreOrder.user_id == user.id)
        if status:
            stmt = stmt.where(StoreOrder.status == status)
        result = await self.db.execute(stmt.order_by(StoreOrder.created_at.desc()))
        return result.scalars().all()

    async def get_order(self, user: User, order_id: UUID) -> StoreOrder:
        result = await self.db.execute(
            select(StoreOrder).where(
                StoreOrder.id == order_id,
                StoreOrder.school_id == user.school_id,
                StoreOrder.is_deleted == False
            )
        )
        order = result.scalar_one_or_none()
        if not order or (not user.is_admin and order.user_id != user.id):
            raise NotFoundError("Order", order_id)
        return order

    async def update_order_status(self, admin: User, order_id: UUID, data: Dict[str, Any]) -> StoreOrder:
        order = await self.get_order(admin, order_id)
        status = data.get("status")

        if status is not None and ORDER_TRANSITIONS.validate(order.status, status):
            logger.info(f"Order {order.order_number} moved {order.status.value} -> {status.value}")
            order.status = status
            if status == OrderStatus.PAID:
                order.paid_at = utcnow()
                if data.get("payment_reference"):
                    order.payment_reference = data["payment_reference"]
            elif status == OrderStatus.DELIVERED:
                order.delivered_at = utcnow()
            elif status == OrderStatus.CANCELLED:
                await self._restore_stock(order)

        if data.get("delivery_date") is not None:
            order.delivery_date = data["delivery_date"]
        if data.get("notes") is not None:
            order.notes = data["notes"]

        await self.db.commit()
        await self.db.refresh(order)
        return order

    async def _restore_stock(self, order: StoreOrder):
        for line in order.items:
            product = (await self.db.execute(
                select(StoreProduct).where(StoreProduct.id == line.product_id)
            )).scalar_one_or_none()
            if not product:
                continue
            product.stock += line.quantity
            if product.status == ProductStatus.OUT_OF_STOCK and product.stock > 0:
                product.status = ProductStatus.ACTIVE

    # Formatting

    @staticmethod
    def format_category(category: StoreCategory) -> Dict[str, Any]:
        return {
            "id": str(category.id),
            "name": category.name,
            "description": category.description,
            "image_url": category.image_url,
            "order": category.order,
        }

    @staticmethod
    def format_product(product: StoreProduct) -> Dict[str, Any]:
        return {
            "id": str(product.id),
            "category_id": str(product.category_id),
            "category_name": product.category.name if product.category else None,
            "name": product.name,
            "description": product.description,
            "price": str(product.price),
            "image_url": product.image_url,
            "stock": product.stock,
            "sizes": product.sizes or [],
            "colors": product.colors or [],
            "is_required": product.is_required,
            "status": product.status.value,
        }

    @staticmethod
    def format_cart_item(item: CartItem) -> Dict[str, Any]:
        unit_price = Decimal(str(item.product.price))
        return {
            "id": str(item.id),
            "product_id": str(item.product_id),
            "product_name": item.product.name,
            "image_url": item.product.image_url,
            "unit_price": str(unit_price),
            "quantity": item.quantity,
            "size": item.size,
            "color": item.color,
            "line_total": str((unit_price * item.quantity).quantize(Decimal("0.01"))),
        }

    @staticmethod
    def format_order(order: StoreOrder) -> Dict[str, Any]:
        return {
            "id": str(order.id),
            "order_number": order.order_number,
            "user_id": str(order.user_id),
            "user_name": order.user.name if order.user else None,
            "student_id": str(order.student_id) if order.student_id else None,
            "subtotal": str(order.subtotal),
            "total": str(order.total),
            "status": order.status.value,
            "notes": order.notes,
            "payment_reference": order.payment_reference,
            "paid_at": order.paid_at.isoformat() if order.paid_at else None,
            "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
            "delivered_at": order.delivered_at.isoformat() if order.delivered_at else None,
            "created_at": order.created_at.isoformat(),
            "items": [
                {
                    "product_id": str(line.product_id),
                    "product_name": line.product_name,
                    "unit_price": str(line.unit_price),
                    "quantity": line.quantity,
                    "size": line.size,
                    "color": line.color,
                    "subtotal": str(line.subtotal),
                }
                for line in order.items
            ],
        }
