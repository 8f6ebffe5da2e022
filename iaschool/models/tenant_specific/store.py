from sqlalchemy import Column, String, Boolean, Integer, Numeric, Text, ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, JSONType, UTCDateTime
from ...core.workflow import TransitionTable


class ProductStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ORDER_TRANSITIONS = TransitionTable("StoreOrder", {
    OrderStatus.PENDING: [OrderStatus.PAID, OrderStatus.CANCELLED],
    OrderStatus.PAID: [OrderStatus.PROCESSING, OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
})


class StoreCategory(TenantMixin, Base):
    __tablename__ = "store_categories"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)


class StoreProduct(TenantMixin, Base):
    __tablename__ = "store_products"

    category_id = Column(GUID(), ForeignKey("store_categories.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    sizes = Column(JSONType(), nullable=False, default=list)
    colors = Column(JSONType(), nullable=False, default=list)
    is_required = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(ProductStatus, name="product_status"), nullable=False, default=ProductStatus.ACTIVE, index=True)

    category = relationship("StoreCategory", lazy="selectin")

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_product_stock_non_negative'),
    )


class CartItem(TenantMixin, Base):
    __tablename__ = "cart_items"

    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(GUID(), ForeignKey("store_products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    size = Column(String(20), nullable=True)
    color = Column(String(30), nullable=True)

    product = relationship("StoreProduct", lazy="selectin")


class StoreOrder(TenantMixin, Base):
    __tablename__ = "store_orders"

    order_number = Column(String(20), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(GUID(), ForeignKey("students.id"), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING, index=True)
    notes = Column(Text, nullable=True)
    payment_reference = Column(String(100), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)
    delivery_date = Column(UTCDateTime(), nullable=True)
    delivered_at = Column(UTCDateTime(), nullable=True)

    user = relationship("User", lazy="selectin")
    items = relationship("StoreOrderItem", back_populates="order", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('school_id', 'order_number', name='uq_order_school_number'),
        Index('idx_order_school_status', 'school_id', 'status'),
    )


class StoreOrderItem(Base):
    __tablename__ = "store_order_items"

    order_id = Column(GUID(), ForeignKey("store_orders.id"), nullable=False, index=True)
    product_id = Column(GUID(), ForeignKey("store_products.id"), nullable=False)
    product_name = Column(String(200), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    size = Column(String(20), nullable=True)
    color = Column(String(30), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)

    order = relationship("StoreOrder", back_populates="items")
