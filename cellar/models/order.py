import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cellar.database import Base
from cellar.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from cellar.models.customer import Customer
    from cellar.models.product import ProductVariant


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "PENDING"          # Order placed, stock deducted
    CONFIRMED = "CONFIRMED"      # Accepted by the shop
    PROCESSING = "PROCESSING"    # Being picked/packed
    SHIPPED = "SHIPPED"          # Handed to courier
    DELIVERED = "DELIVERED"      # Received by customer
    CANCELLED = "CANCELLED"      # Terminal, stock restored


# Forward order used when ENFORCE_FORWARD_STATUS_FLOW is on
ORDER_STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    UNPAID = "UNPAID"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class Order(Base):
    """
    Order placed from a cart or a direct item list.

    Totals are price snapshots taken at checkout; only order_status and
    payment_status change afterwards.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'order_status', 'created_at'),
        Index('ix_order_customer_created', 'customer_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Customer (null for guest checkout)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=True
    )
    guest_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    guest_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Addresses
    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("customer_addresses.id", ondelete="SET NULL"),
        nullable=True
    )
    billing_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("customer_addresses.id", ondelete="SET NULL"),
        nullable=True
    )

    # Status
    order_status: Mapped[str] = mapped_column(
        String(20),
        default="PENDING",
        nullable=False,
        comment="PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED"
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default="UNPAID",
        nullable=False,
        comment="UNPAID, PAID, REFUNDED, FAILED"
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Amounts (pre-tax subtotal and tax, fixed at checkout)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)
    total_tax: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)

    order_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    customer: Mapped[Optional["Customer"]] = relationship("Customer")
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )

    @property
    def grand_total(self) -> Decimal:
        return self.total_amount + self.total_tax

    def __repr__(self) -> str:
        return f"<Order(id='{self.id}', status='{self.order_status}')>"


class OrderItem(Base):
    """Order line with the price actually charged."""
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    variant: Mapped["ProductVariant"] = relationship("ProductVariant")

    def __repr__(self) -> str:
        return f"<OrderItem(variant_id='{self.variant_id}', qty={self.quantity})>"
