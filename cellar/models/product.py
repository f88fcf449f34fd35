import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cellar.database import Base
from cellar.db_types import UUIDType, MoneyType, PercentType


class Product(Base):
    """
    Catalog entry. Maintained by catalog admin workflows; the checkout core
    only reads it.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Base price, used when a default variant has to be synthesized
    price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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
    variants: Mapped[List["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.created_at",
    )

    def __repr__(self) -> str:
        return f"<Product(name='{self.product_name}', sku='{self.sku}')>"


class ProductVariant(Base):
    """
    Purchasable unit of a product, e.g. a bottle size.

    stock_quantity is the quantity of record. It is written only through
    InventoryService, under a row lock.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_variant_stock_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    variant_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Default")
    variant_sku: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)

    # Display attributes
    size_label: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # e.g. "750ml"
    volume_ml: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    alcohol_percentage: Mapped[Optional[Decimal]] = mapped_column(PercentType, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)

    # Pricing
    price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    discounted_price: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    tax_percentage: Mapped[Decimal] = mapped_column(PercentType, default=Decimal("0.00"), nullable=False)

    # Inventory
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    def __repr__(self) -> str:
        return f"<ProductVariant(name='{self.variant_name}', stock={self.stock_quantity})>"
