"""Inventory models for the stock movement ledger."""
from enum import Enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
import uuid

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cellar.database import Base
from cellar.db_types import UUIDType

if TYPE_CHECKING:
    from cellar.models.product import ProductVariant


class MovementReason(str, Enum):
    """Reason codes written by the system. Admins may supply any other string."""
    ORDER_PLACED = "ORDER_PLACED"
    ORDER_CANCELLED = "ORDER_CANCELLED"


class StockMovement(Base):
    """
    Append-only audit record of a stock quantity change.

    previous_quantity/new_quantity are optional for rows written by older
    tooling; InventoryService always fills them.
    """

    __tablename__ = "stock_movements"
    __table_args__ = (
        Index("ix_stock_movement_product_created", "product_id", "created_at"),
        Index("ix_stock_movement_variant", "variant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    variant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("product_variants.id", ondelete="RESTRICT"), nullable=False
    )

    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    variant: Mapped["ProductVariant"] = relationship("ProductVariant")

    def __repr__(self):
        return f"<StockMovement {self.reason}: {self.quantity_change}>"
