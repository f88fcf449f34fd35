"""Inventory Service: the single write path for variant stock."""
from dataclasses import dataclass
from typing import Optional, List
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cellar.config import settings
from cellar.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from cellar.core.enum_utils import get_enum_value
from cellar.models.inventory import StockMovement
from cellar.models.product import ProductVariant

logger = logging.getLogger(__name__)


@dataclass
class StockAdjustmentResult:
    """Outcome of one adjustment. movement is None for bypass adjustments."""
    new_quantity: int
    movement: Optional[StockMovement] = None


class InventoryService:
    """
    Service for stock adjustments and the movement ledger.

    Every stock change goes through apply_adjustment():
    1. Lock the variant row (SELECT ... FOR UPDATE)
    2. Compute new = current + change, reject if negative
    3. Write the new quantity and, unless bypassed, append a StockMovement

    adjust_stock() wraps that in its own transaction. Checkout and
    cancellation call apply_adjustment() directly so the stock write joins
    their transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== LOCKING ====================

    async def lock_variant(self, variant_id: uuid.UUID) -> Optional[ProductVariant]:
        """Load a variant holding its row lock until the transaction ends."""
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_variants(self, variant_ids: List[uuid.UUID]) -> dict:
        """
        Lock several variants in one statement.

        Rows are locked in id order so two checkouts over overlapping
        variants cannot deadlock.
        """
        if not variant_ids:
            return {}
        stmt = (
            select(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .where(ProductVariant.id.in_(set(variant_ids)))
            .order_by(ProductVariant.id)
            .with_for_update(of=ProductVariant)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return {variant.id: variant for variant in result.scalars().unique().all()}

    # ==================== ADJUSTMENTS ====================

    async def apply_adjustment(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity_change: int,
        reason: str,
        reference_id: Optional[str] = None,
        record_history: bool = True,
    ) -> StockAdjustmentResult:
        """Adjust stock inside the caller's transaction. Does not commit."""
        reason = get_enum_value(reason)
        if quantity_change == 0:
            raise ValidationError("quantity_change must be non-zero")
        if not reason or not reason.strip():
            raise ValidationError("reason is required")

        variant = await self.lock_variant(variant_id)
        if variant is None:
            raise NotFoundError("Variant", variant_id)

        if product_id is not None and variant.product_id != product_id:
            raise ValidationError(
                "Variant does not belong to the given product",
                {"product_id": str(product_id), "variant_id": str(variant_id)},
            )

        current_quantity = variant.stock_quantity or 0
        new_quantity = current_quantity + quantity_change

        if new_quantity < 0:
            raise InsufficientStockError(
                available=current_quantity,
                requested=-quantity_change,
                details={"variant_id": str(variant_id)},
            )

        variant.stock_quantity = new_quantity

        movement = None
        if record_history:
            movement = StockMovement(
                product_id=variant.product_id,
                variant_id=variant.id,
                quantity_change=quantity_change,
                previous_quantity=current_quantity,
                new_quantity=new_quantity,
                reason=reason,
                reference_id=str(reference_id) if reference_id is not None else None,
            )
            self.db.add(movement)
            logger.info(
                f"Stock adjusted for variant {variant_id}: {current_quantity} -> {new_quantity} "
                f"({quantity_change:+d}, reason={reason}, ref={reference_id})"
            )
        else:
            logger.warning(
                f"Stock adjusted WITHOUT history for variant {variant_id}: "
                f"{current_quantity} -> {new_quantity} ({quantity_change:+d}, reason={reason})"
            )

        await self.db.flush()
        return StockAdjustmentResult(new_quantity=new_quantity, movement=movement)

    async def adjust_stock(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity_change: int,
        reason: str,
        reference_id: Optional[str] = None,
        record_history: bool = True,
    ) -> StockAdjustmentResult:
        """
        Adjust a variant's stock as one atomic unit.

        record_history=False is a deliberate bypass for internal recounts:
        the quantity changes but no movement row is written.
        """
        try:
            result = await self.apply_adjustment(
                product_id=product_id,
                variant_id=variant_id,
                quantity_change=quantity_change,
                reason=reason,
                reference_id=reference_id,
                record_history=record_history,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return result

    # ==================== HISTORY ====================

    async def get_history(
        self,
        product_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> List[StockMovement]:
        """Get stock movements for a product, newest first."""
        limit = limit or settings.MOVEMENT_HISTORY_LIMIT
        stmt = (
            select(StockMovement)
            .options(joinedload(StockMovement.variant))
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_variant_movements(self, variant_id: uuid.UUID) -> List[StockMovement]:
        """All movements of a variant in ledger order."""
        stmt = (
            select(StockMovement)
            .where(StockMovement.variant_id == variant_id)
            .order_by(StockMovement.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
