"""Inventory API endpoints for manual adjustments and the movement ledger."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query

from cellar.api.deps import DB
from cellar.schemas.inventory import (
    StockAdjustRequest,
    StockAdjustResponse,
    StockMovementListResponse,
    StockMovementResponse,
)
from cellar.services.inventory_service import InventoryService


router = APIRouter(tags=["Inventory"])


@router.post("/adjust", response_model=StockAdjustResponse)
async def adjust_stock(data: StockAdjustRequest, db: DB):
    """
    Apply a manual stock change (recount, damage, restock).

    A positive quantityChange adds stock, a negative one removes it. A change
    that would take stock below zero answers 400 and nothing is written.
    """
    service = InventoryService(db)
    result = await service.adjust_stock(
        product_id=data.product_id,
        variant_id=data.variant_id,
        quantity_change=data.quantity_change,
        reason=data.reason,
        reference_id=data.reference_id,
    )
    return StockAdjustResponse(
        variant_id=data.variant_id,
        new_quantity=result.new_quantity,
        movement=StockMovementResponse.model_validate(result.movement) if result.movement else None,
    )


@router.get("/history/{product_id}", response_model=StockMovementListResponse)
async def get_stock_history(
    product_id: uuid.UUID,
    db: DB,
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    """Stock movements of a product, newest first."""
    service = InventoryService(db)
    movements = await service.get_history(product_id, limit=limit)

    items = [
        StockMovementResponse(
            id=m.id,
            product_id=m.product_id,
            variant_id=m.variant_id,
            variant_name=m.variant.variant_name if m.variant else None,
            quantity_change=m.quantity_change,
            previous_quantity=m.previous_quantity,
            new_quantity=m.new_quantity,
            reason=m.reason,
            reference_id=m.reference_id,
            created_at=m.created_at,
        )
        for m in movements
    ]
    return StockMovementListResponse(product_id=product_id, items=items, total=len(items))
