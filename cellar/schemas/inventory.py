"""Inventory schemas for API requests/responses."""
from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from cellar.schemas.base import BaseCreateSchema, BaseResponseSchema


class StockAdjustRequest(BaseCreateSchema):
    """
    Manual stock adjustment.

    The admin console posts camelCase keys; snake_case is accepted too.
    """
    product_id: uuid.UUID = Field(..., alias="productId")
    variant_id: uuid.UUID = Field(..., alias="variantId")
    quantity_change: int = Field(..., alias="quantityChange")
    reason: str = Field(..., min_length=1, max_length=100)
    reference_id: Optional[str] = Field(None, alias="referenceId", max_length=100)


class StockMovementResponse(BaseResponseSchema):
    """Stock movement ledger row."""
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID
    variant_name: Optional[str] = None
    quantity_change: int
    previous_quantity: Optional[int] = None
    new_quantity: Optional[int] = None
    reason: str
    reference_id: Optional[str] = None
    created_at: datetime


class StockAdjustResponse(BaseResponseSchema):
    """New stock level; movement is empty for adjustments made without history."""
    variant_id: uuid.UUID
    new_quantity: int
    movement: Optional[StockMovementResponse] = None


class StockMovementListResponse(BaseResponseSchema):
    product_id: uuid.UUID
    items: List[StockMovementResponse]
    total: int
