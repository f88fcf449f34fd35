"""Cart schemas for API requests/responses."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import uuid

from pydantic import Field

from cellar.schemas.base import BaseCreateSchema, BaseResponseSchema


class CartCreate(BaseCreateSchema):
    customer_id: Optional[uuid.UUID] = None


class CartItemAdd(BaseCreateSchema):
    """Add a variant to a cart. Quantities merge with an existing line."""
    cart_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseCreateSchema):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseResponseSchema):
    id: uuid.UUID
    cart_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    created_at: datetime


class CartResponse(BaseResponseSchema):
    id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    created_at: datetime


# ==================== CART VIEW ====================

class CartLineProduct(BaseResponseSchema):
    product_id: uuid.UUID
    product_name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    product_sku: str


class CartLineVariant(BaseResponseSchema):
    variant_name: str
    variant_sku: Optional[str] = None
    size_label: Optional[str] = None
    volume_ml: Optional[int] = None
    alcohol_percentage: Optional[Decimal] = None
    is_active: bool
    stock_quantity: int


class CartLinePricing(BaseResponseSchema):
    unit_price: Decimal
    discounted_price: Optional[Decimal] = None
    effective_price: Decimal
    tax_percentage: Decimal
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal
    currency: str


class CartLine(BaseResponseSchema):
    cart_item_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    added_at: datetime
    product: CartLineProduct
    variant: CartLineVariant
    pricing: CartLinePricing


class CartSummary(BaseResponseSchema):
    item_count: int
    unique_items: int
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal


class CartDetailResponse(BaseResponseSchema):
    """Cart with priced lines and totals."""
    cart_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    created_at: datetime
    items: List[CartLine] = []
    summary: CartSummary
