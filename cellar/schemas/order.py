"""Order and checkout schemas."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import uuid

from pydantic import Field, model_validator

from cellar.schemas.base import BaseCreateSchema, BaseResponseSchema
from cellar.schemas.customer import AddressCreate


# ==================== CHECKOUT REQUESTS ====================

class CartCheckoutRequest(BaseCreateSchema):
    """Convert a stored cart into an order."""
    cart_id: uuid.UUID
    customer_id: uuid.UUID
    shipping_address_id: Optional[uuid.UUID] = None
    billing_address_id: Optional[uuid.UUID] = None


class DirectCheckoutItem(BaseCreateSchema):
    """One line of a direct checkout. product_id or variant_id is required."""
    product_id: Optional[uuid.UUID] = None
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(..., ge=1)
    unit_price: Optional[Decimal] = Field(None, ge=0)  # Override price if the storefront pins it

    @model_validator(mode="after")
    def require_product_or_variant(self):
        if self.product_id is None and self.variant_id is None:
            raise ValueError("Each item must have product_id or variant_id")
        return self


class DirectCheckoutRequest(BaseCreateSchema):
    """
    Checkout without a stored cart (storefronts that keep the cart client
    side). customer_id is optional; guests leave email/name.
    """
    customer_id: Optional[uuid.UUID] = None
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_name: Optional[str] = Field(None, max_length=200)
    items: List[DirectCheckoutItem] = Field(..., min_length=1)
    shipping_address: Optional[AddressCreate] = None
    shipping_address_id: Optional[uuid.UUID] = None
    billing_address_id: Optional[uuid.UUID] = None
    payment_method: str = Field("cod", max_length=30)
    order_notes: Optional[str] = None


# ==================== STATUS UPDATES ====================

class OrderStatusUpdate(BaseCreateSchema):
    # Validated against OrderStatus in the service so bad values answer 400
    order_status: str = Field(..., min_length=1)


class PaymentStatusUpdate(BaseCreateSchema):
    payment_status: str = Field(..., min_length=1)


# ==================== RESPONSES ====================

class OrderItemProduct(BaseResponseSchema):
    product_id: uuid.UUID
    product_name: str
    brand: Optional[str] = None
    product_sku: str


class OrderItemVariant(BaseResponseSchema):
    variant_id: uuid.UUID
    variant_name: str
    variant_sku: Optional[str] = None
    size_label: Optional[str] = None
    volume_ml: Optional[int] = None


class OrderItemResponse(BaseResponseSchema):
    order_item_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    tax_amount: Decimal
    line_total: Decimal
    product: OrderItemProduct
    variant: OrderItemVariant


class OrderResponse(BaseResponseSchema):
    """Order with its lines."""
    id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    guest_email: Optional[str] = None
    guest_name: Optional[str] = None
    shipping_address_id: Optional[uuid.UUID] = None
    billing_address_id: Optional[uuid.UUID] = None
    order_status: str
    payment_status: str
    payment_method: Optional[str] = None
    total_amount: Decimal
    total_tax: Decimal
    grand_total: Decimal
    order_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []


class OrderSummaryResponse(BaseResponseSchema):
    """Order row for listings."""
    id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    order_status: str
    payment_status: str
    total_amount: Decimal
    total_tax: Decimal
    grand_total: Decimal
    item_count: int
    created_at: datetime
