"""Order API endpoints: checkout and lifecycle."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from cellar.api.deps import DB
from cellar.schemas.order import (
    CartCheckoutRequest,
    DirectCheckoutRequest,
    OrderResponse,
    OrderStatusUpdate,
    OrderSummaryResponse,
    PaymentStatusUpdate,
)
from cellar.services.order_service import OrderService


router = APIRouter(tags=["Orders"])


# ==================== CHECKOUT ====================

@router.post(
    "/checkout",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def checkout(data: CartCheckoutRequest, db: DB):
    """
    Convert a cart into an order.

    Stock is deducted and the cart emptied in the same transaction. Fails
    with 403 when the customer is not age verified and 400 when a line is
    out of stock or no longer available.
    """
    service = OrderService(db)
    return await service.checkout_from_cart(
        cart_id=data.cart_id,
        customer_id=data.customer_id,
        shipping_address_id=data.shipping_address_id,
        billing_address_id=data.billing_address_id,
    )


@router.post(
    "/checkout/direct",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def checkout_direct(data: DirectCheckoutRequest, db: DB):
    """Place an order from an item list without a stored cart."""
    service = OrderService(db)
    return await service.checkout_direct(data)


# ==================== READS ====================

@router.get("", response_model=List[OrderSummaryResponse])
async def list_orders(
    db: DB,
    customer_id: Optional[uuid.UUID] = Query(None),
    order_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    service = OrderService(db)
    return await service.list_orders(
        customer_id=customer_id,
        status=order_status,
        limit=limit,
        offset=offset,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: DB):
    service = OrderService(db)
    order = await service.get_order(order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return order


# ==================== LIFECYCLE ====================

@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: uuid.UUID, data: OrderStatusUpdate, db: DB):
    """Change order status. Cancelling restores stock."""
    service = OrderService(db)
    return await service.update_status(order_id, data.order_status)


@router.patch("/{order_id}/payment", response_model=OrderResponse)
async def update_payment_status(order_id: uuid.UUID, data: PaymentStatusUpdate, db: DB):
    service = OrderService(db)
    return await service.update_payment_status(order_id, data.payment_status)
