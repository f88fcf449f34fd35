"""Cart API endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, Query, Response, status

from cellar.api.deps import DB
from cellar.schemas.cart import (
    CartCreate,
    CartDetailResponse,
    CartItemAdd,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
)
from cellar.services.cart_service import CartService


router = APIRouter(tags=["Cart"])


@router.post("", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def create_cart(data: CartCreate, response: Response, db: DB):
    """Get the customer's cart, creating it if needed (201 when created)."""
    service = CartService(db)
    cart, created = await service.find_or_create_cart(data.customer_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return CartResponse.model_validate(cart)


@router.get("", response_model=CartDetailResponse)
async def get_cart_by_query(
    db: DB,
    cart_id: Optional[uuid.UUID] = Query(None),
    customer_id: Optional[uuid.UUID] = Query(None),
):
    """Get a cart view by cart_id or by the customer's open cart."""
    if not cart_id and not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="cart_id or customer_id is required"
        )

    service = CartService(db)
    if not cart_id:
        cart = await service.find_by_customer(customer_id)
        if not cart:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cart not found"
            )
        cart_id = cart.id

    return await _cart_view(service, cart_id)


@router.get("/{cart_id}", response_model=CartDetailResponse)
async def get_cart(cart_id: uuid.UUID, db: DB):
    return await _cart_view(CartService(db), cart_id)


@router.post("/items", response_model=CartItemResponse, status_code=status.HTTP_201_CREATED)
async def add_item(data: CartItemAdd, db: DB):
    """Add a variant to a cart, merging with an existing line."""
    service = CartService(db)
    item = await service.add_item(data.cart_id, data.variant_id, data.quantity)
    return CartItemResponse.model_validate(item)


@router.patch("/items/{item_id}", response_model=CartItemResponse)
async def update_item(item_id: uuid.UUID, data: CartItemUpdate, db: DB):
    service = CartService(db)
    item = await service.update_item_quantity(item_id, data.quantity)
    return CartItemResponse.model_validate(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(item_id: uuid.UUID, db: DB):
    service = CartService(db)
    removed = await service.remove_item(item_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart item not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _cart_view(service: CartService, cart_id: uuid.UUID) -> dict:
    view = await service.get_cart_with_items(cart_id)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Cart not found"
        )
    return view
