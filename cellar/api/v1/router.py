from fastapi import APIRouter

from cellar.api.v1.endpoints import (
    customers,
    cart,
    orders,
    inventory,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Customers ====================
api_router.include_router(
    customers.router,
    prefix="/customers",
    tags=["Customers"]
)

# ==================== Cart ====================
api_router.include_router(
    cart.router,
    prefix="/cart",
    tags=["Cart"]
)

# ==================== Orders & Checkout ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

# ==================== Inventory ====================
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)
