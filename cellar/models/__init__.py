# Models module
from cellar.models.product import Product, ProductVariant
from cellar.models.customer import Customer, CustomerAddress
from cellar.models.cart import Cart, CartItem
from cellar.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from cellar.models.inventory import StockMovement, MovementReason

__all__ = [
    "Product",
    "ProductVariant",
    "Customer",
    "CustomerAddress",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "StockMovement",
    "MovementReason",
]
