"""Cart Service: per-customer item bags validated against live stock."""
from typing import Optional, Tuple
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, joinedload

from cellar.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    VariantUnavailableError,
)
from cellar.models.cart import Cart, CartItem
from cellar.models.product import ProductVariant
from cellar.services.inventory_service import InventoryService
from cellar.services.pricing_service import price_line, summarize

logger = logging.getLogger(__name__)


class CartService:
    """
    Service for cart management.

    Quantity writes (add/update) lock the variant row before comparing the
    requested quantity with stock, the same discipline checkout follows.
    Reads never lock.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    # ==================== CART METHODS ====================

    async def get_cart(self, cart_id: uuid.UUID) -> Optional[Cart]:
        """Get cart by ID."""
        stmt = select(Cart).where(Cart.id == cart_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_customer(self, customer_id: uuid.UUID) -> Optional[Cart]:
        """Get the open cart of a customer."""
        stmt = select(Cart).where(Cart.customer_id == customer_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_cart(self, cart_id: uuid.UUID) -> Optional[Cart]:
        """
        Load a cart holding its row lock until the transaction ends.

        Every write to a cart's lines takes this lock before touching a
        variant, and checkout takes it before reading the lines, so a line
        cannot change between checkout's snapshot and its cleanup.
        """
        stmt = (
            select(Cart)
            .where(Cart.id == cart_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_or_create_cart(
        self,
        customer_id: Optional[uuid.UUID] = None
    ) -> Tuple[Cart, bool]:
        """
        Return the customer's cart, creating it on first use.

        Anonymous callers always get a fresh cart.
        """
        if customer_id:
            existing = await self.find_by_customer(customer_id)
            if existing:
                return existing, False

        cart = Cart(customer_id=customer_id)
        self.db.add(cart)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request created the customer's cart first
            await self.db.rollback()
            if not customer_id:
                raise
            existing = await self.find_by_customer(customer_id)
            if existing is None:
                raise
            return existing, False

        logger.info(f"Cart {cart.id} created for customer {customer_id or 'anonymous'}")
        return cart, True

    # ==================== ITEM METHODS ====================

    async def add_item(
        self,
        cart_id: uuid.UUID,
        variant_id: uuid.UUID,
        quantity: int
    ) -> CartItem:
        """
        Add a variant to the cart.

        If the variant is already in the cart the quantities are merged, and
        the merged quantity is checked against stock as a whole. A top-up
        that does not fit is rejected and the existing line is left as is.
        """
        if quantity is None or quantity < 1:
            raise ValidationError("quantity must be at least 1")

        try:
            cart = await self.lock_cart(cart_id)
            if cart is None:
                raise NotFoundError("Cart", cart_id)

            variant = await self.inventory.lock_variant(variant_id)
            if variant is None:
                raise NotFoundError("Variant", variant_id)
            if not variant.is_active:
                raise VariantUnavailableError()

            existing_stmt = select(CartItem).where(
                CartItem.cart_id == cart_id,
                CartItem.variant_id == variant_id,
            ).execution_options(populate_existing=True)
            existing = (await self.db.execute(existing_stmt)).scalar_one_or_none()

            new_quantity = quantity + (existing.quantity if existing else 0)
            if variant.stock_quantity < new_quantity:
                raise InsufficientStockError(
                    available=variant.stock_quantity,
                    requested=new_quantity,
                )

            if existing:
                existing.quantity = new_quantity
                cart_item = existing
            else:
                cart_item = CartItem(cart_id=cart_id, variant_id=variant_id, quantity=quantity)
                self.db.add(cart_item)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return cart_item

    async def update_item_quantity(
        self,
        cart_item_id: uuid.UUID,
        quantity: int
    ) -> CartItem:
        """Set a line's quantity, re-validated against current stock."""
        if quantity is None or quantity < 1:
            raise ValidationError("quantity must be at least 1")

        try:
            cart_item = await self._lock_item(cart_item_id)
            if cart_item is None:
                raise NotFoundError("Cart item", cart_item_id)

            variant = await self.inventory.lock_variant(cart_item.variant_id)
            if not variant.is_active:
                raise VariantUnavailableError()
            if variant.stock_quantity < quantity:
                raise InsufficientStockError(
                    available=variant.stock_quantity,
                    requested=quantity,
                )

            cart_item.quantity = quantity
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return cart_item

    async def remove_item(self, cart_item_id: uuid.UUID) -> bool:
        """Remove a line. Returns False when it does not exist."""
        try:
            cart_item = await self._lock_item(cart_item_id)
            if cart_item is None:
                await self.db.rollback()
                return False

            await self.db.delete(cart_item)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return True

    async def _lock_item(self, cart_item_id: uuid.UUID) -> Optional[CartItem]:
        """Lock the line's cart, then re-read the line under that lock."""
        stmt = select(CartItem.cart_id).where(CartItem.id == cart_item_id)
        cart_id = (await self.db.execute(stmt)).scalar_one_or_none()
        if cart_id is None:
            return None

        await self.lock_cart(cart_id)

        # Checkout may have removed the line while we waited for the lock
        stmt = (
            select(CartItem)
            .where(CartItem.id == cart_item_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    # ==================== VIEW ====================

    async def get_cart_with_items(self, cart_id: uuid.UUID) -> Optional[dict]:
        """
        Get the cart with per-line pricing and a summary.

        Pure projection; nothing is written.
        """
        stmt = (
            select(Cart)
            .options(
                selectinload(Cart.items)
                .joinedload(CartItem.variant)
                .joinedload(ProductVariant.product)
            )
            .where(Cart.id == cart_id)
            .execution_options(populate_existing=True)
        )
        cart = (await self.db.execute(stmt)).scalar_one_or_none()
        if cart is None:
            return None

        items = []
        lines = []
        for item in cart.items:
            variant = item.variant
            product = variant.product
            line = price_line(
                variant.price,
                variant.discounted_price,
                variant.tax_percentage,
                item.quantity,
            )
            lines.append(line)

            items.append({
                "cart_item_id": item.id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "added_at": item.created_at,
                "product": {
                    "product_id": product.id,
                    "product_name": product.product_name,
                    "brand": product.brand,
                    "category": product.category,
                    "product_sku": product.sku,
                },
                "variant": {
                    "variant_name": variant.variant_name,
                    "variant_sku": variant.variant_sku,
                    "size_label": variant.size_label,
                    "volume_ml": variant.volume_ml,
                    "alcohol_percentage": variant.alcohol_percentage,
                    "is_active": variant.is_active,
                    "stock_quantity": variant.stock_quantity,
                },
                "pricing": {
                    "unit_price": line.unit_price,
                    "discounted_price": line.discounted_price,
                    "effective_price": line.effective_price,
                    "tax_percentage": line.tax_percentage,
                    "line_subtotal": line.line_subtotal,
                    "line_tax": line.line_tax,
                    "line_total": line.line_total,
                    "currency": variant.currency,
                },
            })

        summary = summarize(lines)

        return {
            "cart_id": cart.id,
            "customer_id": cart.customer_id,
            "created_at": cart.created_at,
            "items": items,
            "summary": {
                "item_count": summary.item_count,
                "unique_items": summary.unique_items,
                "subtotal": summary.subtotal,
                "total_tax": summary.total_tax,
                "grand_total": summary.grand_total,
            },
        }
