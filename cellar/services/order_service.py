from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
import uuid
import logging

from sqlalchemy import select, func, delete
from sqlalchemy.orm import selectinload, joinedload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cellar.config import settings
from cellar.core.enum_utils import to_enum, enum_values, is_status
from cellar.core.exceptions import (
    AgeVerificationRequiredError,
    CommerceError,
    ConflictError,
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
    VariantUnavailableError,
)
from cellar.models.cart import CartItem
from cellar.models.customer import Customer, CustomerAddress
from cellar.models.inventory import MovementReason
from cellar.models.order import Order, OrderItem, OrderStatus, PaymentStatus, ORDER_STATUS_FLOW
from cellar.models.product import Product, ProductVariant
from cellar.schemas.order import DirectCheckoutRequest, DirectCheckoutItem
from cellar.services.cart_service import CartService
from cellar.services.inventory_service import InventoryService
from cellar.services.pricing_service import price_line, summarize, round_money

logger = logging.getLogger(__name__)


@dataclass
class CheckoutLine:
    """A resolved line waiting to be priced and deducted."""
    variant_id: uuid.UUID
    quantity: int
    unit_price_override: Optional[Decimal] = None


class OrderService:
    """
    Service for checkout and the order lifecycle.

    Both checkout flows share _place_order(), which runs inside one
    transaction:
    1. Lock every variant of the order (in id order)
    2. Validate active flag and stock against the locked rows
    3. Price the lines and compute totals
    4. Insert the order and its items
    5. Deduct stock with an ORDER_PLACED movement per line

    Any failure rolls the whole transaction back, so there is never an order
    without its deductions or a deduction without its order.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.carts = CartService(db)

    # ==================== CHECKOUT ====================

    async def checkout_from_cart(
        self,
        cart_id: uuid.UUID,
        customer_id: uuid.UUID,
        shipping_address_id: Optional[uuid.UUID] = None,
        billing_address_id: Optional[uuid.UUID] = None,
    ) -> dict:
        """Convert a cart into an order and empty the cart."""
        if not cart_id or not customer_id:
            raise ValidationError("cart_id and customer_id are required")

        try:
            await self._require_age_verified(customer_id)
            await self._check_address(shipping_address_id, customer_id, "Shipping")
            await self._check_address(billing_address_id, customer_id, "Billing")

            # Cart lock first, variant locks second: the same order cart writes use
            cart = await self.carts.lock_cart(cart_id)
            if cart is None:
                raise ValidationError("Cart is empty or does not exist")
            if cart.customer_id is not None and cart.customer_id != customer_id:
                raise ValidationError(
                    "Cart does not belong to this customer",
                    {"cart_id": str(cart_id)},
                )

            stmt = (
                select(CartItem)
                .where(CartItem.cart_id == cart_id)
                .order_by(CartItem.created_at)
                .execution_options(populate_existing=True)
            )
            cart_items = list((await self.db.execute(stmt)).scalars().all())
            if not cart_items:
                raise ValidationError("Cart is empty or does not exist")

            order = await self._place_order(
                [CheckoutLine(item.variant_id, item.quantity) for item in cart_items],
                customer_id=customer_id,
                shipping_address_id=shipping_address_id,
                billing_address_id=billing_address_id,
            )

            await self.db.execute(
                delete(CartItem).where(CartItem.id.in_([item.id for item in cart_items]))
            )

            view = await self._compose_order_view(order.id)
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Checkout of cart {cart_id} rejected: {e.message}")
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Database integrity error during checkout of cart {cart_id}: {e}")
            raise ConflictError("Order creation failed: conflicting data reference")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during checkout of cart {cart_id}: {e}")
            raise

        logger.info(
            f"Order {view['id']} placed from cart {cart_id}: "
            f"{len(view['items'])} lines, grand total {view['grand_total']}"
        )
        return view

    async def checkout_direct(self, data: DirectCheckoutRequest) -> dict:
        """
        Place an order from an explicit item list.

        Items name a variant, or a product whose first active variant is
        used. Products with no variants at all get a default variant when
        DIRECT_CHECKOUT_SYNTHESIZE_VARIANTS is on.
        """
        if not data.items:
            raise ValidationError("Order must contain at least one item")

        try:
            if data.customer_id:
                await self._require_age_verified(data.customer_id)

            shipping_address_id = data.shipping_address_id
            if shipping_address_id:
                await self._check_address(shipping_address_id, data.customer_id, "Shipping")
            elif data.shipping_address and data.customer_id:
                address = CustomerAddress(
                    customer_id=data.customer_id,
                    **data.shipping_address.model_dump(exclude={"is_default"}),
                )
                self.db.add(address)
                await self.db.flush()
                shipping_address_id = address.id
            await self._check_address(data.billing_address_id, data.customer_id, "Billing")

            lines = [await self._resolve_direct_item(item) for item in data.items]

            order = await self._place_order(
                lines,
                customer_id=data.customer_id,
                shipping_address_id=shipping_address_id,
                billing_address_id=data.billing_address_id,
                payment_method=data.payment_method,
                guest_email=None if data.customer_id else data.customer_email,
                guest_name=None if data.customer_id else data.customer_name,
                order_notes=data.order_notes,
            )

            view = await self._compose_order_view(order.id)
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Direct checkout rejected: {e.message}")
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Database integrity error during direct checkout: {e}")
            raise ConflictError("Order creation failed: conflicting data reference")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during direct checkout: {e}")
            raise

        logger.info(
            f"Order {view['id']} placed directly for "
            f"{data.customer_id or data.customer_email or 'guest'}: "
            f"{len(view['items'])} lines, grand total {view['grand_total']}"
        )
        return view

    async def _place_order(
        self,
        lines: List[CheckoutLine],
        customer_id: Optional[uuid.UUID] = None,
        shipping_address_id: Optional[uuid.UUID] = None,
        billing_address_id: Optional[uuid.UUID] = None,
        payment_method: Optional[str] = "cod",
        guest_email: Optional[str] = None,
        guest_name: Optional[str] = None,
        order_notes: Optional[str] = None,
    ) -> Order:
        """Lock, validate, price, persist and deduct. Does not commit."""
        variants = await self.inventory.lock_variants([line.variant_id for line in lines])

        priced = []
        requested = defaultdict(int)
        for line in lines:
            variant = variants.get(line.variant_id)
            if variant is None:
                raise NotFoundError("Variant", line.variant_id)

            product_name = variant.product.product_name
            if not variant.is_active:
                raise VariantUnavailableError(product_name)

            # Repeated variants are checked against their combined quantity
            requested[variant.id] += line.quantity
            if variant.stock_quantity < requested[variant.id]:
                raise InsufficientStockError(
                    available=variant.stock_quantity,
                    requested=requested[variant.id],
                    product_name=product_name,
                )

            pricing = price_line(
                variant.price,
                variant.discounted_price,
                variant.tax_percentage,
                line.quantity,
                line.unit_price_override,
            )
            priced.append((variant, pricing))

        summary = summarize([pricing for _, pricing in priced])

        order = Order(
            customer_id=customer_id,
            guest_email=guest_email,
            guest_name=guest_name,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            payment_method=payment_method,
            total_amount=summary.subtotal,
            total_tax=summary.total_tax,
            order_notes=order_notes,
        )
        self.db.add(order)
        await self.db.flush()

        for variant, pricing in priced:
            self.db.add(OrderItem(
                order_id=order.id,
                variant_id=variant.id,
                quantity=pricing.quantity,
                unit_price=round_money(pricing.effective_price),
                tax_amount=pricing.line_tax,
            ))
        await self.db.flush()

        for variant, pricing in priced:
            await self.inventory.apply_adjustment(
                product_id=variant.product_id,
                variant_id=variant.id,
                quantity_change=-pricing.quantity,
                reason=MovementReason.ORDER_PLACED,
                reference_id=str(order.id),
            )

        return order

    async def _resolve_direct_item(self, item: DirectCheckoutItem) -> CheckoutLine:
        """Map a direct checkout item to the variant it will draw stock from."""
        if item.variant_id:
            variant = await self._get_variant(item.variant_id)
            if variant is None:
                raise NotFoundError("Variant", item.variant_id)
            if item.product_id and variant.product_id != item.product_id:
                raise ValidationError(
                    "Variant does not belong to the given product",
                    {"product_id": str(item.product_id), "variant_id": str(item.variant_id)},
                )
            return CheckoutLine(variant.id, item.quantity, item.unit_price)

        stmt = (
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.id == item.product_id)
            .execution_options(populate_existing=True)
        )
        product = (await self.db.execute(stmt)).scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product", item.product_id)

        active = [v for v in product.variants if v.is_active]
        if active:
            return CheckoutLine(active[0].id, item.quantity, item.unit_price)
        if product.variants:
            raise VariantUnavailableError(product.product_name)
        if not settings.DIRECT_CHECKOUT_SYNTHESIZE_VARIANTS:
            raise NotFoundError("Variant", f"no variant for product {product.id}")

        variant = ProductVariant(
            product_id=product.id,
            variant_name="Default",
            currency=settings.DEFAULT_CURRENCY,
            price=item.unit_price if item.unit_price is not None else product.price,
            stock_quantity=settings.DEFAULT_VARIANT_STOCK,
            is_active=True,
        )
        self.db.add(variant)
        await self.db.flush()
        logger.warning(
            f"Synthesized default variant {variant.id} for product {product.id} "
            f"with stock {settings.DEFAULT_VARIANT_STOCK}"
        )
        return CheckoutLine(variant.id, item.quantity, item.unit_price)

    async def _require_age_verified(self, customer_id: uuid.UUID) -> Customer:
        stmt = select(Customer).where(Customer.id == customer_id)
        customer = (await self.db.execute(stmt)).scalar_one_or_none()
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        if not customer.is_age_verified:
            raise AgeVerificationRequiredError("Age verification required before checkout")
        return customer

    async def _check_address(
        self,
        address_id: Optional[uuid.UUID],
        customer_id: Optional[uuid.UUID],
        label: str,
    ) -> None:
        """Saved addresses may only be used by the customer who owns them."""
        if address_id is None:
            return
        stmt = select(CustomerAddress).where(CustomerAddress.id == address_id)
        address = (await self.db.execute(stmt)).scalar_one_or_none()
        if address is None or address.customer_id != customer_id:
            raise ValidationError(
                f"{label} address not found for this customer",
                {"address_id": str(address_id)},
            )

    async def _get_variant(self, variant_id: uuid.UUID) -> Optional[ProductVariant]:
        """Get variant by ID."""
        stmt = select(ProductVariant).where(ProductVariant.id == variant_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== READS ====================

    async def get_order(self, order_id: uuid.UUID) -> Optional[dict]:
        """Get order with its lines, product and variant details."""
        return await self._compose_order_view(order_id)

    async def list_orders(
        self,
        customer_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[dict]:
        """List orders newest first, with line counts and the buyer's name and email."""
        item_count = (
            select(func.count(OrderItem.id))
            .where(OrderItem.order_id == Order.id)
            .correlate(Order)
            .scalar_subquery()
        )
        stmt = (
            select(
                Order,
                item_count.label("item_count"),
                Customer.full_name,
                Customer.email,
            )
            .outerjoin(Customer, Order.customer_id == Customer.id)
        )

        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        if status:
            status_enum = to_enum(status, OrderStatus)
            if status_enum is None:
                raise ValidationError(
                    f"Invalid status. Must be one of: {', '.join(enum_values(OrderStatus))}"
                )
            stmt = stmt.where(Order.order_status == status_enum.value)

        stmt = stmt.order_by(Order.created_at.desc()).offset(offset).limit(limit)
        result = await self.db.execute(stmt)

        return [
            {
                "id": order.id,
                "customer_id": order.customer_id,
                # Guests have no customer row
                "customer_name": full_name or order.guest_name,
                "customer_email": email or order.guest_email,
                "order_status": order.order_status,
                "payment_status": order.payment_status,
                "total_amount": order.total_amount,
                "total_tax": order.total_tax,
                "grand_total": order.grand_total,
                "item_count": count,
                "created_at": order.created_at,
            }
            for order, count, full_name, email in result.all()
        ]

    async def _compose_order_view(self, order_id: uuid.UUID) -> Optional[dict]:
        stmt = (
            select(Order)
            .options(
                selectinload(Order.items)
                .joinedload(OrderItem.variant)
                .joinedload(ProductVariant.product)
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            return None

        items = []
        for item in order.items:
            variant = item.variant
            product = variant.product
            items.append({
                "order_item_id": item.id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "tax_amount": item.tax_amount,
                "line_total": round_money(item.unit_price * item.quantity + item.tax_amount),
                "product": {
                    "product_id": product.id,
                    "product_name": product.product_name,
                    "brand": product.brand,
                    "product_sku": product.sku,
                },
                "variant": {
                    "variant_id": variant.id,
                    "variant_name": variant.variant_name,
                    "variant_sku": variant.variant_sku,
                    "size_label": variant.size_label,
                    "volume_ml": variant.volume_ml,
                },
            })

        return {
            "id": order.id,
            "customer_id": order.customer_id,
            "guest_email": order.guest_email,
            "guest_name": order.guest_name,
            "shipping_address_id": order.shipping_address_id,
            "billing_address_id": order.billing_address_id,
            "order_status": order.order_status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
            "total_amount": order.total_amount,
            "total_tax": order.total_tax,
            "grand_total": order.grand_total,
            "order_notes": order.order_notes,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
            "items": items,
        }

    # ==================== LIFECYCLE ====================

    async def _lock_order(self, order_id: uuid.UUID) -> Optional[Order]:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def update_status(self, order_id: uuid.UUID, new_status) -> dict:
        """
        Move an order to a new status.

        Cancelling returns every line's quantity to stock with an
        ORDER_CANCELLED movement, in the same transaction as the status
        change. A cancelled order cannot change status again.
        """
        target = to_enum(new_status, OrderStatus)
        if target is None:
            raise InvalidStateTransitionError(
                f"Invalid status. Must be one of: {', '.join(enum_values(OrderStatus))}",
                {"order_status": str(new_status)},
            )

        try:
            order = await self._lock_order(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            old_status = order.order_status
            if is_status(old_status, OrderStatus.CANCELLED):
                raise InvalidStateTransitionError("Order is already cancelled")

            if settings.ENFORCE_FORWARD_STATUS_FLOW and target != OrderStatus.CANCELLED:
                current = to_enum(old_status, OrderStatus)
                if ORDER_STATUS_FLOW.index(target) < ORDER_STATUS_FLOW.index(current):
                    raise InvalidStateTransitionError(
                        f"Cannot move order from {old_status} back to {target.value}"
                    )

            if target == OrderStatus.CANCELLED:
                stmt = (
                    select(OrderItem)
                    .options(joinedload(OrderItem.variant))
                    .where(OrderItem.order_id == order.id)
                    .order_by(OrderItem.variant_id)
                )
                order_items = (await self.db.execute(stmt)).scalars().all()
                for item in order_items:
                    await self.inventory.apply_adjustment(
                        product_id=item.variant.product_id,
                        variant_id=item.variant_id,
                        quantity_change=item.quantity,
                        reason=MovementReason.ORDER_CANCELLED,
                        reference_id=str(order.id),
                    )

            order.order_status = target.value
            await self.db.flush()

            view = await self._compose_order_view(order.id)
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Status change of order {order_id} to {target.value} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating status of order {order_id}: {e}")
            raise

        logger.info(f"Order {order_id} status {old_status} -> {target.value}")
        return view

    async def update_payment_status(self, order_id: uuid.UUID, payment_status) -> dict:
        """Record a payment status. No transition rules apply."""
        target = to_enum(payment_status, PaymentStatus)
        if target is None:
            raise InvalidStateTransitionError(
                f"Invalid payment status. Must be one of: {', '.join(enum_values(PaymentStatus))}",
                {"payment_status": str(payment_status)},
            )

        try:
            order = await self._lock_order(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            order.payment_status = target.value
            await self.db.flush()

            view = await self._compose_order_view(order.id)
            await self.db.commit()

        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Payment status change of order {order_id} to {target.value} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating payment status of order {order_id}: {e}")
            raise

        logger.info(f"Order {order_id} payment status set to {target.value}")
        return view
