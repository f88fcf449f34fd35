from datetime import date
from typing import List, Optional
import uuid
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cellar.config import settings
from cellar.core.exceptions import AgeVerificationRequiredError, ConflictError, NotFoundError
from cellar.models.customer import Customer, CustomerAddress

logger = logging.getLogger(__name__)


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Completed years between date_of_birth and today."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


class CustomerService:
    """Service for customer accounts, addresses and the age gate."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customer(self, customer_id: uuid.UUID) -> Optional[Customer]:
        """Get customer by ID."""
        stmt = (
            select(Customer)
            .options(selectinload(Customer.addresses))
            .where(Customer.id == customer_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_customer(self, data: dict) -> Customer:
        """Create a new customer."""
        addresses_data = data.pop("addresses", None) or []
        data["email"] = data["email"].strip().lower()

        customer = Customer(**data)
        self.db.add(customer)
        try:
            await self.db.flush()
            for addr_data in addresses_data:
                self.db.add(CustomerAddress(customer_id=customer.id, **addr_data))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(f"Duplicate customer email rejected: {data['email']} ({e.orig})")
            raise ConflictError("A customer with this email already exists")

        return await self.get_customer(customer.id)

    async def update_profile(self, customer_id: uuid.UUID, data: dict) -> Customer:
        """
        Change name, email or phone. Only the keys present in data are
        written; an email already used by another customer is a conflict.
        """
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        # phone is the only nullable profile field
        data = {k: v for k, v in data.items() if v is not None or k == "phone"}
        if data.get("email"):
            data["email"] = data["email"].strip().lower()

        for field, value in data.items():
            setattr(customer, field, value)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(f"Profile update of customer {customer_id} rejected: {e.orig}")
            raise ConflictError("A customer with this email already exists")

        logger.info(f"Customer {customer_id} profile updated: {sorted(data)}")
        return await self.get_customer(customer_id)

    # ==================== ADDRESSES ====================

    async def get_addresses(self, customer_id: uuid.UUID) -> List[CustomerAddress]:
        """Saved addresses, default first, then newest first."""
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        stmt = (
            select(CustomerAddress)
            .where(CustomerAddress.customer_id == customer_id)
            .order_by(CustomerAddress.is_default.desc(), CustomerAddress.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_address(self, customer_id: uuid.UUID, data: dict) -> CustomerAddress:
        """Save an address for a customer."""
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        try:
            if data.get("is_default"):
                await self._clear_default(customer_id)
            address = CustomerAddress(customer_id=customer_id, **data)
            self.db.add(address)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return address

    async def update_address(
        self,
        customer_id: uuid.UUID,
        address_id: uuid.UUID,
        data: dict
    ) -> CustomerAddress:
        """
        Partially update one of the customer's addresses.

        An address owned by someone else is reported as not found. Marking
        an address default clears the flag on the customer's others.
        """
        try:
            address = await self._get_owned_address(customer_id, address_id)
            if address is None:
                raise NotFoundError("Address", address_id)

            data = {k: v for k, v in data.items() if v is not None or k == "address_line2"}
            if data.get("is_default"):
                await self._clear_default(customer_id, keep=address_id)

            for field, value in data.items():
                setattr(address, field, value)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return address

    async def delete_address(self, customer_id: uuid.UUID, address_id: uuid.UUID) -> bool:
        """
        Delete one of the customer's addresses. Returns False when the
        customer has no such address.

        Orders that shipped to it keep their rows; their address reference
        is set to NULL by the foreign key.
        """
        address = await self._get_owned_address(customer_id, address_id)
        if address is None:
            return False

        try:
            await self.db.delete(address)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Address {address_id} of customer {customer_id} deleted")
        return True

    async def _get_owned_address(
        self,
        customer_id: uuid.UUID,
        address_id: uuid.UUID
    ) -> Optional[CustomerAddress]:
        stmt = (
            select(CustomerAddress)
            .where(
                CustomerAddress.id == address_id,
                CustomerAddress.customer_id == customer_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _clear_default(
        self,
        customer_id: uuid.UUID,
        keep: Optional[uuid.UUID] = None
    ) -> None:
        stmt = (
            update(CustomerAddress)
            .where(
                CustomerAddress.customer_id == customer_id,
                CustomerAddress.is_default.is_(True),
            )
            .values(is_default=False)
            .execution_options(synchronize_session=False)
        )
        if keep is not None:
            stmt = stmt.where(CustomerAddress.id != keep)
        await self.db.execute(stmt)

    async def verify_age(self, customer_id: uuid.UUID, date_of_birth: date) -> Customer:
        """
        Record the date of birth and set is_age_verified.

        The result is persisted either way; an under-age customer then gets
        AgeVerificationRequiredError.
        """
        customer = await self.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        is_verified = calculate_age(date_of_birth) >= settings.MINIMUM_AGE
        customer.date_of_birth = date_of_birth
        customer.is_age_verified = is_verified
        await self.db.commit()

        if not is_verified:
            logger.info(f"Customer {customer_id} failed age verification")
            raise AgeVerificationRequiredError(
                f"User must be {settings.MINIMUM_AGE} or older"
            )

        return customer
