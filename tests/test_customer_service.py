from datetime import date
import uuid

import pytest

from cellar.core.exceptions import AgeVerificationRequiredError, ConflictError, NotFoundError
from cellar.services.cart_service import CartService
from cellar.services.customer_service import CustomerService, calculate_age
from cellar.services.order_service import OrderService


HOME = {"address_line1": "4 Lake View", "city": "Bengaluru", "state": "KA", "pincode": "560001"}
OFFICE = {"address_line1": "90 Ring Road", "city": "Bengaluru", "state": "KA", "pincode": "560103"}


def test_calculate_age_counts_completed_years():
    assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 14)) == 17
    assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 15)) == 18


async def test_update_profile(session_factory, verified_customer, unverified_customer):
    async with session_factory() as session:
        customer = await CustomerService(session).update_profile(
            verified_customer, {"email": " Asha.Rao@Example.com ", "phone": "+91 98450 00000"}
        )

    assert customer.email == "asha.rao@example.com"
    assert customer.phone == "+91 98450 00000"
    assert customer.full_name == "Asha Rao"

    async with session_factory() as session:
        with pytest.raises(ConflictError):
            await CustomerService(session).update_profile(
                unverified_customer, {"email": "ASHA.RAO@example.com"}
            )
    async with session_factory() as session:
        with pytest.raises(NotFoundError):
            await CustomerService(session).update_profile(uuid.uuid4(), {"full_name": "Nobody"})


async def test_new_default_address_replaces_the_old_one(session_factory, verified_customer):
    async with session_factory() as session:
        home = await CustomerService(session).add_address(verified_customer, {**HOME, "is_default": True})
    async with session_factory() as session:
        office = await CustomerService(session).add_address(verified_customer, {**OFFICE, "is_default": True})

    async with session_factory() as session:
        addresses = await CustomerService(session).get_addresses(verified_customer)

    assert [a.id for a in addresses] == [office.id, home.id]
    assert [a.is_default for a in addresses] == [True, False]


async def test_update_address(session_factory, verified_customer):
    async with session_factory() as session:
        home = await CustomerService(session).add_address(verified_customer, {**HOME, "is_default": True})
    async with session_factory() as session:
        office = await CustomerService(session).add_address(verified_customer, OFFICE)

    async with session_factory() as session:
        updated = await CustomerService(session).update_address(
            verified_customer, office.id, {"address_line2": "Tower B", "is_default": True}
        )

    assert updated.address_line2 == "Tower B"
    assert updated.address_line1 == "90 Ring Road"
    async with session_factory() as session:
        addresses = await CustomerService(session).get_addresses(verified_customer)
    assert {a.id: a.is_default for a in addresses} == {office.id: True, home.id: False}


async def test_addresses_of_other_customers_are_not_found(session_factory, verified_customer, unverified_customer):
    async with session_factory() as session:
        home = await CustomerService(session).add_address(verified_customer, HOME)

    async with session_factory() as session:
        service = CustomerService(session)
        with pytest.raises(NotFoundError):
            await service.update_address(unverified_customer, home.id, {"city": "Mysuru"})
        assert await service.delete_address(unverified_customer, home.id) is False
        with pytest.raises(NotFoundError):
            await service.get_addresses(uuid.uuid4())

    async with session_factory() as session:
        addresses = await CustomerService(session).get_addresses(verified_customer)
    assert [(a.id, a.city) for a in addresses] == [(home.id, "Bengaluru")]


async def test_deleting_a_shipped_to_address_keeps_the_order(session_factory, catalog, verified_customer):
    async with session_factory() as session:
        home = await CustomerService(session).add_address(verified_customer, HOME)
    async with session_factory() as session:
        service = CartService(session)
        cart, _ = await service.find_or_create_cart(verified_customer)
        await service.add_item(cart.id, catalog.whisky_750, 1)
    async with session_factory() as session:
        placed = await OrderService(session).checkout_from_cart(
            cart.id, verified_customer, shipping_address_id=home.id
        )
    assert placed["shipping_address_id"] == home.id

    async with session_factory() as session:
        assert await CustomerService(session).delete_address(verified_customer, home.id) is True

    async with session_factory() as session:
        order = await OrderService(session).get_order(placed["id"])
        addresses = await CustomerService(session).get_addresses(verified_customer)

    assert order["shipping_address_id"] is None
    assert order["grand_total"] == placed["grand_total"]
    assert addresses == []


async def test_under_age_customer_is_stored_unverified(session_factory, unverified_customer):
    today = date.today()
    born = date(today.year - 17, 1, 1)

    async with session_factory() as session:
        with pytest.raises(AgeVerificationRequiredError):
            await CustomerService(session).verify_age(unverified_customer, born)

    async with session_factory() as session:
        customer = await CustomerService(session).get_customer(unverified_customer)
    assert customer.date_of_birth == born
    assert customer.is_age_verified is False
