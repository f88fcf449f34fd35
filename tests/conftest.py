"""Shared fixtures: a throwaway SQLite database per test and a seeded catalog."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cellar.database import create_engine, create_session_factory, get_db, init_db
from cellar.main import app
from cellar.models import Customer, Product, ProductVariant


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File-backed so separate sessions see each other and contend for the write lock
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'cellar_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def catalog(session_factory):
    """
    Products used across the suite:
    - whisky: 33.33 @ 18%, stock 10
    - soda:   10.00 @ 18%, stock 5
    - retired: only an inactive variant
    - bundle: no variants at all, list price 25.00
    """
    async with session_factory() as session:
        whisky = Product(sku="GLN-12", product_name="Glen Test 12", brand="Glen", category="Whisky",
                         price=Decimal("33.33"))
        soda = Product(sku="SODA-1", product_name="Club Soda", brand="Fizz", category="Mixers",
                       price=Decimal("10.00"))
        retired = Product(sku="OLD-1", product_name="Old Reserve", category="Rum", price=Decimal("50.00"))
        bundle = Product(sku="BNDL-1", product_name="Tasting Bundle", category="Gifts",
                         price=Decimal("25.00"))
        session.add_all([whisky, soda, retired, bundle])
        await session.flush()

        whisky_750 = ProductVariant(
            product_id=whisky.id, variant_name="750ml", variant_sku="GLN-12-750",
            size_label="750ml", volume_ml=750, alcohol_percentage=Decimal("40.00"),
            price=Decimal("33.33"), tax_percentage=Decimal("18.00"), stock_quantity=10,
        )
        soda_can = ProductVariant(
            product_id=soda.id, variant_name="Can", variant_sku="SODA-1-CAN",
            size_label="330ml", volume_ml=330,
            price=Decimal("12.00"), discounted_price=Decimal("10.00"),
            tax_percentage=Decimal("18.00"), stock_quantity=5,
        )
        retired_variant = ProductVariant(
            product_id=retired.id, variant_name="1L", price=Decimal("50.00"),
            tax_percentage=Decimal("18.00"), stock_quantity=3, is_active=False,
        )
        session.add_all([whisky_750, soda_can, retired_variant])
        await session.commit()

        return SimpleNamespace(
            whisky=whisky.id,
            whisky_750=whisky_750.id,
            soda=soda.id,
            soda_can=soda_can.id,
            retired=retired.id,
            retired_variant=retired_variant.id,
            bundle=bundle.id,
        )


@pytest_asyncio.fixture
async def verified_customer(session_factory):
    async with session_factory() as session:
        customer = Customer(
            full_name="Asha Rao",
            email="asha@example.com",
            date_of_birth=date(1990, 5, 17),
            is_age_verified=True,
        )
        session.add(customer)
        await session.commit()
        return customer.id


@pytest_asyncio.fixture
async def unverified_customer(session_factory):
    async with session_factory() as session:
        customer = Customer(full_name="Ravi Kumar", email="ravi@example.com")
        session.add(customer)
        await session.commit()
        return customer.id


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch):
    """HTTP client bound to the app, with sessions drawn from the test database."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr("cellar.main.async_session_factory", session_factory)
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
