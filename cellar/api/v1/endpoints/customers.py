"""Customer API endpoints: accounts, addresses and the age gate."""
from typing import List
import uuid

from fastapi import APIRouter, HTTPException, Response, status

from cellar.api.deps import DB
from cellar.schemas.customer import (
    AddressCreate,
    AddressResponse,
    AddressUpdate,
    AgeVerificationRequest,
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
)
from cellar.services.customer_service import CustomerService


router = APIRouter(tags=["Customers"])


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(data: CustomerCreate, db: DB):
    """Register a customer, optionally with saved addresses."""
    service = CustomerService(db)
    customer = await service.create_customer(data.model_dump())
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: uuid.UUID, db: DB):
    service = CustomerService(db)
    customer = await service.get_customer(customer_id)
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found"
        )
    return CustomerResponse.model_validate(customer)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: uuid.UUID, data: CustomerUpdate, db: DB):
    """Update name, email or phone. Fields left out are unchanged."""
    service = CustomerService(db)
    customer = await service.update_profile(customer_id, data.model_dump(exclude_unset=True))
    return CustomerResponse.model_validate(customer)


@router.post("/{customer_id}/verify-age", response_model=CustomerResponse)
async def verify_age(customer_id: uuid.UUID, data: AgeVerificationRequest, db: DB):
    """
    Record date of birth and verify age.

    Answers 403 when the customer is under the minimum age; the date of
    birth is stored either way.
    """
    service = CustomerService(db)
    customer = await service.verify_age(customer_id, data.date_of_birth)
    return CustomerResponse.model_validate(customer)


@router.post(
    "/{customer_id}/addresses",
    response_model=AddressResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_address(customer_id: uuid.UUID, data: AddressCreate, db: DB):
    service = CustomerService(db)
    address = await service.add_address(customer_id, data.model_dump())
    return AddressResponse.model_validate(address)


@router.get("/{customer_id}/addresses", response_model=List[AddressResponse])
async def list_addresses(customer_id: uuid.UUID, db: DB):
    """Saved addresses, default first."""
    service = CustomerService(db)
    addresses = await service.get_addresses(customer_id)
    return [AddressResponse.model_validate(a) for a in addresses]


@router.patch("/{customer_id}/addresses/{address_id}", response_model=AddressResponse)
async def update_address(
    customer_id: uuid.UUID,
    address_id: uuid.UUID,
    data: AddressUpdate,
    db: DB,
):
    service = CustomerService(db)
    address = await service.update_address(
        customer_id, address_id, data.model_dump(exclude_unset=True)
    )
    return AddressResponse.model_validate(address)


@router.delete(
    "/{customer_id}/addresses/{address_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_address(customer_id: uuid.UUID, address_id: uuid.UUID, db: DB):
    """Delete a saved address. Orders that used it keep their history."""
    service = CustomerService(db)
    deleted = await service.delete_address(customer_id, address_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Address not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
