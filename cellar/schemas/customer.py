"""Customer schemas for API requests/responses."""
from datetime import date, datetime
from typing import List, Optional
import uuid

from pydantic import Field

from cellar.schemas.base import BaseCreateSchema, BaseResponseSchema

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AddressCreate(BaseCreateSchema):
    """Address creation schema."""
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., min_length=3, max_length=10)
    country: str = Field("India", max_length=100)
    is_default: bool = False


class AddressUpdate(BaseCreateSchema):
    """Partial address update; only fields sent are changed."""
    address_line1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    pincode: Optional[str] = Field(None, min_length=3, max_length=10)
    country: Optional[str] = Field(None, max_length=100)
    is_default: Optional[bool] = None


class AddressResponse(BaseResponseSchema):
    id: uuid.UUID
    customer_id: uuid.UUID
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    pincode: str
    country: str
    is_default: bool
    created_at: datetime


class CustomerCreate(BaseCreateSchema):
    """Customer creation schema."""
    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    addresses: List[AddressCreate] = Field(default_factory=list)


class CustomerUpdate(BaseCreateSchema):
    """
    Profile update. Date of birth is not editable here; it changes only
    through age verification.
    """
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)


class AgeVerificationRequest(BaseCreateSchema):
    date_of_birth: date


class CustomerResponse(BaseResponseSchema):
    id: uuid.UUID
    full_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    is_age_verified: bool
    addresses: List[AddressResponse] = []
    created_at: datetime
