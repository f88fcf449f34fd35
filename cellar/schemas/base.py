"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM models inherit from
BaseResponseSchema; all request bodies inherit from BaseCreateSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas that read from ORM models or dicts.

    Usage:
        class CartItemResponse(BaseResponseSchema):
            id: UUID
            quantity: int
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored (forward compatibility with storefront
    clients that send extra keys).
    """
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
    )
