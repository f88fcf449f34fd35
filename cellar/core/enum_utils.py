"""
Enum Utilities for VARCHAR-based Status Fields

Status columns are stored as VARCHAR, validated against Python enums, and
always kept in UPPERCASE.

DATA FLOW:
    INPUT:  "cancelled" -> normalize -> OrderStatus.CANCELLED -> "CANCELLED"
    OUTPUT: VARCHAR "CANCELLED" is returned as-is
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.PENDING)
        'PENDING'
        >>> get_enum_value("PENDING")
        'PENDING'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a value to an enum instance, accepting any letter case.

    Returns None when the value is not a member.

    Examples:
        >>> to_enum("cancelled", OrderStatus)
        OrderStatus.CANCELLED
        >>> to_enum("INVALID", OrderStatus)
        None
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    if isinstance(value, str):
        value = value.strip().upper()
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def enum_values(enum_class: Type[Enum]) -> list:
    """
    Get all values from an enum class.

    Examples:
        >>> enum_values(PaymentStatus)
        ['UNPAID', 'PAID', 'REFUNDED', 'FAILED']
    """
    return [e.value for e in enum_class]


def is_status(db_value: str, enum_value: Enum) -> bool:
    """
    Compare a database string with an enum value.

    Examples:
        >>> is_status(order.order_status, OrderStatus.CANCELLED)
        True
    """
    if db_value is None:
        return False
    return db_value == enum_value.value
