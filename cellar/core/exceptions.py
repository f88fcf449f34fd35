"""
Domain errors raised by the services.

Each error carries the HTTP status the API layer answers with, so endpoint
code never has to translate them one by one.
"""
from typing import Dict, Optional


class CommerceError(Exception):
    """Base class for expected business-rule failures."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CommerceError):
    """Malformed or missing request data. Not retryable."""
    status_code = 400


class NotFoundError(CommerceError):
    """Unknown id."""
    status_code = 404

    def __init__(self, resource: str, identifier=None, details: Optional[Dict] = None):
        self.resource = resource
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} not found: {identifier}"
        super().__init__(message, details)


class InsufficientStockError(CommerceError):
    """Requested quantity exceeds what is on hand."""
    status_code = 400

    def __init__(
        self,
        available: int,
        requested: int,
        product_name: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        self.available = available
        self.requested = requested
        self.product_name = product_name
        if product_name:
            message = (
                f'Insufficient stock for "{product_name}". '
                f"Available: {available}, Requested: {requested}"
            )
        else:
            message = f"Insufficient stock. Available: {available}, Requested: {requested}"
        details = {"available": available, "requested": requested, **(details or {})}
        super().__init__(message, details)


class VariantUnavailableError(CommerceError):
    """Variant exists but is inactive."""
    status_code = 400

    def __init__(self, product_name: Optional[str] = None, details: Optional[Dict] = None):
        self.product_name = product_name
        if product_name:
            message = f'"{product_name}" is no longer available'
        else:
            message = "This variant is no longer available"
        super().__init__(message, details)


class AgeVerificationRequiredError(CommerceError):
    """Customer has not passed the age gate."""
    status_code = 403


class InvalidStateTransitionError(CommerceError):
    """Unknown status value, or a transition out of a terminal status."""
    status_code = 400


class ConflictError(CommerceError):
    """Duplicate unique key."""
    status_code = 409
