"""
Error taxonomy for the pricing engine.

Each error carries the HTTP status the API layer maps it to.
"""
from typing import Optional


class PricingError(Exception):
    """Base class for all pricing failures."""
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.field:
            body["field"] = self.field
        return body


class InvalidArgument(PricingError):
    """Malformed or out-of-range input (unknown enum, non-positive size...)."""
    status_code = 400


class NotFound(PricingError):
    """Unknown technology, service, tier or product."""
    status_code = 404


class Unprocessable(PricingError):
    """Reference data is internally inconsistent and cannot be priced."""
    status_code = 422


def require_positive(value, field: str) -> float:
    """Return value as float or raise InvalidArgument naming the field."""
    if value is None:
        raise InvalidArgument(f"{field} is required", field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} must be a number", field=field)
    if number <= 0:
        raise InvalidArgument(f"{field} must be greater than 0 (got {value})", field=field)
    return number
