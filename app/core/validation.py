# File: app/core/validation.py
"""
Field-level input checks for purchase order payloads.

Checks collect every problem into a ValidationResult keyed by field path
(``items[0].quantity_requested``) and raise once, so a client sees all
mistakes in a single response.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, List, Any, Callable, Optional, Union
import functools

from app.core.exceptions import ValidationException

CENT = Decimal("0.01")


class ValidationResult:
    """Errors gathered while checking one payload."""

    def __init__(self):
        self.errors: Dict[str, List[str]] = {}

    def add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.is_valid

    def to_dict(self) -> Dict[str, List[str]]:
        return {field: list(messages) for field, messages in self.errors.items()}

    def raise_if_invalid(self, message: str = "Input validation failed") -> None:
        if self.errors:
            raise ValidationException(message, self.to_dict())


def validate_input(validator: Callable) -> Callable:
    """
    Run ``validator`` on a service method's payload before the method body.

    The payload is the first positional argument after ``self``.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            if not args:
                raise ValidationException("Request payload is missing", {"input": ["No data provided"]})
            validator(args[0]).raise_if_invalid()
            return func(self, *args, **kwargs)

        return wrapper
    return decorator


def to_decimal(value: Union[Decimal, int, float, str, None]) -> Optional[Decimal]:
    """Coerce a price-like value to a two-place Decimal, keeping None."""
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValidationException(
            "Invalid decimal value", {"value": [f"'{value}' is not a number"]}
        )


def validate_order_items(data: Dict[str, Any]) -> ValidationResult:
    """
    Structural validation of a create/replace-items payload.

    Checks that at least one item is present, every quantity is positive,
    and no product appears twice.
    """
    result = ValidationResult()
    items = data.get("items") or []

    if not items:
        result.add_error("items", "At least one item is required")
        return result

    seen_products = set()
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        quantity = item.get("quantity_requested")

        if product_id is None:
            result.add_error(f"items[{index}].product_id", "Product is required")
        elif product_id in seen_products:
            result.add_error(
                f"items[{index}].product_id",
                f"Product {product_id} appears more than once",
            )
        else:
            seen_products.add(product_id)

        if quantity is None or quantity <= 0:
            result.add_error(
                f"items[{index}].quantity_requested", "Quantity must be positive"
            )

    return result
