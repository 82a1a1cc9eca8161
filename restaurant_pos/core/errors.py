"""
Domain Error Taxonomy

Every failure a service can report to a caller is one of these classes.
Each carries a stable ``kind`` string and the HTTP status the API layer
renders it with, so callers match on the class or ``kind`` and never on
message text.
"""

from typing import Any, Optional


class POSError(Exception):
    """Base class for all domain errors."""

    kind = "pos_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error body."""
        return {
            "success": False,
            "error": self.kind,
            "detail": self.message,
        }


class ValidationError(POSError):
    """Malformed or semantically invalid input, rejected before any write."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(POSError):
    """A referenced bill, order, menu item or other record does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["resource"] = self.resource
        data["resource_id"] = self.resource_id
        return data


class ConflictError(POSError):
    """The request is well-formed but clashes with current state."""

    kind = "conflict"
    status_code = 409


class DuplicateSplitItemError(ConflictError):
    """An order item was assigned to more than one split."""

    kind = "duplicate_split_item"

    def __init__(self, order_item_id: int):
        super().__init__(f"Order item {order_item_id} appears in more than one split")
        self.order_item_id = order_item_id


class OrderMismatchError(ConflictError):
    """The original bill does not belong to the order named in the request."""

    kind = "order_mismatch"

    def __init__(self, bill_id: int, expected_order_id: int, actual_order_id: int):
        super().__init__(
            f"Bill {bill_id} belongs to order {actual_order_id}, "
            f"not order {expected_order_id}"
        )
        self.bill_id = bill_id


class DoubleBookingError(ConflictError):
    """Another reservation holds the same table at the same time."""

    kind = "double_booking"

    def __init__(self, table_id: int, reservation_time: Any):
        super().__init__(
            f"Table {table_id} is already reserved at {reservation_time}"
        )
        self.table_id = table_id


class OrderStateError(ConflictError):
    """The order's status does not allow the requested operation."""

    kind = "order_state"


class InsufficientStockError(POSError):
    """An ingredient does not have enough stock for the requested quantity."""

    kind = "insufficient_stock"
    status_code = 409

    def __init__(
        self,
        ingredient_id: int,
        required: float,
        available: float,
        ingredient_name: Optional[str] = None,
    ):
        label = f"'{ingredient_name}' (id {ingredient_id})" if ingredient_name else f"id {ingredient_id}"
        super().__init__(
            f"Insufficient stock for ingredient {label}: "
            f"required {required:g}, available {available:g}"
        )
        self.ingredient_id = ingredient_id
        self.ingredient_name = ingredient_name
        self.required = required
        self.available = available

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["ingredient_id"] = self.ingredient_id
        data["required"] = self.required
        data["available"] = self.available
        return data


class PersistenceError(POSError):
    """The store rejected or failed a transaction. Safe to retry the whole call."""

    kind = "persistence_error"
    status_code = 500
