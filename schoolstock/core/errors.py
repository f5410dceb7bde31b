"""Domain errors raised by the inventory services.

Routers let these propagate; ``observability.inventory_exception_handler``
renders them with the shared error envelope.
"""


class InventoryError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, *, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(InventoryError):
    status_code = 404
    code = "not_found"


class StockValidationError(InventoryError):
    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None):
        details = [{"field": field, "message": message, "type": "value_error"}] if field else None
        super().__init__(message, details=details)
        self.field = field


class InsufficientStockError(InventoryError):
    status_code = 400
    code = "insufficient_stock"

    def __init__(self, *, item_id: str, available: int, requested: int):
        super().__init__(
            "Insufficient stock",
            details=[
                {
                    "field": "quantity",
                    "message": f"Requested {requested}, only {available} available",
                    "type": "insufficient_stock",
                }
            ],
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class ConflictError(InventoryError):
    status_code = 409
    code = "conflict"


class LedgerPersistenceError(InventoryError):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
