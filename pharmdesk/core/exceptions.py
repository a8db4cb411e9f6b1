"""
Error taxonomy for the sale transaction flow.

Every error carries a stable ``code`` for clients, the HTTP status it maps to
and optional structured ``details``. Client errors (4xx) are never retried by
the service; ``StockUnavailable`` (5xx) is safe for the caller to retry since a
failed attempt leaves no partial stock change behind.
"""
from typing import Any


class SaleError(Exception):
    code = "sale_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidBasket(SaleError):
    code = "invalid_basket"


class MedicineNotFound(SaleError):
    code = "medicine_not_found"

    def __init__(self, medicine_id: str):
        super().__init__(
            f"Medicine not found: {medicine_id}",
            details={"medicine_id": medicine_id},
        )
        self.medicine_id = medicine_id


class InsufficientStock(SaleError):
    code = "insufficient_stock"

    def __init__(
        self,
        *,
        medicine_id: str,
        requested: int,
        available: int,
        medicine_name: str | None = None,
    ):
        label = medicine_name or medicine_id
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            details={
                "medicine_id": medicine_id,
                "medicine_name": medicine_name,
                "requested": requested,
                "available": available,
                "shortfall": requested - available,
            },
        )
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available


class StockUnavailable(SaleError):
    code = "stock_unavailable"
    status_code = 503
