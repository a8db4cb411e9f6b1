from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from pharmdesk.schemas.supplier import SupplierOut

AdjustmentReason = Literal["restock", "correction"]


class MedicineCreate(BaseModel):
    name: str = Field(max_length=255)
    category: Optional[str] = Field(default=None, max_length=100)
    batch_number: Optional[str] = Field(default=None, max_length=100)
    expiry_date: Optional[date] = None
    quantity: int = Field(default=0, ge=0)
    purchase_price: Decimal = Field(ge=0)
    selling_price: Decimal = Field(ge=0)
    supplier_id: Optional[str] = Field(default=None, max_length=36)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Paracetamol 500mg",
                "category": "analgesic",
                "batch_number": "PCM-2026-04",
                "expiry_date": "2027-04-30",
                "quantity": 120,
                "purchase_price": 2.5,
                "selling_price": 5.0,
                "supplier_id": "supplier-id",
            }
        }
    )


class MedicineUpdate(BaseModel):
    """Catalog fields only. Stock changes go through the stock adjustment route."""

    name: Optional[str] = Field(default=None, max_length=255)
    category: Optional[str] = Field(default=None, max_length=100)
    batch_number: Optional[str] = Field(default=None, max_length=100)
    expiry_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
    selling_price: Optional[Decimal] = Field(default=None, ge=0)
    supplier_id: Optional[str] = Field(default=None, max_length=36)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be blank")
        return cleaned


class MedicineOut(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int
    purchase_price: Decimal
    selling_price: Decimal
    supplier_id: Optional[str] = None
    supplier: Optional[SupplierOut] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("purchase_price", "selling_price")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class StockAdjustIn(BaseModel):
    qty_delta: int
    reason: AdjustmentReason = "restock"
    note: Optional[str] = Field(default=None, max_length=255)

    @field_validator("qty_delta")
    @classmethod
    def validate_qty_delta(cls, value: int) -> int:
        if value == 0:
            raise ValueError("qty_delta cannot be zero")
        return value

    @model_validator(mode="after")
    def validate_restock_direction(self) -> "StockAdjustIn":
        if self.reason == "restock" and self.qty_delta < 0:
            raise ValueError("restock qty_delta must be positive; use a correction to remove stock")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"qty_delta": 50, "reason": "restock", "note": "Weekly delivery"}
        }
    )


class StockMovementOut(BaseModel):
    id: str
    medicine_id: str
    qty_delta: int
    reason: str
    reference_id: Optional[str] = None
    note: Optional[str] = None
    actor_user_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
