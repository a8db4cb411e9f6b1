from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class SaleLineIn(BaseModel):
    medicine_id: str = Field(alias="medicineId")
    quantity: int

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("medicine_id")
    @classmethod
    def validate_medicine_id(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("medicine_id is required")
        return cleaned


class SaleCreate(BaseModel):
    lines: List[SaleLineIn]
    customer_name: Optional[str] = Field(default=None, alias="customerName", max_length=255)

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "lines": [
                    {"medicineId": "medicine-id-here", "quantity": 2},
                ],
                "customerName": "Walk-in customer",
            }
        },
    )

    @field_validator("customer_name")
    @classmethod
    def normalize_customer_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class SaleLineOut(BaseModel):
    medicine_id: str
    medicine_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_serializer("unit_price", "total_price")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class SaleOut(BaseModel):
    id: str
    lines: list[SaleLineOut]
    total_amount: Decimal
    customer_name: Optional[str] = None
    created_by: str
    created_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "sale-id",
                "lines": [
                    {
                        "medicineId": "medicine-id",
                        "medicineName": "Paracetamol 500mg",
                        "quantity": 3,
                        "unitPrice": 5.0,
                        "totalPrice": 15.0,
                    }
                ],
                "totalAmount": 15.0,
                "customerName": None,
                "createdBy": "user-id",
                "createdAt": "2026-10-19T10:00:00Z",
            }
        }
    )

    @field_serializer("total_amount")
    def serialize_total(self, value: Decimal) -> float:
        return float(value)


class SalesTotalOut(BaseModel):
    total: float
    start_date: date
    end_date: date

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
