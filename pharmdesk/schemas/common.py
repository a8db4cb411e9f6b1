from typing import Any

from pydantic import BaseModel, ConfigDict


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | dict[str, Any] | None = None


class ErrorOut(BaseModel):
    message: str
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Insufficient stock for Paracetamol 500mg: requested 5, available 2",
                "error": {
                    "code": "insufficient_stock",
                    "message": "Insufficient stock for Paracetamol 500mg: requested 5, available 2",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/sales",
                    "details": {
                        "medicine_id": "medicine-id",
                        "medicine_name": "Paracetamol 500mg",
                        "requested": 5,
                        "available": 2,
                        "shortfall": 3,
                    },
                }
            }
        }
    )


class MessageOut(BaseModel):
    message: str
