from datetime import date
from typing import Optional

from pydantic import BaseModel


class InventorySummaryOut(BaseModel):
    medicine_count: int
    units_in_stock: int
    stock_value: float
    low_stock_count: int
    expired_count: int
    sales_today_total: float
    sales_today_count: int


class SalesDayOut(BaseModel):
    day: date
    count: int
    total: float


class SalesReportOut(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sales_count: int
    total_amount: float
    average_sale_value: float
    days: list[SalesDayOut]


class StockAlertOut(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int


class StockAlertListOut(BaseModel):
    threshold: Optional[int] = None
    as_of: Optional[date] = None
    items: list[StockAlertOut]
