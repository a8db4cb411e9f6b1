from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from pharmdesk.db.base import Base


class StockMovement(Base):
    """
    One row per change to a medicine's quantity. Positive = stock in. Negative = stock out.
    """
    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    medicine_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    qty_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)  # "initial", "restock", "sale", "correction"
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # e.g., sale_id
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_stock_movements_medicine_created_at", "medicine_id", "created_at"),
    )
