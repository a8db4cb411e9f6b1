from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmdesk.db.base import Base


class Sale(Base):
    """
    Append-only sale record. Corrections are new sales, never edits.
    """
    __tablename__ = "sales"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    items: Mapped[list["SaleItem"]] = relationship(
        order_by="SaleItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_sales_created_at", "created_at"),
        Index("ix_sales_created_by_created_at", "created_by", "created_at"),
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sale_id: Mapped[str] = mapped_column(String(36), ForeignKey("sales.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    # Snapshot of the medicine at sale time; no FK so the line survives catalog deletes.
    medicine_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    medicine_name: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
    )
