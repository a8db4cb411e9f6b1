"""
Sale transaction processing.

A sale either commits completely (every stock decrement, the sale record, its
line snapshots and the matching stock movements in one database transaction)
or leaves no trace at all. Stock is taken with a conditional UPDATE per
medicine, so concurrent terminals selling the same medicine cannot oversell it.
"""
import logging
import uuid
from datetime import datetime, timezone
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmdesk.core.exceptions import (
    InsufficientStock,
    InvalidBasket,
    MedicineNotFound,
    SaleError,
    StockUnavailable,
)
from pharmdesk.core.money import line_total, sum_money, to_money
from pharmdesk.core.observability import log_event
from pharmdesk.models.medicine import Medicine
from pharmdesk.models.sales import Sale, SaleItem
from pharmdesk.services.audit_service import log_audit_event
from pharmdesk.services.inventory_service import (
    add_stock_movement,
    decrement_if_available,
    get_medicine_stock,
)

logger = logging.getLogger("pharmdesk.sales")


@dataclass(frozen=True)
class BasketLine:
    medicine_id: str
    quantity: int


def normalize_basket(lines: Iterable[BasketLine | Mapping]) -> list[BasketLine]:
    """
    Validate a requested basket and coalesce repeated medicines.

    Lines for the same medicine are merged into one line with the summed
    quantity, kept at the position of the first occurrence.
    """
    coalesced: dict[str, int] = {}
    for raw in lines:
        line = raw if isinstance(raw, BasketLine) else BasketLine(
            medicine_id=raw.get("medicine_id") or raw.get("medicineId") or "",
            quantity=raw.get("quantity"),
        )
        medicine_id = (line.medicine_id or "").strip()
        if not medicine_id:
            raise InvalidBasket("Every line needs a medicine_id")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
            raise InvalidBasket(f"Quantity for medicine {medicine_id} must be an integer")
        if line.quantity <= 0:
            raise InvalidBasket(f"Quantity for medicine {medicine_id} must be positive")
        coalesced[medicine_id] = coalesced.get(medicine_id, 0) + line.quantity

    if not coalesced:
        raise InvalidBasket("Basket is empty")

    return [BasketLine(medicine_id=mid, quantity=qty) for mid, qty in coalesced.items()]


class SaleProcessor:
    """Turns a basket into a persisted sale against the given session's storage."""

    def __init__(self, db: Session):
        self.db = db

    def process_sale(
        self,
        caller_id: str,
        basket_lines: Iterable[BasketLine | Mapping],
        *,
        customer_name: str | None = None,
    ) -> Sale:
        lines = normalize_basket(basket_lines)
        try:
            medicines = self._check_availability(lines)
            self._take_stock(lines, medicines)
            sale = self._record_sale(caller_id, lines, medicines, customer_name)
            self.db.commit()
        except SaleError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_event(
                logger,
                "sale_storage_error",
                level=logging.ERROR,
                caller_id=caller_id,
                error=str(exc),
            )
            raise StockUnavailable(
                "Sale could not be recorded; no stock was changed. Retry the request."
            ) from exc

        log_event(
            logger,
            "sale_created",
            sale_id=sale.id,
            caller_id=caller_id,
            lines=len(lines),
            total_amount=float(sale.total_amount),
        )
        return sale

    def _check_availability(self, lines: list[BasketLine]) -> dict[str, Medicine]:
        ids = [line.medicine_id for line in lines]
        rows = self.db.execute(select(Medicine).where(Medicine.id.in_(ids))).scalars().all()
        medicines = {row.id: row for row in rows}

        for line in lines:
            medicine = medicines.get(line.medicine_id)
            if medicine is None:
                raise MedicineNotFound(line.medicine_id)
            if medicine.quantity < line.quantity:
                raise InsufficientStock(
                    medicine_id=medicine.id,
                    medicine_name=medicine.name,
                    requested=line.quantity,
                    available=medicine.quantity,
                )
        return medicines

    def _take_stock(self, lines: list[BasketLine], medicines: dict[str, Medicine]) -> None:
        # Fixed id order keeps row locks acquired in the same sequence across requests.
        for line in sorted(lines, key=lambda item: item.medicine_id):
            if decrement_if_available(self.db, medicine_id=line.medicine_id, qty=line.quantity):
                continue

            available = get_medicine_stock(self.db, line.medicine_id)
            if available is None:
                raise MedicineNotFound(line.medicine_id)
            # The failed UPDATE saw fewer units than requested; a restock may have landed since.
            raise InsufficientStock(
                medicine_id=line.medicine_id,
                medicine_name=medicines[line.medicine_id].name,
                requested=line.quantity,
                available=min(available, line.quantity - 1),
            )

    def _record_sale(
        self,
        caller_id: str,
        lines: list[BasketLine],
        medicines: dict[str, Medicine],
        customer_name: str | None,
    ) -> Sale:
        sale_id = str(uuid.uuid4())
        items: list[SaleItem] = []

        for position, line in enumerate(lines):
            medicine = medicines[line.medicine_id]
            unit_price = to_money(medicine.selling_price)
            items.append(
                SaleItem(
                    id=str(uuid.uuid4()),
                    position=position,
                    medicine_id=medicine.id,
                    medicine_name=medicine.name,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=line_total(unit_price, line.quantity),
                )
            )
            add_stock_movement(
                self.db,
                medicine_id=medicine.id,
                qty_delta=-line.quantity,
                reason="sale",
                reference_id=sale_id,
                actor_user_id=caller_id,
            )

        total = sum_money(item.total_price for item in items)
        sale = Sale(
            id=sale_id,
            total_amount=total,
            customer_name=customer_name,
            created_by=caller_id,
            created_at=datetime.now(timezone.utc),
            items=items,
        )
        self.db.add(sale)

        log_audit_event(
            self.db,
            actor_user_id=caller_id,
            action="sale.create",
            target_id=sale_id,
            details={"items_count": len(items), "total": float(total)},
        )
        self.db.flush()
        return sale
