import uuid

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pharmdesk.core.exceptions import InsufficientStock, MedicineNotFound
from pharmdesk.models.inventory import StockMovement
from pharmdesk.models.medicine import Medicine


def get_medicine_stock(db: Session, medicine_id: str) -> int | None:
    q = select(Medicine.quantity).where(Medicine.id == medicine_id)
    value = db.execute(q).scalar_one_or_none()
    return int(value) if value is not None else None


def decrement_if_available(db: Session, *, medicine_id: str, qty: int) -> bool:
    """
    Single conditional UPDATE: the sufficiency check and the decrement happen in
    one statement, so concurrent writers can never take quantity below zero.
    Returns False when the row is missing or holds fewer than ``qty`` units.
    """
    result = db.execute(
        update(Medicine)
        .where(Medicine.id == medicine_id, Medicine.quantity >= qty)
        .values(quantity=Medicine.quantity - qty)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_stock(db: Session, *, medicine_id: str, qty: int) -> bool:
    result = db.execute(
        update(Medicine)
        .where(Medicine.id == medicine_id)
        .values(quantity=Medicine.quantity + qty)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def add_stock_movement(
    db: Session,
    *,
    medicine_id: str,
    qty_delta: int,
    reason: str,
    reference_id: str | None = None,
    note: str | None = None,
    actor_user_id: str | None = None,
) -> StockMovement:
    entry = StockMovement(
        id=str(uuid.uuid4()),
        medicine_id=medicine_id,
        qty_delta=qty_delta,
        reason=reason,
        reference_id=reference_id,
        note=note,
        actor_user_id=actor_user_id,
    )
    db.add(entry)
    return entry


def adjust_stock(
    db: Session,
    *,
    medicine: Medicine,
    qty_delta: int,
    reason: str,
    note: str | None = None,
    actor_user_id: str | None = None,
) -> StockMovement:
    """Apply a restock or manual correction. The caller owns the commit."""
    if qty_delta < 0:
        applied = decrement_if_available(db, medicine_id=medicine.id, qty=-qty_delta)
        if not applied:
            available = get_medicine_stock(db, medicine.id)
            if available is None:
                raise MedicineNotFound(medicine.id)
            raise InsufficientStock(
                medicine_id=medicine.id,
                medicine_name=medicine.name,
                requested=-qty_delta,
                available=available,
            )
    elif not increment_stock(db, medicine_id=medicine.id, qty=qty_delta):
        raise MedicineNotFound(medicine.id)

    db.expire(medicine, ["quantity", "updated_at"])
    return add_stock_movement(
        db,
        medicine_id=medicine.id,
        qty_delta=qty_delta,
        reason=reason,
        note=note,
        actor_user_id=actor_user_id,
    )
