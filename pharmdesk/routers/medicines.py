import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.deps import get_db
from pharmdesk.core.money import to_money
from pharmdesk.core.permissions import require_admin
from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.inventory import StockMovement
from pharmdesk.models.medicine import Medicine
from pharmdesk.models.user import User
from pharmdesk.routers.suppliers import get_supplier_or_404
from pharmdesk.schemas.common import MessageOut
from pharmdesk.schemas.medicine import (
    MedicineCreate,
    MedicineOut,
    MedicineUpdate,
    StockAdjustIn,
    StockMovementOut,
)
from pharmdesk.services.audit_service import log_audit_event
from pharmdesk.services.inventory_service import add_stock_movement, adjust_stock

router = APIRouter(prefix="/medicines", tags=["medicines"])


def _get_medicine(db: Session, medicine_id: str) -> Medicine:
    medicine = db.execute(select(Medicine).where(Medicine.id == medicine_id)).scalar_one_or_none()
    if not medicine:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return medicine


@router.get(
    "",
    response_model=list[MedicineOut],
    summary="List medicines",
    responses=error_responses(401, 422, 500),
)
def list_medicines(
    search: str | None = Query(default=None, description="Case-insensitive name filter"),
    category: str | None = Query(default=None),
    supplier_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    stmt = select(Medicine)
    if search and search.strip():
        stmt = stmt.where(func.lower(Medicine.name).contains(search.strip().lower()))
    if category and category.strip():
        stmt = stmt.where(func.lower(Medicine.category) == category.strip().lower())
    if supplier_id:
        stmt = stmt.where(Medicine.supplier_id == supplier_id)

    rows = db.execute(stmt.order_by(Medicine.name.asc(), Medicine.expiry_date.asc())).scalars().all()
    return [MedicineOut.model_validate(row) for row in rows]


@router.get(
    "/{medicine_id}",
    response_model=MedicineOut,
    summary="Get medicine",
    responses=error_responses(401, 404, 500),
)
def get_medicine(
    medicine_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return MedicineOut.model_validate(_get_medicine(db, medicine_id))


@router.post(
    "",
    response_model=MedicineOut,
    status_code=201,
    summary="Create medicine",
    description="Adds a medicine to the catalog and records its opening stock.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def create_medicine(
    payload: MedicineCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if payload.supplier_id:
        get_supplier_or_404(db, payload.supplier_id)

    medicine = Medicine(
        id=str(uuid.uuid4()),
        name=payload.name,
        category=payload.category,
        batch_number=payload.batch_number,
        expiry_date=payload.expiry_date,
        quantity=payload.quantity,
        purchase_price=to_money(payload.purchase_price),
        selling_price=to_money(payload.selling_price),
        supplier_id=payload.supplier_id,
    )
    db.add(medicine)
    if payload.quantity:
        add_stock_movement(
            db,
            medicine_id=medicine.id,
            qty_delta=payload.quantity,
            reason="initial",
            actor_user_id=admin.id,
        )
    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="medicine.create",
        target_id=medicine.id,
        details={"name": medicine.name, "quantity": payload.quantity},
    )
    db.commit()
    db.refresh(medicine)
    return MedicineOut.model_validate(medicine)


@router.put(
    "/{medicine_id}",
    response_model=MedicineOut,
    summary="Update medicine",
    description="Updates catalog fields. Quantity changes go through `POST /medicines/{id}/stock`.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def update_medicine(
    medicine_id: str,
    payload: MedicineUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    medicine = _get_medicine(db, medicine_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("supplier_id"):
        get_supplier_or_404(db, changes["supplier_id"])
    if "name" in changes and changes["name"] is None:
        changes.pop("name")
    for price_field in ("purchase_price", "selling_price"):
        if price_field in changes:
            if changes[price_field] is None:
                changes.pop(price_field)
            else:
                changes[price_field] = to_money(changes[price_field])

    for field, value in changes.items():
        setattr(medicine, field, value)

    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="medicine.update",
        target_id=medicine.id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(medicine)
    return MedicineOut.model_validate(medicine)


@router.post(
    "/{medicine_id}/stock",
    response_model=MedicineOut,
    summary="Adjust stock",
    description=(
        "Restock (positive delta) or correct (positive or negative delta) a medicine's quantity. "
        "A correction that would take stock below zero is rejected with `insufficient_stock`."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500),
)
def adjust_medicine_stock(
    medicine_id: str,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    medicine = _get_medicine(db, medicine_id)
    adjust_stock(
        db,
        medicine=medicine,
        qty_delta=payload.qty_delta,
        reason=payload.reason,
        note=payload.note,
        actor_user_id=admin.id,
    )
    log_audit_event(
        db,
        actor_user_id=admin.id,
        action=f"medicine.stock.{payload.reason}",
        target_id=medicine.id,
        details={"qty_delta": payload.qty_delta},
    )
    db.commit()
    db.refresh(medicine)
    return MedicineOut.model_validate(medicine)


@router.get(
    "/{medicine_id}/movements",
    response_model=list[StockMovementOut],
    summary="Stock movement history",
    responses=error_responses(401, 404, 422, 500),
)
def list_stock_movements(
    medicine_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    _get_medicine(db, medicine_id)
    rows = db.execute(
        select(StockMovement)
        .where(StockMovement.medicine_id == medicine_id)
        .order_by(StockMovement.created_at.desc())
        .limit(limit)
    ).scalars().all()
    return [StockMovementOut.model_validate(row) for row in rows]


@router.delete(
    "/{medicine_id}",
    response_model=MessageOut,
    summary="Delete medicine",
    description="Historical sales keep their line snapshots after the medicine is removed.",
    responses=error_responses(401, 403, 404, 500),
)
def delete_medicine(
    medicine_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    medicine = _get_medicine(db, medicine_id)
    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="medicine.delete",
        target_id=medicine.id,
        details={"name": medicine.name, "quantity": medicine.quantity},
    )
    db.delete(medicine)
    db.commit()
    return MessageOut(message="Medicine deleted")
