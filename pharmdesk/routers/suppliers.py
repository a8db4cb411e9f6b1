import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.deps import get_db
from pharmdesk.core.permissions import require_admin
from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.medicine import Medicine
from pharmdesk.models.supplier import Supplier
from pharmdesk.models.user import User
from pharmdesk.schemas.common import MessageOut
from pharmdesk.schemas.supplier import SupplierCreate, SupplierOut, SupplierUpdate
from pharmdesk.services.audit_service import log_audit_event

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


def get_supplier_or_404(db: Session, supplier_id: str) -> Supplier:
    supplier = db.execute(select(Supplier).where(Supplier.id == supplier_id)).scalar_one_or_none()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.get(
    "",
    response_model=list[SupplierOut],
    summary="List suppliers",
    responses=error_responses(401, 500),
)
def list_suppliers(
    search: str | None = Query(default=None, description="Case-insensitive name filter"),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    stmt = select(Supplier)
    if search and search.strip():
        stmt = stmt.where(func.lower(Supplier.name).contains(search.strip().lower()))
    rows = db.execute(stmt.order_by(Supplier.name.asc())).scalars().all()
    return [SupplierOut.model_validate(row) for row in rows]


@router.get(
    "/{supplier_id}",
    response_model=SupplierOut,
    summary="Get supplier",
    responses=error_responses(401, 404, 500),
)
def get_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return SupplierOut.model_validate(get_supplier_or_404(db, supplier_id))


@router.post(
    "",
    response_model=SupplierOut,
    status_code=201,
    summary="Create supplier",
    responses=error_responses(401, 403, 422, 500),
)
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    supplier = Supplier(id=str(uuid.uuid4()), **payload.model_dump())
    db.add(supplier)
    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="supplier.create",
        target_id=supplier.id,
        details={"name": supplier.name},
    )
    db.commit()
    db.refresh(supplier)
    return SupplierOut.model_validate(supplier)


@router.put(
    "/{supplier_id}",
    response_model=SupplierOut,
    summary="Update supplier",
    responses=error_responses(401, 403, 404, 422, 500),
)
def update_supplier(
    supplier_id: str,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    supplier = get_supplier_or_404(db, supplier_id)
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is None:
        changes.pop("name")
    for field, value in changes.items():
        setattr(supplier, field, value)

    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="supplier.update",
        target_id=supplier.id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(supplier)
    return SupplierOut.model_validate(supplier)


@router.delete(
    "/{supplier_id}",
    response_model=MessageOut,
    summary="Delete supplier",
    description="Rejected with 409 while any medicine still references the supplier.",
    responses=error_responses(401, 403, 404, 409, 500),
)
def delete_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    supplier = get_supplier_or_404(db, supplier_id)
    in_use = db.execute(
        select(func.count(Medicine.id)).where(Medicine.supplier_id == supplier.id)
    ).scalar_one()
    if in_use:
        raise HTTPException(
            status_code=409,
            detail=f"Supplier is referenced by {in_use} medicine(s)",
        )

    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="supplier.delete",
        target_id=supplier.id,
        details={"name": supplier.name},
    )
    db.delete(supplier)
    db.commit()
    return MessageOut(message="Supplier deleted")
