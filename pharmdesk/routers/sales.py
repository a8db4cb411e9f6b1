from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.deps import get_db
from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.sales import Sale
from pharmdesk.models.user import User
from pharmdesk.schemas.sales import SaleCreate, SaleLineOut, SaleOut, SalesTotalOut
from pharmdesk.services.report_service import created_within, get_sales_total, month_bounds
from pharmdesk.services.sale_service import BasketLine, SaleProcessor

router = APIRouter(prefix="/sales", tags=["sales"])


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _sale_out(sale: Sale) -> SaleOut:
    return SaleOut(
        id=sale.id,
        lines=[
            SaleLineOut(
                medicine_id=item.medicine_id,
                medicine_name=item.medicine_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
            for item in sale.items
        ],
        total_amount=sale.total_amount,
        customer_name=sale.customer_name,
        created_by=sale.created_by,
        created_at=sale.created_at,
    )


@router.post(
    "",
    response_model=SaleOut,
    status_code=201,
    summary="Create sale",
    description=(
        "Takes stock for every basket line and records the sale in one transaction. "
        "Repeated medicines are merged into one line. Prices are captured from the "
        "current selling price. On any error no stock is changed."
    ),
    responses=error_responses(400, 401, 422, 500, 503),
)
def create_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(get_current_user),
):
    sale = SaleProcessor(db).process_sale(
        actor.id,
        [BasketLine(medicine_id=line.medicine_id, quantity=line.quantity) for line in payload.lines],
        customer_name=payload.customer_name,
    )
    return _sale_out(sale)


@router.get(
    "",
    response_model=list[SaleOut],
    summary="List sales",
    description="Newest first. Dates are inclusive calendar days (UTC).",
    responses=error_responses(400, 401, 422, 500),
)
def list_sales(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    stmt = created_within(select(Sale), start_date, end_date)

    rows = db.execute(stmt.order_by(Sale.created_at.desc(), Sale.id.desc())).scalars().all()
    return [_sale_out(row) for row in rows]


@router.get(
    "/daily",
    response_model=SalesTotalOut,
    summary="Today's sales total",
    responses=error_responses(401, 500),
)
def daily_sales(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    today = _utc_today()
    total, _ = get_sales_total(db, today, today)
    return SalesTotalOut(total=total, start_date=today, end_date=today)


@router.get(
    "/monthly",
    response_model=SalesTotalOut,
    summary="This month's sales total",
    responses=error_responses(401, 500),
)
def monthly_sales(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    start, end = month_bounds(_utc_today())
    total, _ = get_sales_total(db, start, end)
    return SalesTotalOut(total=total, start_date=start, end_date=end)


@router.get(
    "/{sale_id}",
    response_model=SaleOut,
    summary="Get sale",
    responses=error_responses(401, 404, 500),
)
def get_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    sale = db.execute(select(Sale).where(Sale.id == sale_id)).scalar_one_or_none()
    if not sale:
        raise HTTPException(status_code=404, detail="Sale not found")
    return _sale_out(sale)
