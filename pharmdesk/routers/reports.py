from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.config import settings
from pharmdesk.core.deps import get_db
from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.user import User
from pharmdesk.schemas.reports import (
    InventorySummaryOut,
    SalesReportOut,
    StockAlertListOut,
    StockAlertOut,
)
from pharmdesk.services.report_service import (
    get_inventory_summary,
    get_sales_report,
    list_expiring,
    list_low_stock,
)

router = APIRouter(prefix="/reports", tags=["reports"])


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


@router.get(
    "/summary",
    response_model=InventorySummaryOut,
    summary="Dashboard summary",
    responses=error_responses(401, 500),
)
def summary(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return InventorySummaryOut(
        **get_inventory_summary(
            db,
            low_stock_threshold=settings.low_stock_threshold,
            today=_utc_today(),
        )
    )


@router.get(
    "/sales",
    response_model=SalesReportOut,
    summary="Sales report",
    responses=error_responses(400, 401, 422, 500),
)
def sales_report(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    return SalesReportOut(**get_sales_report(db, start_date, end_date))


@router.get(
    "/low-stock",
    response_model=StockAlertListOut,
    summary="Low stock medicines",
    responses=error_responses(401, 422, 500),
)
def low_stock(
    threshold: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    effective = settings.low_stock_threshold if threshold is None else threshold
    rows = list_low_stock(db, effective)
    return StockAlertListOut(
        threshold=effective,
        items=[StockAlertOut.model_validate(row, from_attributes=True) for row in rows],
    )


@router.get(
    "/expired",
    response_model=StockAlertListOut,
    summary="Expired or soon-to-expire medicines",
    responses=error_responses(401, 422, 500),
)
def expired(
    within_days: int = Query(default=0, ge=0, le=3650),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    as_of = _utc_today() + timedelta(days=within_days)
    rows = list_expiring(db, as_of)
    return StockAlertListOut(
        as_of=as_of,
        items=[StockAlertOut.model_validate(row, from_attributes=True) for row in rows],
    )
