from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmdesk.core.money import ZERO_MONEY, to_money
from pharmdesk.models.medicine import Medicine
from pharmdesk.models.sales import Sale


def utc_day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def created_within(stmt, start_date: date | None, end_date: date | None):
    """
    Restrict a sales query to inclusive UTC calendar days.

    Bounds are compared against the raw `created_at` column as a half-open
    range, so the database session time zone never shifts a sale into another
    day and `ix_sales_created_at` stays usable.
    """
    if start_date:
        stmt = stmt.where(Sale.created_at >= utc_day_start(start_date))
    if end_date:
        stmt = stmt.where(Sale.created_at < utc_day_start(end_date + timedelta(days=1)))
    return stmt


def _utc_date(value: datetime) -> date:
    # SQLite returns naive values, stored as UTC.
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def get_sales_total(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[float, int]:
    total_stmt = created_within(
        select(func.coalesce(func.sum(Sale.total_amount), 0)), start_date, end_date
    )
    count_stmt = created_within(select(func.count(Sale.id)), start_date, end_date)

    sales_total = db.execute(total_stmt).scalar_one() or ZERO_MONEY
    sales_count = db.execute(count_stmt).scalar_one()
    return float(to_money(sales_total)), int(sales_count)


def get_sales_report(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    total, count = get_sales_total(db, start_date, end_date)

    rows = db.execute(
        created_within(select(Sale.created_at, Sale.total_amount), start_date, end_date)
    ).all()

    buckets: dict[date, list] = {}
    for created_at, amount in rows:
        bucket = buckets.setdefault(_utc_date(created_at), [0, ZERO_MONEY])
        bucket[0] += 1
        bucket[1] += to_money(amount)

    days = [
        {"day": day, "count": day_count, "total": float(to_money(day_total))}
        for day, (day_count, day_total) in sorted(buckets.items())
    ]

    return {
        "start_date": start_date,
        "end_date": end_date,
        "sales_count": count,
        "total_amount": total,
        "average_sale_value": float(to_money(total / count)) if count else 0.0,
        "days": days,
    }


def list_low_stock(db: Session, threshold: int) -> list[Medicine]:
    return list(
        db.execute(
            select(Medicine)
            .where(Medicine.quantity <= threshold)
            .order_by(Medicine.quantity.asc(), Medicine.name.asc())
        ).scalars()
    )


def list_expiring(db: Session, as_of: date) -> list[Medicine]:
    return list(
        db.execute(
            select(Medicine)
            .where(Medicine.expiry_date.is_not(None), Medicine.expiry_date <= as_of)
            .order_by(Medicine.expiry_date.asc(), Medicine.name.asc())
        ).scalars()
    )


def get_inventory_summary(db: Session, *, low_stock_threshold: int, today: date) -> dict:
    medicine_count, units, stock_value = db.execute(
        select(
            func.count(Medicine.id),
            func.coalesce(func.sum(Medicine.quantity), 0),
            func.coalesce(func.sum(Medicine.quantity * Medicine.purchase_price), 0),
        )
    ).one()
    low_stock_count = db.execute(
        select(func.count(Medicine.id)).where(Medicine.quantity <= low_stock_threshold)
    ).scalar_one()
    expired_count = db.execute(
        select(func.count(Medicine.id)).where(
            Medicine.expiry_date.is_not(None),
            Medicine.expiry_date <= today,
        )
    ).scalar_one()
    today_total, today_count = get_sales_total(db, today, today)

    return {
        "medicine_count": int(medicine_count),
        "units_in_stock": int(units),
        "stock_value": float(to_money(stock_value)),
        "low_stock_count": int(low_stock_count),
        "expired_count": int(expired_count),
        "sales_today_total": today_total,
        "sales_today_count": today_count,
    }


def month_bounds(today: date) -> tuple[date, date]:
    start = today.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)
