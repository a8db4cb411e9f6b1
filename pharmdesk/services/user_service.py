from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmdesk.core.security import hash_password, verify_password
from pharmdesk.models.audit_log import AuditLog
from pharmdesk.models.inventory import StockMovement
from pharmdesk.models.sales import Sale
from pharmdesk.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.email) == normalize_email(email))
    ).scalar_one_or_none()


def email_taken(db: Session, email: str, *, exclude_user_id: str | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == normalize_email(email))
    if exclude_user_id:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.execute(stmt.limit(1)).scalar_one_or_none() is not None


def has_any_user(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).scalar_one_or_none() is not None


def build_user(*, name: str, email: str, password: str, role: str) -> User:
    return User(
        name=name,
        email=normalize_email(email),
        hashed_password=hash_password(password),
        role=role,
        is_active=True,
    )


def register_user(db: Session, *, name: str, email: str, password: str) -> User:
    """
    Insert a self-registered account and commit it.

    The first account becomes admin, every later one staff. On Postgres the
    users table is locked for the rest of the transaction so two concurrent
    first registrations cannot both see an empty table. A duplicate email that
    slips past the pre-check surfaces as ``IntegrityError`` after rollback.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("LOCK TABLE users IN SHARE ROW EXCLUSIVE MODE"))

    user = build_user(
        name=name,
        email=email,
        password=password,
        role="staff" if has_any_user(db) else "admin",
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """The matching user when the password checks out, otherwise None."""
    user = find_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


def has_history(db: Session, user_id: str) -> bool:
    """True once the user has sold, moved stock or left an audit trail."""
    for stmt in (
        select(Sale.id).where(Sale.created_by == user_id),
        select(StockMovement.id).where(StockMovement.actor_user_id == user_id),
        select(AuditLog.id).where(AuditLog.actor_user_id == user_id),
    ):
        if db.execute(stmt.limit(1)).scalar_one_or_none() is not None:
            return True
    return False
