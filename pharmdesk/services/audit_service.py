import uuid
from typing import Any

from sqlalchemy.orm import Session

from pharmdesk.models.audit_log import AuditLog


def log_audit_event(
    db: Session,
    *,
    actor_user_id: str,
    action: str,
    target_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Stage an audit row in the caller's transaction; it commits or rolls back
    with the change it describes. ``action`` reads ``<target_type>.<verb>``
    (``sale.create``, ``medicine.stock.restock``), and the target type is
    taken from its first segment.
    """
    target_type, _, verb = action.partition(".")
    if not target_type or not verb:
        raise ValueError(f"Audit action must look like '<target>.<verb>', got {action!r}")

    event = AuditLog(
        id=str(uuid.uuid4()),
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=details,
    )
    db.add(event)
    return event
