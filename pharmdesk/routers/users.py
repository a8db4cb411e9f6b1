from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.deps import get_db
from pharmdesk.core.permissions import require_admin
from pharmdesk.core.security import hash_password
from pharmdesk.models.user import User
from pharmdesk.schemas.auth import UserOut
from pharmdesk.schemas.common import MessageOut
from pharmdesk.schemas.user import UserCreate, UserUpdate
from pharmdesk.services import user_service
from pharmdesk.services.audit_service import log_audit_event

router = APIRouter(prefix="/users", tags=["users"])


def _get_user(db: Session, user_id: str) -> User:
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "",
    response_model=list[UserOut],
    summary="List users",
    responses=error_responses(401, 403, 500),
)
def list_users(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    rows = db.execute(select(User).order_by(User.created_at.asc(), User.email.asc())).scalars().all()
    return [UserOut.model_validate(row) for row in rows]


@router.get(
    "/{user_id}",
    response_model=UserOut,
    summary="Get user",
    responses=error_responses(401, 403, 404, 500),
)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return UserOut.model_validate(_get_user(db, user_id))


@router.post(
    "",
    response_model=UserOut,
    status_code=201,
    summary="Create user",
    responses=error_responses(401, 403, 409, 422, 500),
)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_service.email_taken(db, payload.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = user_service.build_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="user.create",
        target_id=user.id,
        details={"role": payload.role},
    )
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@router.put(
    "/{user_id}",
    response_model=UserOut,
    summary="Update user",
    responses=error_responses(400, 401, 403, 404, 409, 422, 500),
)
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    if user.id == admin.id:
        if (changes.get("role") or user.role) != "admin":
            raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
        if changes.get("is_active") is False:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    if "email" in changes and changes["email"] is not None:
        normalized_email = user_service.normalize_email(str(changes["email"]))
        if user_service.email_taken(db, normalized_email, exclude_user_id=user.id):
            raise HTTPException(status_code=409, detail="Email already registered")
        user.email = normalized_email
    if changes.get("name") is not None:
        user.name = changes["name"]
    if changes.get("role") is not None:
        user.role = changes["role"]
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]
    if changes.get("password") is not None:
        user.hashed_password = hash_password(changes["password"])

    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="user.update",
        target_id=user.id,
        details={"fields": sorted(key for key in changes if key != "password")},
    )
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@router.delete(
    "/{user_id}",
    response_model=MessageOut,
    summary="Delete user",
    description="Users with recorded sales, stock movements or audit history are deactivated instead of removed.",
    responses=error_responses(400, 401, 403, 404, 500),
)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    has_history = user_service.has_history(db, user.id)

    log_audit_event(
        db,
        actor_user_id=admin.id,
        action="user.deactivate" if has_history else "user.delete",
        target_id=user.id,
    )
    if has_history:
        user.is_active = False
        db.commit()
        return MessageOut(message="User deactivated")

    db.delete(user)
    db.commit()
    return MessageOut(message="User deleted")
