from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from pharmdesk.core.deps import get_db
from pharmdesk.core.security import TokenValidationError, decode_access_token
from pharmdesk.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Resolve the bearer token to an active user; every failure is a 401."""
    try:
        claims = decode_access_token(token)
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc), headers=_UNAUTHORIZED_HEADERS) from exc

    user = db.get(User, claims.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found", headers=_UNAUTHORIZED_HEADERS)
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is inactive", headers=_UNAUTHORIZED_HEADERS)
    return user
