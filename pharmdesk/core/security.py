from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from pharmdesk.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


class TokenValidationError(ValueError):
    pass


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    role: str | None
    jti: str
    expires_at: datetime


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes.
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: str,
    *,
    role: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "type": ACCESS_TOKEN_TYPE,
        "jti": str(uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> AccessClaims:
    """
    Verify signature, expiry and token type. The embedded role is informational
    only: permission checks always use the role stored on the user row.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise TokenValidationError("Invalid token") from exc

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise TokenValidationError("Invalid token type")
    if not payload.get("sub"):
        raise TokenValidationError("Invalid token subject")
    if not payload.get("jti") or not payload.get("exp"):
        raise TokenValidationError("Invalid token id")

    return AccessClaims(
        user_id=str(payload["sub"]),
        role=payload.get("role"),
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
    )
