from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmdesk.core.api_docs import error_responses
from pharmdesk.core.config import settings
from pharmdesk.core.deps import get_db
from pharmdesk.core.rate_limit import LoginRateLimiter
from pharmdesk.core.security import create_access_token
from pharmdesk.core.security_current import get_current_user
from pharmdesk.models.user import User
from pharmdesk.schemas.auth import LoginIn, RegisterIn, TokenOut, UserOut
from pharmdesk.services import user_service

router = APIRouter(prefix="/auth", tags=["auth"])

_TOKEN_EXAMPLE = {
    "access_token": "eyJhbGciOiJIUzI1NiIs...",
    "token_type": "bearer",
    "user": {
        "id": "user-id",
        "name": "Jane Pharmacist",
        "email": "jane@example.com",
        "role": "staff",
        "is_active": True,
        "created_at": "2026-10-19T09:00:00Z",
        "updated_at": "2026-10-19T09:00:00Z",
    },
}
TOKEN_RESPONSE = {
    200: {
        "description": "Access token and caller profile",
        "content": {"application/json": {"example": _TOKEN_EXAMPLE}},
    }
}

login_rate_limiter = LoginRateLimiter(
    max_attempts=settings.auth_rate_limit_max_attempts,
    window_seconds=settings.auth_rate_limit_window_seconds,
    lock_seconds=settings.auth_rate_limit_lock_seconds,
)


def _client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For when running behind a reverse proxy.
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client and request.client.host else "unknown"


def _issue_token(user: User) -> TokenOut:
    return TokenOut(
        access_token=create_access_token(user.id, role=user.role),
        user=UserOut.model_validate(user),
    )


def _login(db: Session, request: Request, email: str, password: str) -> TokenOut:
    key = LoginRateLimiter.key_for(email, _client_ip(request))
    retry_after = login_rate_limiter.check(key)
    if retry_after:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed attempts. Try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    user = user_service.authenticate(db, email, password)
    if user is None:
        login_rate_limiter.register_failure(key)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is inactive")

    login_rate_limiter.register_success(key)
    return _issue_token(user)


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register a user",
    description=(
        "Creates a user account and returns an access token. The first account becomes "
        "an admin; later self-registrations are staff. Admins create other admins via `/users`."
    ),
    responses={**TOKEN_RESPONSE, **error_responses(400, 422, 500)},
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    if user_service.email_taken(db, payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        user = user_service.register_user(
            db, name=payload.name, email=payload.email, password=payload.password
        )
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Email already registered")
    return _issue_token(user)


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="Authenticate with email and password.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    return _login(db, request, payload.email, payload.password)


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description="Form login for the Swagger **Authorize** dialog. Put your email in `username`.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 429, 500)},
)
def login_for_swagger(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    return _login(db, request, form_data.username, form_data.password)


@router.get(
    "/me",
    response_model=UserOut,
    summary="Current user profile",
    responses=error_responses(401, 500),
)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
