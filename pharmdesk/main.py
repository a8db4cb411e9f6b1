from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pharmdesk.core.exceptions import SaleError
from pharmdesk.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    sale_error_handler,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmdesk.core.config import settings
from pharmdesk.db.session import engine
from pharmdesk.routers import auth, medicines, reports, sales, suppliers, users

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Backend API for PharmDesk pharmacy inventory and point of sale.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` (the first account becomes admin) or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Test protected endpoints (`/medicines`, `/suppliers`, `/sales`, `/reports`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "Registration, login and caller identity."},
        {"name": "users", "description": "Staff account management (admin only)."},
        {"name": "suppliers", "description": "Supplier directory."},
        {"name": "medicines", "description": "Medicine catalog, stock adjustments and movement history."},
        {"name": "sales", "description": "Sale capture and sales history."},
        {"name": "reports", "description": "Dashboard summaries, low stock and expiry reports."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(SaleError, sale_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

LOCAL_DEV_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _cors_options() -> dict:
    origins = settings.cors_origins or ["http://localhost:5173"]
    wildcard = "*" in origins
    origin_regex = settings.cors_origin_regex
    if origin_regex is None and settings.is_local:
        # The POS frontend dev server picks a free localhost port.
        origin_regex = LOCAL_DEV_ORIGIN_REGEX
    return {
        "allow_origins": ["*"] if wildcard else origins,
        "allow_origin_regex": origin_regex,
        "allow_credentials": not wildcard,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }


app.add_middleware(CORSMiddleware, **_cors_options())

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(suppliers.router)
app.include_router(medicines.router)
app.include_router(sales.router)
app.include_router(reports.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return JSONResponse(status_code=503, content={"ok": False, "database": "unreachable"})
    return {"ok": True, "database": "ok"}
