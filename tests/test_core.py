from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from jose import jwt
from pydantic import ValidationError

from pharmdesk.core.config import Settings, settings
from pharmdesk.core.money import line_total, sum_money, to_money
from pharmdesk.core.rate_limit import LoginRateLimiter
from pharmdesk.core.security import (
    TokenValidationError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from pharmdesk.services.audit_service import log_audit_event


def test_password_hashing():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)


def test_access_token_round_trip_and_rejections():
    claims = decode_access_token(create_access_token("user-1", role="admin"))
    assert claims.user_id == "user-1"
    assert claims.role == "admin"
    assert claims.expires_at > datetime.now(timezone.utc)

    foreign = jwt.encode(
        {"sub": "user-1", "type": "reset", "jti": "x", "exp": 9_999_999_999},
        settings.secret_key,
        algorithm="HS256",
    )
    with pytest.raises(TokenValidationError):
        decode_access_token(foreign)

    expired = create_access_token("user-1", expires_delta=timedelta(minutes=-5))
    with pytest.raises(TokenValidationError):
        decode_access_token(expired)

    with pytest.raises(TokenValidationError):
        decode_access_token("not-a-token")


def test_settings_parse_cors_origins_and_guard_production():
    parsed = Settings(
        secret_key="x" * 40,
        database_url="sqlite://",
        cors_origins="http://a.example, http://b.example",
    )
    assert parsed.cors_origins == ["http://a.example", "http://b.example"]

    with pytest.raises(ValidationError):
        Settings(env="production", secret_key="change_me", database_url="sqlite://")

    with pytest.raises(ValidationError):
        Settings(env="prod", secret_key="y" * 40, database_url="sqlite://", cors_origins="*")


def test_login_rate_limiter_locks_and_clears():
    limiter = LoginRateLimiter(max_attempts=2, window_seconds=60, lock_seconds=60)
    limiter.register_failure("key")
    assert limiter.check("key") == 0
    limiter.register_failure("key")
    assert limiter.check("key") > 0

    limiter.register_success("key")
    assert limiter.check("key") == 0


def test_to_money_rounds_half_up():
    assert str(to_money("2.345")) == "2.35"
    assert str(to_money(3)) == "3.00"
    assert str(to_money(0.1 + 0.2)) == "0.30"


def test_settings_route_postgres_urls_to_psycopg():
    parsed = Settings(secret_key="x" * 40, database_url="postgres://u:p@db.example/pharmdesk")
    assert parsed.database_url == "postgresql+psycopg://u:p@db.example/pharmdesk"
    assert not parsed.is_sqlite

    local = Settings(secret_key="x" * 40, database_url=" sqlite:///./pharmdesk.db ")
    assert local.database_url == "sqlite:///./pharmdesk.db"
    assert local.is_sqlite


def test_audit_action_must_name_target(db_session):
    event = log_audit_event(db_session, actor_user_id="user-1", action="medicine.stock.restock")
    assert event.target_type == "medicine"

    with pytest.raises(ValueError):
        log_audit_event(db_session, actor_user_id="user-1", action="restock")


def test_line_total_and_sum():
    assert line_total(Decimal("12.99"), 3) == Decimal("38.97")
    assert sum_money([Decimal("38.97"), Decimal("10.00")]) == Decimal("48.97")
    assert sum_money([]) == Decimal("0.00")


def test_health_endpoints(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["docs"] == "/docs"
    ready = client.get("/ready")
    assert ready.status_code == 200, ready.text
    assert ready.json()["ok"] is True
    assert ready.headers["X-Request-ID"]
