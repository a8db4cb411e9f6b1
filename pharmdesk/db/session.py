from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pharmdesk.core.config import settings


def _engine_kwargs() -> dict[str, object]:
    kwargs: dict[str, object] = {"pool_pre_ping": True}
    if settings.is_sqlite:
        # Request handlers run in a threadpool; concurrent writers queue on the file lock.
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
        return kwargs

    kwargs.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
    )
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
