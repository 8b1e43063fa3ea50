from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from hris.settings import get_settings


def _normalize_database_url(raw_url: str) -> str:
    # Hosted providers hand out postgres:// URLs; SQLAlchemy needs the psycopg driver name.
    if raw_url.startswith("postgres://"):
        return "postgresql+psycopg://" + raw_url[len("postgres://"):]
    if raw_url.startswith("postgresql://"):
        return "postgresql+psycopg://" + raw_url[len("postgresql://"):]
    return raw_url


def is_unique_violation(exc: IntegrityError, constraint_name: str) -> bool:
    """True when ``exc`` was raised by the named unique constraint and not by a foreign key or check."""
    diag = getattr(exc.orig, "diag", None)
    reported = getattr(diag, "constraint_name", None)
    if reported:
        return reported == constraint_name
    return constraint_name in str(exc.orig)


class Base(DeclarativeBase):
    pass


engine = create_engine(
    _normalize_database_url(get_settings().database_url),
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
