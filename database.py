from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config import get_settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def build_engine(url: Optional[str] = None, **kwargs: Any) -> Engine:
    """Engine for ``url``, defaulting to the configured account store."""
    url = url or get_settings().database_url
    if _is_sqlite(url):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    eng = create_engine(url, **kwargs)
    if _is_sqlite(url):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db(bind: Optional[Engine] = None) -> None:
    """Create missing store tables; alembic owns real migrations."""
    import models  # noqa: F401

    Base.metadata.create_all(bind or engine)
