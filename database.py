from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings, get_settings


def _sqlite_pragmas(read_only: bool):
    def on_connect(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        if read_only:
            cursor.execute("PRAGMA query_only=ON;")
        cursor.close()

    return on_connect


def build_engine(settings: Settings) -> Engine:
    if not settings.is_sqlite:
        return create_engine(settings.database_url, pool_pre_ping=True)
    ledger_engine = create_engine(
        settings.database_url, connect_args={"check_same_thread": False}
    )
    event.listen(ledger_engine, "connect", _sqlite_pragmas(settings.read_only))
    return ledger_engine


engine = build_engine(get_settings())
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def read_session() -> Iterator[Session]:
    """Session for report reads. Nothing it touches is ever committed."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
