"""
Database engine and session management.
"""
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from dayflow.config import DATABASE_URL

Base = declarative_base()


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on pysqlite.
    Ledger upserts rely on nested transactions.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> Engine:
    """Create an engine for url, with the SQLite adjustments when needed"""
    if url.startswith("sqlite"):
        new_engine = create_engine(url, connect_args={"check_same_thread": False})
        enable_sqlite_savepoints(new_engine)
        return new_engine
    return create_engine(url)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = None) -> None:
    """Create all tables (no migrations)"""
    from dayflow import models  # noqa: F401  register models with Base
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """Yield a session and always close it"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
