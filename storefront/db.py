import logging
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[Engine] = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)


def init_engine(database_url: str) -> Engine:
    """Open the process-wide storage handle and create missing tables.

    Raises whatever the driver raises when the store is unreachable; the
    caller treats that as fatal.
    """
    global engine
    # For SQLite, enable check_same_thread=False for multithreading in FastAPI
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args, future=True)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

    # models must be imported so their tables are registered on Base
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    SessionLocal.configure(bind=engine)
    logger.info("Connected to database: %s", engine.url.render_as_string(hide_password=True))
    return engine


def dispose_engine():
    global engine
    if engine is not None:
        engine.dispose()
        logger.info("Database connection closed")
    engine = None


# Dependency to get DB session per request
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
