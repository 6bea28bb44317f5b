"""
Database engine and session factory for the signlink application.
"""

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from signlink.core.logging_config import configure_logging
from signlink.db.models import Base

logger = configure_logging(name="signlink.db", logfile="signlink.log")


def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself (see _begin_immediate).
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def _begin_immediate(conn):
    # Take the write lock up front so a read-modify-write on a sign request
    # cannot interleave with another writer.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str):
    """Create the SQLAlchemy engine, preparing the SQLite directory when needed."""
    url = make_url(database_url)
    connect_args = {}

    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            directory = os.path.dirname(os.path.abspath(url.database))
            os.makedirs(directory, exist_ok=True)

    logger.debug("Using database: %s", url.render_as_string(hide_password=True))
    engine = create_engine(url, connect_args=connect_args)

    if url.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _apply_sqlite_pragmas)
        event.listen(engine, "begin", _begin_immediate)

    return engine


def create_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine) -> None:
    """Create tables and indexes if they do not exist yet."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
