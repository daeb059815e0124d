# app/db.py

import logging
from contextlib import contextmanager

from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from app.config import settings

logger = logging.getLogger(__name__)


def _install_sqlite_hooks(engine):
    """Let SQLAlchemy emit BEGIN itself so reads join the transaction.

    pysqlite otherwise defers BEGIN until the first write, which would leave
    the capacity re-check outside the transaction it is meant to guard.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get("write_intent"):
            # takes the reserved lock before the first read
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def make_engine(url: str, echo: bool = False, **kwargs):
    is_sqlite = url.startswith("sqlite")
    connect_args = kwargs.pop("connect_args", {})
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)  # required for SQLite + FastAPI
    engine = create_engine(url, echo=echo, connect_args=connect_args, **kwargs)
    if is_sqlite:
        _install_sqlite_hooks(engine)
    return engine


# Engine = connection to the database
engine = make_engine(settings.store.database_url, echo=settings.store.sql_echo)


def init_db(target=None):
    SQLModel.metadata.create_all(target or engine)
    logger.info("Database schema ready")


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session


def _write_options(session: Session) -> dict:
    options = {"write_intent": True}
    if session.get_bind().dialect.name != "sqlite":
        options["isolation_level"] = "SERIALIZABLE"
    return options


@contextmanager
def atomic(session: Session):
    """Run a block as one write transaction on ``session``.

    Any implicit read transaction already open on the session is ended first
    so the new one starts with write intent (BEGIN IMMEDIATE on SQLite,
    SERIALIZABLE elsewhere). Commits on success, rolls back on any error.
    """
    if session.in_transaction():
        session.commit()
    session.connection(execution_options=_write_options(session))
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
