"""
SQLAlchemy engine bound to a strategy's private SQLite connection.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .sqlite import SqliteConnection


def create_sqlite_engine(db: SqliteConnection) -> Engine:
    """
    Create an engine whose only connection is ``db``'s own.

    The pool never opens a second connection, so an in-memory database
    stays the one ``db`` created and seeded. The engine must only be used
    inside ``db.run`` so every statement executes on the connection's
    worker thread.

    Example:
        db = SqliteConnection(path, size, row_factory=None)
        engine = create_sqlite_engine(db)
        count = await db.run(lambda: engine.connect().execute(stmt).scalar())
    """
    return create_engine(
        "sqlite://",
        creator=db.dbapi_connection,
        poolclass=StaticPool,
    )
