# addrbal/db.py
# Sync SQLAlchemy engine for the payments store
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


def make_engine(database_url: str) -> Engine:
    """Create the engine; sqlite connections wait up to 5s on a locked file."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["timeout"] = 5
    return create_engine(database_url, connect_args=connect_args)


@contextmanager
def get_connection(engine: Engine):
    """Yield a connection that is closed on every exit path."""
    conn = engine.connect()
    try:
        yield conn
    finally:
        conn.close()
