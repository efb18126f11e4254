"""Database initialization for scanledger."""

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from scanledger.db.models import Base


def database_url(db: Path | str) -> str:
    """Return a SQLAlchemy URL; plain paths become SQLite URLs."""
    if isinstance(db, str) and "://" in db:
        return db
    return f"sqlite:///{db}"


def _enable_sqlite_wal(dbapi_connection, connection_record) -> None:
    # WAL lets readers run while another connection writes a result.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db: Path | str) -> Engine:
    """Create an engine; SQLite files get their parent directory created."""
    url = database_url(db)
    if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
        Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_wal)
    return engine


def init_db(db: Path | str) -> Engine:
    """Create all tables and return the engine."""
    engine = create_db_engine(db)
    Base.metadata.create_all(engine)
    return engine
