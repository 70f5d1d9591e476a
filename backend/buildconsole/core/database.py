"""SQLModel database engine and session management."""
from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from buildconsole.core.config import settings

# Import models so SQLModel.metadata knows about all tables
import buildconsole.models.document  # noqa: F401
import buildconsole.models.audit  # noqa: F401


def build_engine(url: str):
    """SQLite engine shared by request handlers, the write journal and the watcher."""
    engine = create_engine(url, connect_args={"check_same_thread": False}, echo=False)

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind=None) -> None:
    """Create all tables defined in SQLModel models."""
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """FastAPI dependency: yields a SQLModel session."""
    with Session(engine) as session:
        yield session
