import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from receiptdesk.config import settings
from receiptdesk.errors import PersistenceError

logger = logging.getLogger(__name__)


def build_engine(url: str):
    if url.startswith("sqlite"):
        # single shared connection so in-memory databases survive across sessions
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,      # checks dead connections
        pool_recycle=1800        # refresh every 30 min
    )


engine = build_engine(settings.database_url)


def create_db_and_tables():
    from receiptdesk import models  # noqa: F401  registers every table
    SQLModel.metadata.create_all(engine)


def dispose_engine():
    """Drain the connection pool; called on application shutdown."""
    engine.dispose()


def get_session():
    with Session(engine) as session:
        yield session


def commit_or_raise(session: Session, context: str):
    """Commit, turning store failures into PersistenceError."""
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Store rejected {context}: {e}")
        raise PersistenceError(f"Failed to {context}", detail=str(e)) from e
