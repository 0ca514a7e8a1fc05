"""Engine, session scope and keyed upserts for the progression store."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import config
from ..errors import StoreError
from .models import Base

logger = logging.getLogger(__name__)

# dialects with INSERT ... ON CONFLICT DO UPDATE
ON_CONFLICT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


class Database:
    """Connection manager for the progression tables."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or config.DATABASE_URL

        if self.database_url.startswith("sqlite"):
            # one shared connection per Database; required for in-memory databases
            self.engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(self.database_url, pool_pre_ping=True)

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_tables(self):
        """Create any missing progression tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.debug(f"Tables ready on {self.dialect} database")

    @contextmanager
    def session(self, action: str) -> Generator[Session, None, None]:
        """Unit of work committed on exit.

        Any SQLAlchemy failure rolls back and is raised as ``StoreError``
        naming ``action``; other exceptions propagate unchanged.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error while trying to {action}: {e}")
            raise StoreError(f"Failed to {action}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def upsert(self, session: Session, model, key: Dict[str, Any], values: Dict[str, Any]):
        """Insert the row identified by ``key`` or overwrite its ``values``.

        ``key`` must match a unique constraint of ``model``. The write is a
        single statement, so two writers racing on the same key both succeed
        and the last one wins.
        """
        if "updated_at" in model.__table__.c:
            values = dict(values, updated_at=datetime.utcnow())

        insert = ON_CONFLICT_INSERTS.get(self.dialect)
        if insert is not None:
            statement = insert(model.__table__).values(**key, **values).on_conflict_do_update(
                index_elements=list(key),
                set_=values,
            )
            session.execute(statement)
            return

        try:
            with session.begin_nested():
                session.add(model(**key, **values))
        except IntegrityError:
            session.query(model).filter_by(**key).update(values, synchronize_session=False)

    def close(self):
        self.engine.dispose()


_db: Optional[Database] = None


def get_db() -> Database:
    """Get or create the global database, creating tables on first use."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db


def close_db():
    """Dispose of the global database connection."""
    global _db
    if _db is not None:
        _db.close()
        _db = None
