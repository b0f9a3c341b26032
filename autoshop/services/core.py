"""Process-wide handle shared by the session, log and queue services."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from autoshop.config import Settings
from autoshop.database import create_db_engine, create_session_factory, init_db
from autoshop.logging_config import get_logger
from autoshop.services.clock import Clock, utcnow
from autoshop.services.errors import StorageError
from autoshop.services.locks import IdentityLocks

logger = get_logger("core")


@dataclass
class CoreContext:
    settings: Settings
    session_factory: sessionmaker
    engine: Optional[Engine] = None
    locks: IdentityLocks = field(default_factory=IdentityLocks)
    clock: Clock = utcnow

    def now(self):
        return self.clock()

    def create_tables(self) -> None:
        if self.engine is not None:
            init_db(self.engine)

    @contextmanager
    def unit_of_work(self, operation: str, db: Optional[Session] = None) -> Iterator[Session]:
        """Yield a database session that commits on success.

        When `db` is given the caller owns the transaction: it is yielded as is
        and neither committed nor closed here.
        """
        if db is not None:
            yield db
            return

        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"{operation} failed: {e}", extra={"context": {"operation": operation}})
            raise StorageError(operation, e) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def build_core(settings: Settings, clock: Clock = utcnow, create_tables: bool = True) -> CoreContext:
    """Build the context once at process start."""
    engine = create_db_engine(settings.database_url, echo=settings.debug)
    if create_tables:
        init_db(engine)
    return CoreContext(
        settings=settings,
        session_factory=create_session_factory(engine),
        engine=engine,
        clock=clock,
    )
