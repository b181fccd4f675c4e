import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storefront.domain.errors import PersistenceError, StorefrontError
from storefront.infrastructure.repositories.store_repository import PostgresStoreRepository
from storefront.interfaces.IStoreRepository import IStoreRepository
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork(IUnitOfWork):
    """One session and one database transaction per ``begin()``."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def begin(self) -> Iterator[IStoreRepository]:
        session = self.session_factory()
        try:
            yield PostgresStoreRepository(session)
            session.commit()
        except StorefrontError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"❌ DB Error: {e}", exc_info=True)
            session.rollback()
            raise PersistenceError() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
