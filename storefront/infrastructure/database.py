import logging
import time

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(url: str = settings.DATABASE_URL):
    """Create the connection pool. Called once by the composition root."""
    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind=None, retries: int = settings.DB_CONNECT_RETRIES, wait_seconds: int = settings.DB_RETRY_WAIT_SECONDS) -> bool:
    """Create tables, retrying while the database container comes up."""
    # Import so every table is registered on Base.metadata
    from storefront.domain import models  # noqa: F401

    bind = bind or engine
    for attempt in range(retries):
        try:
            logger.info(f"🔄 Attempting DB connection ({attempt + 1}/{retries})...")
            Base.metadata.create_all(bind=bind)
            logger.info("✅ DB Connected and Tables Created.")
            return True
        except OperationalError:
            logger.warning(f"⚠️ DB not ready yet. Waiting {wait_seconds}s...")
            time.sleep(wait_seconds)
    logger.error("❌ Could not connect to DB after retries.")
    return False
