"""
Consent storage adapters for Care Consent
Persist the serialized ConsentPreferences blob under a storage key
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict
from datetime import datetime, UTC
import structlog
from sqlalchemy import create_engine, Column, String, DateTime, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from ..config import get_consent_config
from ..exceptions import PersistenceError

logger = structlog.get_logger(__name__)

Base = declarative_base()


class ConsentPreferencesDB(Base):
    """SQLAlchemy model for serialized consent preferences"""
    __tablename__ = "consent_preferences"

    storage_key = Column(String, primary_key=True)
    blob = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class ConsentStorage(ABC):
    """Key-value store for one serialized preferences blob per key"""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored blob, or None if nothing was saved under ``key``"""

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        """Overwrite the blob under ``key``; raises PersistenceError on failure"""


class SQLConsentStorage(ConsentStorage):
    """SQLAlchemy-backed storage, SQLite by default"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or get_consent_config().database_url
        self.engine = create_engine(self.database_url)
        self.SessionLocal = sessionmaker(bind=self.engine)

        # Create tables
        Base.metadata.create_all(bind=self.engine)
        logger.info("Consent storage initialised", database_url=self.database_url)

    def load(self, key: str) -> Optional[str]:
        try:
            with self.SessionLocal() as session:
                row = session.get(ConsentPreferencesDB, key)
                if row is None:
                    return None
                return row.blob

        except SQLAlchemyError as e:
            logger.error("Failed to load consent preferences", storage_key=key, error=str(e))
            raise PersistenceError("Failed to load consent preferences",
                                   storage_key=key, reason=str(e)) from e

    def save(self, key: str, blob: str) -> None:
        try:
            with self.SessionLocal() as session:
                row = session.get(ConsentPreferencesDB, key)
                now = datetime.now(UTC)
                if row is None:
                    session.add(ConsentPreferencesDB(storage_key=key, blob=blob, updated_at=now))
                else:
                    row.blob = blob
                    row.updated_at = now
                session.commit()

                logger.debug("Stored consent preferences", storage_key=key)

        except SQLAlchemyError as e:
            logger.error("Failed to store consent preferences", storage_key=key, error=str(e))
            raise PersistenceError(storage_key=key, reason=str(e)) from e

    def delete(self, key: str) -> bool:
        """Remove the blob under ``key``; belongs to restore/erasure tooling, not the engine"""
        try:
            with self.SessionLocal() as session:
                deleted_count = session.query(ConsentPreferencesDB).filter_by(storage_key=key).delete()
                session.commit()

                logger.info("Deleted consent preferences", storage_key=key, count=deleted_count)
                return deleted_count > 0

        except SQLAlchemyError as e:
            logger.error("Failed to delete consent preferences", storage_key=key, error=str(e))
            raise PersistenceError("Failed to delete consent preferences",
                                   storage_key=key, reason=str(e)) from e


class InMemoryConsentStorage(ConsentStorage):
    """In-memory storage for testing"""

    def __init__(self):
        self.blobs: Dict[str, str] = {}
        self.save_count = 0

    def load(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        self.blobs[key] = blob
        self.save_count += 1
