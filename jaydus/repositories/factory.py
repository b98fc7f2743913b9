"""
Data store selection from DATABASE_BACKEND.
"""

from typing import Optional
import structlog

from jaydus.core.config import settings
from jaydus.repositories.interfaces import IDataStore

logger = structlog.get_logger(__name__)

_data_store: Optional[IDataStore] = None


def create_data_store(backend: Optional[str] = None) -> IDataStore:
    """Build the store for a backend name (memory, postgres, mongodb, firestore)."""
    backend = (backend or settings.database_backend).lower()
    logger.info("Creating data store", backend=backend)

    if backend == "memory":
        from jaydus.repositories.memory_store import MemoryDataStore
        return MemoryDataStore()
    if backend == "postgres":
        from jaydus.repositories.sql_store import SQLDataStore
        return SQLDataStore(create_schema=settings.environment == "development")
    if backend == "mongodb":
        from jaydus.repositories.mongo_store import MongoDataStore
        return MongoDataStore()
    if backend == "firestore":
        from jaydus.repositories.firestore_store import FirestoreDataStore
        return FirestoreDataStore()

    raise ValueError(f"Unknown database backend: {backend}")


def get_data_store() -> IDataStore:
    """FastAPI dependency returning the process-wide store."""
    global _data_store
    if _data_store is None:
        _data_store = create_data_store()
    return _data_store


def set_data_store(store: Optional[IDataStore]) -> None:
    global _data_store
    _data_store = store
