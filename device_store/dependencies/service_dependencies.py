from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from device_store.core.config import settings
from device_store.database.document_store import SqlDocumentStore
from device_store.database.session import get_session_factory
from device_store.services.device_registry import DeviceRegistry

def get_document_store(session_factory: async_sessionmaker = Depends(get_session_factory)) -> SqlDocumentStore:
    """
    Dependency that provides the store holding the per-user device documents.
    """
    return SqlDocumentStore(
        session_factory,
        collection=settings.collection_path,
        max_attempts=settings.transaction_max_attempts,
    )

def get_device_registry(store: SqlDocumentStore = Depends(get_document_store)) -> DeviceRegistry:
    """
    Dependency that provides a DeviceRegistry over the document store.
    """
    return DeviceRegistry(store)
