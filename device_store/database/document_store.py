# device_store/database/document_store.py
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from device_store.core.config import settings
from device_store.core.exceptions import TransactionFailedException
from device_store.models.document import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time view of one document. data is None when the document does not exist."""
    key: str
    exists: bool
    data: Optional[Dict[str, Any]] = None
    version: int = 0


# Computes the new document body from a snapshot. Returning None means "leave it alone".
TransactionFunction = Callable[[DocumentSnapshot], Optional[Dict[str, Any]]]


class DocumentStore(Protocol):
    async def get(self, key: str) -> DocumentSnapshot: ...

    async def run_transaction(self, key: str, fn: TransactionFunction) -> DocumentSnapshot: ...


class SqlDocumentStore:
    """
    Document store over a SQL table of versioned JSON documents.

    Transactions are optimistic: the document is read with its version, the new body
    is computed, and the write only lands if the version is still the one that was
    read. A lost race replays the whole read-compute-write, so `fn` must be pure.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        collection: str = settings.collection_path,
        max_attempts: int = settings.transaction_max_attempts,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.session_factory = session_factory
        self.collection = collection
        self.max_attempts = max_attempts

    async def get(self, key: str) -> DocumentSnapshot:
        try:
            async with self.session_factory() as session:
                return await self._read(session, key)
        except SQLAlchemyError as e:
            raise TransactionFailedException(
                f"Failed to read document {self.collection}/{key}",
                details={"key": key},
            ) from e

    async def run_transaction(self, key: str, fn: TransactionFunction) -> DocumentSnapshot:
        """
        Atomically applies `fn` to the document stored under `key`.

        Returns:
            Snapshot of the document as committed (or as read, if `fn` made no change)

        Raises:
            TransactionFailedException: If every attempt conflicted or the database failed
        """
        for attempt in range(1, self.max_attempts + 1):
            async with self.session_factory() as session:
                try:
                    snapshot = await self._read(session, key)
                    new_data = fn(snapshot)
                    if new_data is None or (snapshot.exists and new_data == snapshot.data):
                        return snapshot

                    if await self._write(session, snapshot, new_data):
                        await session.commit()
                        return DocumentSnapshot(key=key, exists=True, data=new_data, version=snapshot.version + 1)
                    await session.rollback()
                except IntegrityError:
                    # Another writer created the document first
                    await session.rollback()
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise TransactionFailedException(
                        f"Transaction on {self.collection}/{key} failed",
                        details={"key": key, "attempt": attempt},
                    ) from e

            logger.debug(f"Write conflict on {self.collection}/{key}, attempt {attempt} of {self.max_attempts}")

        logger.warning(f"Transaction on {self.collection}/{key} gave up after {self.max_attempts} attempts")
        raise TransactionFailedException(
            f"Transaction on {self.collection}/{key} aborted after {self.max_attempts} conflicting attempts",
            details={"key": key, "attempts": self.max_attempts},
        )

    async def _read(self, session: AsyncSession, key: str) -> DocumentSnapshot:
        result = await session.execute(
            select(Document.data, Document.version).where(
                Document.collection == self.collection,
                Document.key == key,
            )
        )
        row = result.one_or_none()
        if row is None:
            return DocumentSnapshot(key=key, exists=False)
        # Hand out a private copy so a replayed `fn` never sees its own edits
        return DocumentSnapshot(key=key, exists=True, data=copy.deepcopy(row.data), version=row.version)

    async def _write(self, session: AsyncSession, snapshot: DocumentSnapshot, new_data: Dict[str, Any]) -> bool:
        """Compare-and-set write. Returns False when the stored version moved on."""
        if not snapshot.exists:
            session.add(Document(collection=self.collection, key=snapshot.key, data=new_data, version=1))
            await session.flush()
            return True

        result = await session.execute(
            update(Document)
            .where(
                Document.collection == self.collection,
                Document.key == snapshot.key,
                Document.version == snapshot.version,
            )
            .values(data=new_data, version=snapshot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
