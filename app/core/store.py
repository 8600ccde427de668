"""
Document store used as the system of record for chapter collections.

The chapter system keeps everything in a schemaless document database; this
module exposes the same five operations (get, query, create, update, delete)
over a collection name and a document id. ``SqlDocumentStore`` implements them
on top of the generic ``documents`` table.

Usage:
    store = SqlDocumentStore(AsyncSessionLocal)
    doc_id = await store.create("members", {"name": "Alice"})
    members = await store.query("members", lambda doc: doc["name"].startswith("A"))
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.models import Document, generate_ulid
from app.utils import get_logger


log = get_logger(__name__)

Doc = Dict[str, Any]
Predicate = Callable[[Doc], bool]


class StoreError(Exception):
    """A document store operation failed."""


class DocumentNotFound(StoreError):
    """The addressed document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class DocumentStore(ABC):
    """
    Abstract document store.

    Returned documents always carry their id under the ``"id"`` key.
    """

    supports_transactions: bool = False

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Doc]:
        """Return the document or ``None`` if absent."""

    @abstractmethod
    async def query(self, collection: str, predicate: Optional[Predicate] = None) -> List[Doc]:
        """Return every document of ``collection`` matching ``predicate``."""

    @abstractmethod
    async def create(self, collection: str, doc: Doc, doc_id: Optional[str] = None) -> str:
        """
        Store ``doc`` and return its id.

        When ``doc_id`` is given the write is an upsert, so repeating it is safe.
        """

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: Doc) -> None:
        """Merge ``partial`` into an existing document."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove an existing document."""

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["DocumentStore"]:
        """
        Yield a store whose writes commit together.

        Stores without multi-document transactions yield themselves; callers
        must check ``supports_transactions`` before relying on atomicity.
        """
        yield self


def _to_doc(row: Document) -> Doc:
    return {**row.data, "id": row.id}


class SqlDocumentStore(DocumentStore):
    """
    Document store backed by SQLAlchemy.

    Each call opens its own session and commits, unless the store was obtained
    from ``transaction()``, in which case all calls share one session that is
    committed (or rolled back) when the context exits.
    """

    supports_transactions = True

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        session: Optional[AsyncSession] = None,
    ):
        self._session_factory = session_factory
        self._session = session

    @asynccontextmanager
    async def _use_session(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            yield self._session
            await self._session.flush()
            return
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _load(self, session: AsyncSession, collection: str, doc_id: str) -> Optional[Document]:
        return await session.get(Document, (collection, doc_id))

    async def get(self, collection: str, doc_id: str) -> Optional[Doc]:
        try:
            async with self._use_session() as session:
                row = await self._load(session, collection, doc_id)
                return _to_doc(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get {collection}/{doc_id} failed: {e}") from e

    async def query(self, collection: str, predicate: Optional[Predicate] = None) -> List[Doc]:
        stmt = select(Document).where(Document.collection == collection).order_by(Document.id)
        try:
            async with self._use_session() as session:
                result = await session.execute(stmt)
                docs = [_to_doc(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"query {collection} failed: {e}") from e
        if predicate is None:
            return docs
        return [doc for doc in docs if predicate(doc)]

    async def create(self, collection: str, doc: Doc, doc_id: Optional[str] = None) -> str:
        data = {k: v for k, v in doc.items() if k != "id"}
        new_id = doc_id or generate_ulid()
        try:
            async with self._use_session() as session:
                row = await self._load(session, collection, new_id)
                if row is None:
                    session.add(Document(collection=collection, id=new_id, data=data))
                else:
                    row.data = data
        except SQLAlchemyError as e:
            raise StoreError(f"create {collection}/{new_id} failed: {e}") from e
        log.debug(f"Created {collection}/{new_id}")
        return new_id

    async def update(self, collection: str, doc_id: str, partial: Doc) -> None:
        try:
            async with self._use_session() as session:
                row = await self._load(session, collection, doc_id)
                if row is None:
                    raise DocumentNotFound(collection, doc_id)
                # Reassign so the JSON column is flagged dirty
                row.data = {**row.data, **{k: v for k, v in partial.items() if k != "id"}}
        except SQLAlchemyError as e:
            raise StoreError(f"update {collection}/{doc_id} failed: {e}") from e
        log.debug(f"Updated {collection}/{doc_id}")

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            async with self._use_session() as session:
                row = await self._load(session, collection, doc_id)
                if row is None:
                    raise DocumentNotFound(collection, doc_id)
                await session.delete(row)
        except SQLAlchemyError as e:
            raise StoreError(f"delete {collection}/{doc_id} failed: {e}") from e
        log.debug(f"Deleted {collection}/{doc_id}")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlDocumentStore"]:
        if self._session is not None:
            yield self
            return
        async with self._session_factory() as session:
            try:
                yield SqlDocumentStore(self._session_factory, session=session)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(f"transaction failed: {e}") from e
            except Exception:
                await session.rollback()
                raise


_store: Optional[SqlDocumentStore] = None


def get_store() -> DocumentStore:
    """
    FastAPI dependency returning the process-wide document store.

    Usage:
        @router.get("/members")
        async def list_members(store: DocumentStore = Depends(get_store)):
            ...
    """
    global _store
    if _store is None:
        from app.core.database.engine import AsyncSessionLocal

        _store = SqlDocumentStore(AsyncSessionLocal)
    return _store
