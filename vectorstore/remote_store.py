"""ChromaDB-backed remote vector store (the primary, ANN-indexed tier).

The connection is created lazily on first use and memoised. Concurrent first
callers share one in-flight initialisation task. Transient initialisation
failures are retried a bounded number of times with a fixed backoff; hard
failures (no host configured, rejected credentials, collection missing
without auto-create) are cached so later calls fail fast.

Every remote call runs in a worker thread under ``asyncio.wait_for``. A call
that exceeds the timeout is abandoned and reported as ``RemoteStoreError``,
the same failure class as a network or service error.
"""

import asyncio
import logging
from typing import Callable, Optional

import chromadb
from chromadb.errors import AuthorizationError, ChromaAuthError, ChromaError
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from schemas.records import DocumentRecord, QueryResult, StoreStats, TabMetadata
from vectorstore.base import VectorBackend
from vectorstore.errors import EmbeddingUnavailableError, RemoteStoreConfigError, RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "tab-assistant-index"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_INIT_RETRIES = 3
DEFAULT_INIT_BACKOFF_SECONDS = 2.0
AUTH_STATUS_CODES = (401, 403)


def is_auth_failure(exc: Exception) -> bool:
    """True when the server rejected our credentials."""
    if isinstance(exc, (AuthorizationError, ChromaAuthError)):
        return True
    return isinstance(exc, ChromaError) and exc.code() in AUTH_STATUS_CODES


class ChromaRemoteStore(VectorBackend):
    """Remote tier talking to a ChromaDB server over HTTP."""

    name = "remote"

    def __init__(
        self,
        collection_name: str = DEFAULT_COLLECTION,
        embedder=None,
        host: Optional[str] = None,
        port: int = 8000,
        ssl: bool = False,
        api_key: Optional[str] = None,
        tenant: Optional[str] = None,
        database: Optional[str] = None,
        auto_create: bool = False,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        init_retries: int = DEFAULT_INIT_RETRIES,
        init_backoff: float = DEFAULT_INIT_BACKOFF_SECONDS,
        client_factory: Optional[Callable[[], object]] = None,
    ):
        self.collection_name = collection_name
        self.embedder = embedder
        self.host = host
        self.port = port
        self.ssl = ssl
        self.api_key = api_key
        self.tenant = tenant
        self.database = database
        self.auto_create = auto_create
        self.timeout = timeout
        self.init_retries = init_retries
        self.init_backoff = init_backoff
        self._client_factory = client_factory

        self._collection = None
        self._init_task: Optional[asyncio.Task] = None
        self._init_error: Optional[Exception] = None

    @classmethod
    def from_settings(cls, settings, embedder=None, client_factory=None) -> "ChromaRemoteStore":
        return cls(
            collection_name=settings.chroma_collection,
            embedder=embedder,
            host=settings.chroma_host,
            port=settings.chroma_port,
            ssl=settings.chroma_ssl,
            api_key=settings.chroma_api_key,
            tenant=settings.chroma_tenant,
            database=settings.chroma_database,
            auto_create=settings.auto_create_index,
            timeout=settings.remote_timeout_seconds,
            init_retries=settings.remote_init_retries,
            init_backoff=settings.remote_init_backoff_seconds,
            client_factory=client_factory,
        )

    # -------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------

    def _make_client(self):
        if self._client_factory is not None:
            return self._client_factory()
        if not self.host:
            raise RemoteStoreConfigError("CHROMA_HOST is not set")

        kwargs = {"host": self.host, "port": self.port, "ssl": self.ssl}
        if self.api_key:
            kwargs["headers"] = {"x-chroma-token": self.api_key}
        if self.tenant:
            kwargs["tenant"] = self.tenant
        if self.database:
            kwargs["database"] = self.database
        return chromadb.HttpClient(**kwargs)

    def _connect(self):
        """Blocking connect: resolve (or create) the collection and probe it."""
        client = self._make_client()
        # Older servers list names, newer ones list Collection objects
        names = {getattr(c, "name", c) for c in client.list_collections()}
        logger.info("Available Chroma collections: %s", sorted(names))

        if self.collection_name in names:
            collection = client.get_collection(self.collection_name)
        elif self.auto_create:
            logger.info("Collection %s not found, creating it", self.collection_name)
            collection = client.create_collection(
                self.collection_name, metadata={"hnsw:space": "cosine"}
            )
        else:
            raise RemoteStoreConfigError(
                f'Collection "{self.collection_name}" does not exist. '
                f"Available collections: {', '.join(sorted(names)) or 'none'}"
            )

        count = collection.count()
        logger.info("Connected to collection %s. Current vector count: %d", self.collection_name, count)
        return collection

    async def _call(self, fn, *args, label: str, **kwargs):
        """Run a blocking client call in a thread, bounded by ``self.timeout``."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise RemoteStoreError(f"Timeout during remote {label} after {self.timeout}s") from e
        except RemoteStoreError:
            raise
        except Exception as e:
            if is_auth_failure(e):
                raise RemoteStoreConfigError(f"Remote {label} rejected credentials: {e}") from e
            raise RemoteStoreError(f"Remote {label} failed: {e}") from e

    async def _initialize(self):
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.init_retries),
                wait=wait_fixed(self.init_backoff),
                retry=retry_if_not_exception_type(RemoteStoreConfigError),
                before_sleep=lambda retry_state: logger.warning(
                    "Retrying remote store initialisation (attempt %d failed: %s)",
                    retry_state.attempt_number,
                    retry_state.outcome.exception() if retry_state.outcome else "unknown",
                ),
                reraise=True,
            ):
                with attempt:
                    collection = await self._call(self._connect, label="connect")
        except RemoteStoreConfigError as e:
            self._init_error = e
            logger.error("Remote store disabled until restart: %s", e)
            raise

        self._collection = collection
        return collection

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection
        if self._init_error is not None:
            raise RemoteStoreConfigError(f"Remote store initialisation failed: {self._init_error}")

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        else:
            logger.debug("Remote store initialisation already in progress, waiting")
        task = self._init_task

        try:
            return await asyncio.shield(task)
        finally:
            # A failed attempt must not block the next caller from retrying
            if task.done() and self._init_task is task and self._collection is None:
                self._init_task = None

    # -------------------------------------------------------------------
    # VectorBackend
    # -------------------------------------------------------------------

    async def _vector_for(self, text: str, vector: Optional[list[float]]) -> list[float]:
        if vector is not None:
            return vector
        if self.embedder is None:
            raise EmbeddingUnavailableError("remote store has no embedder")
        return await self.embedder.embed(text)

    async def upsert(self, record: DocumentRecord) -> str:
        collection = await self._get_collection()
        vector = await self._vector_for(record.text, record.vector)
        await self._call(
            collection.upsert,
            ids=[record.id],
            embeddings=[vector],
            # Chroma rejects None metadata values; absent fields are left out
            metadatas=[record.metadata.to_wire()],
            label="upsert",
        )
        logger.info("Upserted %s to remote collection %s", record.id, self.collection_name)
        return record.id

    async def search(
        self,
        query_text: str,
        limit: int,
        query_vector: Optional[list[float]] = None,
    ) -> list[QueryResult]:
        if limit <= 0:
            return []
        collection = await self._get_collection()
        vector = await self._vector_for(query_text, query_vector)
        raw = await self._call(
            collection.query,
            query_embeddings=[vector],
            n_results=limit,
            include=["metadatas", "distances"],
            label="query",
        )

        try:
            ids = raw["ids"][0]
            metadatas = raw["metadatas"][0]
            distances = raw["distances"][0]
            results = [
                # cosine space: distance = 1 - similarity
                QueryResult.from_metadata(rid, TabMetadata.model_validate(meta), 1.0 - float(dist))
                for rid, meta, dist in zip(ids, metadatas, distances)
            ]
        except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
            raise RemoteStoreError(f"Malformed query response: {e}") from e

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info("Remote search returned %d results", len(results))
        return results[:limit]

    async def delete(self, record_id: str) -> list[str]:
        collection = await self._get_collection()
        own = await self._call(collection.get, ids=[record_id], include=["metadatas"], label="get")
        children = await self._call(
            collection.get, where={"parentId": record_id}, include=["metadatas"], label="get"
        )
        try:
            ids = list(dict.fromkeys(list(own["ids"]) + list(children["ids"])))
        except (KeyError, TypeError) as e:
            raise RemoteStoreError(f"Malformed get response: {e}") from e

        if ids:
            await self._call(collection.delete, ids=ids, label="delete")
        logger.info("Removed %d records for %s from remote collection", len(ids), record_id)
        return ids

    async def stats(self) -> StoreStats:
        collection = await self._get_collection()
        count = await self._call(collection.count, label="count")
        return StoreStats(
            total_vectors=int(count),
            namespaces={self.collection_name: {"vectorCount": int(count)}},
        )
