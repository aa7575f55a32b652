"""Tiered vector store: remote first, then local fallbacks, tried in order.

The default chain is ``[ChromaRemoteStore, LocalVectorStore, TextMatchStore]``.
Each tier implements ``VectorBackend``; an operation moves on to the next tier
whenever the current one raises. Callers always get a successful result, and
``from_fallback`` tells them (for observability only) that a lower tier answered.

Text is embedded once per operation, before any tier is tried. When no vector
can be produced, tiers that need vectors are skipped.
"""

import logging
from typing import Optional

from schemas.records import (
    DeleteResult,
    DocumentRecord,
    SearchResults,
    StoreStats,
    UpsertResult,
)
from vectorstore.base import VectorBackend
from vectorstore.embedder import Embedder
from vectorstore.errors import AllTiersFailedError, EmbeddingUnavailableError
from vectorstore.local_store import LocalVectorStore
from vectorstore.remote_store import ChromaRemoteStore
from vectorstore.text_match import TextMatchStore

logger = logging.getLogger(__name__)


class VectorStore:
    """Chain-of-responsibility over storage tiers."""

    def __init__(
        self,
        tiers: list[VectorBackend],
        embedder: Optional[Embedder] = None,
        local_store: Optional[LocalVectorStore] = None,
    ):
        if not tiers:
            raise ValueError("VectorStore needs at least one tier")
        self.tiers = tiers
        self.embedder = embedder
        self.local_store = local_store

    async def _embed(self, text: str) -> Optional[list[float]]:
        if self.embedder is None:
            return None
        try:
            return await self.embedder.embed(text)
        except EmbeddingUnavailableError as e:
            logger.warning("Embedding unavailable, only text-match search will work: %s", e)
            return None

    def _eligible(self, have_vector: bool):
        for position, tier in enumerate(self.tiers):
            if tier.requires_vectors and not have_vector:
                continue
            yield position, tier

    def _log_degraded(self, operation: str, tier: VectorBackend, position: int) -> None:
        if position > 0:
            logger.warning("%s served by fallback tier '%s'", operation, tier.name)

    async def upsert(self, record: DocumentRecord) -> UpsertResult:
        if record.vector is None:
            record = record.model_copy(update={"vector": await self._embed(record.text)})

        errors = []
        for position, tier in self._eligible(record.vector is not None):
            try:
                record_id = await tier.upsert(record)
            except Exception as e:
                logger.warning("Tier '%s' failed to upsert %s, trying next: %s", tier.name, record.id, e)
                errors.append(f"{tier.name}: {e}")
                continue
            self._log_degraded("upsert", tier, position)
            return UpsertResult(id=record_id, from_fallback=position > 0, tier=tier.name)

        raise AllTiersFailedError(f"Could not store {record.id}: {'; '.join(errors)}")

    async def search(self, query_text: str, limit: int = 10) -> SearchResults:
        query_vector = await self._embed(query_text)

        errors = []
        for position, tier in self._eligible(query_vector is not None):
            try:
                results = await tier.search(query_text, limit, query_vector=query_vector)
            except Exception as e:
                logger.warning("Tier '%s' search failed, trying next: %s", tier.name, e)
                errors.append(f"{tier.name}: {e}")
                continue
            self._log_degraded("search", tier, position)
            return SearchResults(results=results[:limit], from_fallback=position > 0, tier=tier.name)

        raise AllTiersFailedError(f"Search failed on every tier: {'; '.join(errors)}")

    async def delete(self, record_id: str) -> DeleteResult:
        errors = []
        for position, tier in enumerate(self.tiers):
            try:
                deleted = await tier.delete(record_id)
            except Exception as e:
                logger.warning("Tier '%s' failed to delete %s, trying next: %s", tier.name, record_id, e)
                errors.append(f"{tier.name}: {e}")
                continue

            # Fallback copies written while the remote was down must go as well
            if self.local_store is not None and tier is not self.local_store and position == 0:
                for rid in self.local_store.remove(record_id):
                    if rid not in deleted:
                        deleted.append(rid)

            self._log_degraded("delete", tier, position)
            return DeleteResult(
                success=bool(deleted),
                id=record_id,
                deleted_ids=deleted,
                from_fallback=position > 0,
                tier=tier.name,
            )

        raise AllTiersFailedError(f"Could not delete {record_id}: {'; '.join(errors)}")

    async def stats(self) -> StoreStats:
        errors = []
        for position, tier in enumerate(self.tiers):
            try:
                stats = await tier.stats()
            except Exception as e:
                logger.warning("Tier '%s' stats failed, trying next: %s", tier.name, e)
                errors.append(f"{tier.name}: {e}")
                continue

            if self.local_store is not None and tier is not self.local_store and position == 0:
                stats.fallback_count = self.local_store.count()
            stats.from_fallback = position > 0
            self._log_degraded("stats", tier, position)
            return stats

        raise AllTiersFailedError(f"Stats failed on every tier: {'; '.join(errors)}")

    async def close(self) -> None:
        for tier in self.tiers:
            await tier.close()


def build_vector_store(settings, embedder: Optional[Embedder] = None, client_factory=None) -> VectorStore:
    """Assemble the default remote -> local -> text-match chain from settings."""
    if embedder is None:
        embedder = Embedder.from_settings(settings)

    local = LocalVectorStore(settings.data_dir, embedder=embedder)
    remote = ChromaRemoteStore.from_settings(settings, embedder=embedder, client_factory=client_factory)
    if not settings.remote_configured and client_factory is None:
        logger.warning("CHROMA_HOST is not set, all vector operations will use the local fallback store")

    return VectorStore(
        tiers=[remote, local, TextMatchStore(local)],
        embedder=embedder,
        local_store=local,
    )
