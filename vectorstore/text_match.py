"""Last-resort search tier that scores records by substring presence.

Works on the local store's metadata only, so it keeps answering when no
vector can be produced at all. A title match scores 0.8, a match in the
snippet, summary or URL scores 0.5, and records that do not contain the
query are left out.
"""

import logging
from typing import Optional

from schemas.records import DocumentRecord, QueryResult, StoreStats
from vectorstore.base import VectorBackend
from vectorstore.local_store import LocalVectorStore

logger = logging.getLogger(__name__)

TITLE_MATCH_SCORE = 0.8
BODY_MATCH_SCORE = 0.5


class TextMatchStore(VectorBackend):
    """Substring-scoring view over a ``LocalVectorStore``."""

    name = "text_match"
    requires_vectors = False

    def __init__(self, local_store: LocalVectorStore):
        self.local_store = local_store

    async def upsert(self, record: DocumentRecord) -> str:
        # Keeps the record searchable by text even when it has no vector
        self.local_store.put(record.id, record.vector, record.metadata)
        return record.id

    async def search(
        self,
        query_text: str,
        limit: int,
        query_vector: Optional[list[float]] = None,
    ) -> list[QueryResult]:
        needle = query_text.strip().lower()
        if not needle:
            return []

        results: list[QueryResult] = []
        for record_id, meta in self.local_store.iter_metadata():
            if needle in meta.title.lower():
                score = TITLE_MATCH_SCORE
            elif any(needle in (field or "").lower() for field in (meta.snippet, meta.summary, meta.url)):
                score = BODY_MATCH_SCORE
            else:
                continue
            results.append(QueryResult.from_metadata(record_id, meta, score))

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info("Text-match search for '%s' found %d records", query_text, len(results))
        return results[:limit]

    async def delete(self, record_id: str) -> list[str]:
        return self.local_store.remove(record_id)

    async def stats(self) -> StoreStats:
        return await self.local_store.stats()
