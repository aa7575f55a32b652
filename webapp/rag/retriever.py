"""Query-time retrieval over the tiered vector store."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from schemas.records import QueryResult
from vectorstore.store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Retrieval:
    """Ranked results for one query plus how they were obtained."""
    query: str
    results: list[QueryResult] = field(default_factory=list)
    from_fallback: bool = False
    tier: str = ""
    elapsed_ms: float = 0.0


class Retriever:
    """Runs similarity search over indexed tabs."""

    def __init__(self, store: VectorStore, default_limit: int = 10):
        self.store = store
        self.default_limit = default_limit

    async def search(self, query: str, limit: Optional[int] = None) -> Retrieval:
        limit = limit or self.default_limit
        start = time.perf_counter()
        found = await self.store.search(query, limit)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Retrieved %d results for '%s' from %s tier in %.0fms",
            len(found.results), query, found.tier, elapsed_ms,
        )
        return Retrieval(
            query=query,
            results=found.results,
            from_fallback=found.from_fallback,
            tier=found.tier,
            elapsed_ms=elapsed_ms,
        )
