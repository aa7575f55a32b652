"""Common interface shared by every vector-store tier."""

from abc import ABC, abstractmethod
from typing import Optional

from schemas.records import DocumentRecord, QueryResult, StoreStats


class VectorBackend(ABC):
    """One storage tier. Tiers raise on failure; the tiered store decides what to try next."""

    name: str = "backend"
    requires_vectors: bool = True

    @abstractmethod
    async def upsert(self, record: DocumentRecord) -> str:
        """Store or replace ``record`` under its id and return the id."""

    @abstractmethod
    async def search(
        self,
        query_text: str,
        limit: int,
        query_vector: Optional[list[float]] = None,
    ) -> list[QueryResult]:
        """Return at most ``limit`` results, highest score first."""

    @abstractmethod
    async def delete(self, record_id: str) -> list[str]:
        """Delete a record and every chunk whose ``parentId`` is ``record_id``.

        Returns the ids that were removed (empty when nothing matched).
        """

    @abstractmethod
    async def stats(self) -> StoreStats:
        """Return record counts for this tier."""

    async def close(self) -> None:
        return None
