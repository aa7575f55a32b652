"""Tab ingestion: clean → enrich → (chunk) → embed → store.

Short tabs are stored as a single record keyed by the tab id. Tabs longer than
``chunk_threshold`` characters are split by ``Chunker`` and every chunk is stored
as ``{tabId}-chunk-{i}`` with a ``parentId`` back-reference, so removing the tab
removes its chunks too.

Tab ids are derived from the URL, so indexing the same URL again overwrites the
earlier record instead of duplicating it.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import ValidationError

from processors.content_extractor import ContentExtractor, InvalidInputError, Summarizer
from schemas.records import DocumentRecord, TabMetadata, url_to_id
from schemas.tab import IndexResult, RemoveResult, SyncItemResult, TabEnrichment, TabPayload
from vectorstore.chunker import Chunker
from vectorstore.store import VectorStore

logger = logging.getLogger(__name__)


def generate_tab_id(url: str) -> str:
    """Deterministic id for a tab URL."""
    return url_to_id(url)


class TabIndexer:
    """Indexes, syncs and removes tabs in the tiered vector store."""

    def __init__(
        self,
        store: VectorStore,
        extractor: Optional[ContentExtractor] = None,
        chunker: Optional[Chunker] = None,
        chunk_threshold: int = 5000,
        snippet_length: int = 500,
        sync_delay: float = 0.5,
    ):
        self.store = store
        self.extractor = extractor or ContentExtractor()
        self.chunker = chunker or Chunker()
        self.chunk_threshold = chunk_threshold
        self.snippet_length = snippet_length
        self.sync_delay = sync_delay

    @classmethod
    def from_settings(
        cls,
        settings,
        store: VectorStore,
        summarizer: Optional[Summarizer] = None,
    ) -> "TabIndexer":
        return cls(
            store=store,
            extractor=ContentExtractor.from_settings(settings, summarizer=summarizer),
            chunker=Chunker(settings.max_chunk_size, settings.chunk_overlap),
            chunk_threshold=settings.chunk_threshold,
            snippet_length=settings.snippet_length,
            sync_delay=settings.sync_delay_seconds,
        )

    # -------------------------------------------------------------------
    # Single tab
    # -------------------------------------------------------------------

    def _metadata(
        self,
        payload: TabPayload,
        timestamp: str,
        text: str,
        enrichment: TabEnrichment,
        **extra,
    ) -> TabMetadata:
        return TabMetadata(
            url=payload.url,
            title=payload.title,
            snippet=text[: self.snippet_length],
            timestamp=timestamp,
            summary=enrichment.summary,
            reading_time=enrichment.reading_time,
            word_count=enrichment.word_count,
            **extra,
        )

    async def index_tab(self, payload: TabPayload) -> IndexResult:
        """Index one tab. Raises ``ContentTooShortError`` for near-empty pages."""
        t0 = time.perf_counter()
        cleaned = self.extractor.clean(payload.content)
        self.extractor.require_indexable(cleaned)

        text = cleaned.text
        tab_id = payload.id or generate_tab_id(payload.url)
        timestamp = payload.timestamp or datetime.now(timezone.utc).isoformat()
        enrichment = await self.extractor.enrich(text, payload.title)

        if len(text) <= self.chunk_threshold:
            result = await self.store.upsert(
                DocumentRecord(
                    id=tab_id,
                    text=text,
                    metadata=self._metadata(payload, timestamp, text, enrichment),
                )
            )
            logger.info(
                "Indexed %s (%s) in %.2fs via %s tier",
                payload.url, tab_id, time.perf_counter() - t0, result.tier,
            )
            return IndexResult(
                success=True,
                id=tab_id,
                message="Tab indexed successfully",
                from_fallback=result.from_fallback,
            )

        chunks = self.chunker.chunk(text)
        from_fallback = False
        for i, chunk in enumerate(chunks):
            result = await self.store.upsert(
                DocumentRecord(
                    id=f"{tab_id}-chunk-{i}",
                    text=chunk,
                    metadata=self._metadata(
                        payload, timestamp, chunk, enrichment,
                        parent_id=tab_id,
                        chunk_index=i,
                        total_chunks=len(chunks),
                    ),
                )
            )
            from_fallback = from_fallback or result.from_fallback

        logger.info(
            "Indexed %s (%s) as %d chunks in %.2fs",
            payload.url, tab_id, len(chunks), time.perf_counter() - t0,
        )
        return IndexResult(
            success=True,
            id=tab_id,
            message=f"Tab indexed successfully in {len(chunks)} chunks",
            chunk_count=len(chunks),
            from_fallback=from_fallback,
        )

    # -------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------

    async def sync_tabs(self, tabs: list[Union[TabPayload, dict]]) -> list[SyncItemResult]:
        """Index tabs one after another; a failing tab does not stop the batch."""
        if not tabs:
            raise InvalidInputError("No tabs provided")

        t0 = time.perf_counter()
        results: list[SyncItemResult] = []
        for position, tab in enumerate(tabs):
            if position > 0 and self.sync_delay > 0:
                await asyncio.sleep(self.sync_delay)

            raw = tab.model_dump() if isinstance(tab, TabPayload) else dict(tab)
            url = str(raw.get("url") or "")
            title = str(raw.get("title") or "")
            try:
                payload = tab if isinstance(tab, TabPayload) else TabPayload.model_validate(tab)
                indexed = await self.index_tab(payload)
            except ValidationError as e:
                logger.warning("Skipping invalid tab %s: %s", url or "<no url>", e)
                results.append(SyncItemResult(url=url, title=title, success=False, error="Invalid tab data"))
                continue
            except Exception as e:
                logger.warning("Failed to index %s: %s", url, e)
                results.append(SyncItemResult(url=url, title=title, success=False, error=str(e)))
                continue
            results.append(SyncItemResult(url=url, title=title, success=True, id=indexed.id))

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Synced %d/%d tabs in %.2fs", succeeded, len(results), time.perf_counter() - t0,
        )
        return results

    # -------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------

    async def remove_tab(self, tab_id: str) -> RemoveResult:
        deleted = await self.store.delete(tab_id)
        if not deleted.success:
            return RemoveResult(
                success=False,
                message="Tab not found in index",
                id=tab_id,
                from_fallback=deleted.from_fallback,
            )
        logger.info("Removed %s (%d records)", tab_id, len(deleted.deleted_ids))
        return RemoveResult(
            success=True,
            message="Tab removed from index",
            id=tab_id,
            deleted_count=len(deleted.deleted_ids),
            from_fallback=deleted.from_fallback,
        )
