"""Tests for tab indexing, batch sync and removal."""

import asyncio

import pytest

from processors.content_extractor import ContentTooShortError
from schemas.tab import TabContent, TabPayload
from vectorstore.ingest import TabIndexer, generate_tab_id
from vectorstore.store import build_vector_store


@pytest.fixture
def store(settings, embedder):
    return build_vector_store(settings, embedder=embedder)


@pytest.fixture
def indexer(settings, store):
    return TabIndexer.from_settings(settings, store)


def _tab(text, url="https://a.test", title="Apple pie", **kwargs):
    return TabPayload(url=url, title=title, content=TabContent(text=text), **kwargs)


def test_tab_id_is_stable_per_url():
    assert generate_tab_id("https://a.test") == generate_tab_id("https://a.test")
    assert generate_tab_id("https://a.test") != generate_tab_id("https://b.test")
    assert len(generate_tab_id("https://a.test")) == 16


def test_short_document_stored_as_single_record(indexer, store):
    result = asyncio.run(indexer.index_tab(_tab("A" * 4000)))

    assert result.success is True
    assert result.id == generate_tab_id("https://a.test")
    assert result.chunk_count is None
    assert "chunkCount" not in result.to_wire()
    assert store.local_store.count() == 1

    meta = store.local_store.get(result.id)
    assert meta.title == "Apple pie"
    assert meta.snippet == "A" * 500
    assert meta.word_count == 1
    assert meta.reading_time == 1
    assert meta.parent_id is None


def test_long_document_stored_as_chunks(indexer, store):
    result = asyncio.run(indexer.index_tab(_tab("B" * 6000)))

    assert result.chunk_count == 7
    assert result.to_wire()["chunkCount"] == 7
    assert store.local_store.get(result.id) is None
    for i in range(7):
        meta = store.local_store.get(f"{result.id}-chunk-{i}")
        assert meta.parent_id == result.id
        assert meta.chunk_index == i
        assert meta.total_chunks == 7


def test_unreachable_remote_reported_as_fallback(indexer):
    result = asyncio.run(indexer.index_tab(_tab("A" * 100)))
    assert result.success is True
    assert result.from_fallback is True


def test_reindexing_same_url_overwrites(indexer, store):
    asyncio.run(indexer.index_tab(_tab("first version of the page " * 5)))
    asyncio.run(indexer.index_tab(_tab("second version of the page " * 5, title="Apple pie v2")))

    assert store.local_store.count() == 1
    assert store.local_store.get(generate_tab_id("https://a.test")).title == "Apple pie v2"


def test_explicit_id_and_timestamp_kept(indexer, store):
    result = asyncio.run(indexer.index_tab(_tab("C" * 100, id="custom-id", timestamp="2024-05-01T10:00:00Z")))

    assert result.id == "custom-id"
    assert store.local_store.get("custom-id").timestamp == "2024-05-01T10:00:00Z"


def test_missing_timestamp_defaults_to_now(indexer, store):
    result = asyncio.run(indexer.index_tab(_tab("D" * 100)))
    assert store.local_store.get(result.id).timestamp.endswith("+00:00")


def test_short_content_rejected(indexer, store):
    with pytest.raises(ContentTooShortError):
        asyncio.run(indexer.index_tab(_tab("tiny")))
    assert store.local_store.count() == 0


def test_summary_from_summarizer_stored(settings, store):
    async def summarizer(text, title):
        return f"Summary of {title}"

    indexer = TabIndexer.from_settings(settings, store, summarizer=summarizer)
    result = asyncio.run(indexer.index_tab(_tab("E" * 2000)))

    assert store.local_store.get(result.id).summary == "Summary of Apple pie"


def test_sync_reports_each_tab(indexer, store):
    tabs = [
        {"url": "https://good.test", "title": "Good", "content": {"text": "G" * 100}},
        {"url": "https://short.test", "title": "Short", "content": {"text": "tiny"}},
        {"url": "https://notitle.test", "content": {"text": "N" * 100}},
        {"url": "https://plain.test", "title": "Plain", "content": "P" * 100},
    ]

    results = asyncio.run(indexer.sync_tabs(tabs))

    assert [r.success for r in results] == [True, False, False, True]
    assert results[0].id == generate_tab_id("https://good.test")
    assert "too short" in results[1].error
    assert results[2].error == "Invalid tab data"
    assert results[2].url == "https://notitle.test"
    assert store.local_store.count() == 2


def test_sync_waits_between_tabs(settings, store, monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("vectorstore.ingest.asyncio.sleep", fake_sleep)
    indexer = TabIndexer.from_settings(settings.model_copy(update={"sync_delay_seconds": 0.5}), store)
    tabs = [{"url": f"https://{i}.test", "title": f"T{i}", "content": "x" * 100} for i in range(3)]

    asyncio.run(indexer.sync_tabs(tabs))

    assert delays == [0.5, 0.5]


def test_sync_empty_list_rejected(indexer):
    with pytest.raises(ValueError):
        asyncio.run(indexer.sync_tabs([]))


def test_remove_cascades_to_chunks(indexer, store):
    other = asyncio.run(indexer.index_tab(_tab("O" * 100, url="https://other.test")))
    chunked = asyncio.run(indexer.index_tab(_tab("B" * 6000)))

    removed = asyncio.run(indexer.remove_tab(chunked.id))

    assert removed.success is True
    assert removed.deleted_count == 7
    assert removed.to_wire()["deletedCount"] == 7
    assert store.local_store.count() == 1
    assert store.local_store.get(other.id) is not None


def test_remove_unknown_tab(indexer):
    removed = asyncio.run(indexer.remove_tab("does-not-exist"))
    assert removed.success is False
    assert removed.message == "Tab not found in index"
