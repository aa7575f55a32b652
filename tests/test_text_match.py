"""Tests for the substring-scoring last-resort tier."""

import asyncio

from schemas.records import DocumentRecord, TabMetadata
from vectorstore.local_store import LocalVectorStore
from vectorstore.text_match import TextMatchStore


def _put(local, record_id, title, snippet="", url=None, summary=None):
    local.put(
        record_id,
        None,
        TabMetadata(
            url=url or f"https://{record_id}.test",
            title=title,
            snippet=snippet,
            timestamp="2024-01-01T00:00:00+00:00",
            summary=summary,
        ),
    )


def test_title_match_ranks_first_with_fixed_score(tmp_path):
    local = LocalVectorStore(tmp_path)
    _put(local, "banana", "Banana bread", snippet="Mix flour and bananas")
    _put(local, "apple", "Apple pie", snippet="Bake for 45 minutes")

    results = asyncio.run(TextMatchStore(local).search("apple", 5))

    assert [r.id for r in results] == ["apple"]
    assert results[0].score == 0.8


def test_body_match_scores_lower_than_title_match(tmp_path):
    local = LocalVectorStore(tmp_path)
    _put(local, "guide", "Baking guide", snippet="Use tart apples for pies")
    _put(local, "pie", "Apple pie")

    results = asyncio.run(TextMatchStore(local).search("APPLE", 5))

    assert [(r.id, r.score) for r in results] == [("pie", 0.8), ("guide", 0.5)]


def test_summary_and_url_are_searched(tmp_path):
    local = LocalVectorStore(tmp_path)
    _put(local, "s", "Untitled", summary="A note about kubernetes upgrades")
    _put(local, "u", "Docs", url="https://kubernetes.io/docs")

    results = asyncio.run(TextMatchStore(local).search("kubernetes", 5))
    assert {r.id for r in results} == {"s", "u"}
    assert all(r.score == 0.5 for r in results)


def test_blank_query_matches_nothing(tmp_path):
    local = LocalVectorStore(tmp_path)
    _put(local, "a", "Anything")
    assert asyncio.run(TextMatchStore(local).search("   ", 5)) == []


def test_upsert_without_vector_is_searchable_and_deletable(tmp_path):
    local = LocalVectorStore(tmp_path)
    tier = TextMatchStore(local)
    record = DocumentRecord(
        id="novec",
        text="no vector available",
        metadata=TabMetadata(url="https://n.test", title="Vectorless tab", timestamp="t"),
    )

    assert asyncio.run(tier.upsert(record)) == "novec"
    assert asyncio.run(tier.search("vectorless", 5))[0].id == "novec"
    assert asyncio.run(tier.delete("novec")) == ["novec"]
    assert asyncio.run(tier.stats()).total_vectors == 0
