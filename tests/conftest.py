"""Shared fixtures: isolated settings, a deterministic embedder and an in-memory Chroma fake."""

import hashlib
import re
import threading
import time
from types import SimpleNamespace

import pytest

from settings import Settings
from vectorstore.local_store import cosine_similarity

HASH_DIMENSIONS = 64


class HashEmbedder:
    """Bag-of-words hashing embedder. Identical text gives identical vectors."""

    def __init__(self, dimensions: int = HASH_DIMENSIONS):
        self.dimensions = dimensions
        self.mock_count = 0
        self.calls = 0

    @property
    def available(self) -> bool:
        return True

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        vector = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector


class FakeCollection:
    """Minimal stand-in for a chromadb Collection, cosine space."""

    def __init__(self, name: str, query_delay: float = 0.0):
        self.name = name
        self.query_delay = query_delay
        self.vectors: dict[str, list[float]] = {}
        self.metadatas: dict[str, dict] = {}

    def upsert(self, ids, embeddings, metadatas):
        for rid, vector, meta in zip(ids, embeddings, metadatas):
            # chromadb rejects None metadata values
            assert all(v is not None for v in meta.values()), meta
            self.vectors[rid] = list(vector)
            self.metadatas[rid] = dict(meta)

    def query(self, query_embeddings, n_results, include):
        if self.query_delay:
            time.sleep(self.query_delay)
        query = query_embeddings[0]
        ranked = sorted(
            ((1.0 - cosine_similarity(query, v), rid) for rid, v in self.vectors.items()),
        )[:n_results]
        return {
            "ids": [[rid for _, rid in ranked]],
            "metadatas": [[self.metadatas[rid] for _, rid in ranked]],
            "distances": [[dist for dist, _ in ranked]],
        }

    def get(self, ids=None, where=None, include=None):
        if ids is not None:
            found = [rid for rid in ids if rid in self.metadatas]
        else:
            found = [
                rid for rid, meta in self.metadatas.items()
                if all(meta.get(k) == v for k, v in (where or {}).items())
            ]
        return {"ids": found, "metadatas": [self.metadatas[rid] for rid in found]}

    def delete(self, ids):
        for rid in ids:
            self.vectors.pop(rid, None)
            self.metadatas.pop(rid, None)

    def count(self):
        return len(self.vectors)


class FakeChromaClient:
    def __init__(self, collections=None, connect_delay: float = 0.0):
        self.collections = {c.name: c for c in (collections or [])}
        self.connect_delay = connect_delay
        self.created = []

    def list_collections(self):
        if self.connect_delay:
            time.sleep(self.connect_delay)
        return [SimpleNamespace(name=name) for name in self.collections]

    def get_collection(self, name):
        return self.collections[name]

    def create_collection(self, name, metadata=None):
        collection = FakeCollection(name)
        self.collections[name] = collection
        self.created.append((name, metadata))
        return collection


class ClientFactory:
    """Counts connection attempts; fails the first ``failures`` of them."""

    def __init__(self, client=None, failures: int = 0, error: Exception = None):
        self.client = client
        self.failures = failures
        self.error = error or ConnectionError("connection refused")
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            attempt = self.calls
        if self.client is None or attempt <= self.failures:
            raise self.error
        return self.client


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path / "data",
        sync_delay_seconds=0,
        remote_init_retries=1,
        remote_init_backoff_seconds=0,
        remote_timeout_seconds=2,
    )


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def collection(settings):
    return FakeCollection(settings.chroma_collection)


@pytest.fixture
def healthy_factory(collection):
    return ClientFactory(FakeChromaClient([collection]))


@pytest.fixture
def down_factory():
    return ClientFactory(client=None)
