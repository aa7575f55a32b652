"""JSON-file backed vector store with exact cosine-similarity search.

Used when the remote store is unreachable, misconfigured or too slow. Records
live in two in-memory maps (vectors by id, metadata by id) that are mirrored
to ``vectors.json`` and ``metadata.json`` in the data directory. Both files
are rewritten wholesale on every mutation.

Search is an exact scan: the stored vectors are stacked into one matrix and
scored against the query with a single normalised matrix-vector product.

Only one process may write to a given data directory; concurrent writers from
several processes are not supported.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
import orjson

from schemas.records import DocumentRecord, QueryResult, StoreStats, TabMetadata
from vectorstore.base import VectorBackend
from vectorstore.errors import EmbeddingUnavailableError, VectorDimensionError

logger = logging.getLogger(__name__)

VECTOR_FILE = "vectors.json"
METADATA_FILE = "metadata.json"


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """dot(a, b) / (|a| * |b|), or 0.0 when either magnitude is zero."""
    if len(a) != len(b):
        raise VectorDimensionError(f"Cannot compare vectors of length {len(a)} and {len(b)}")

    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


class LocalVectorStore(VectorBackend):
    """Exact-search fallback tier persisted as flat JSON files."""

    name = "local"

    def __init__(self, data_dir: Path, embedder=None):
        self.data_dir = Path(data_dir)
        self.embedder = embedder
        self.vector_path = self.data_dir / VECTOR_FILE
        self.metadata_path = self.data_dir / METADATA_FILE
        self._vectors: dict[str, list[float]] = {}
        self._metadata: dict[str, dict] = {}
        self._loaded = False

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.vector_path, self.metadata_path):
            if not path.exists():
                path.write_bytes(b"{}")
        self._vectors = self._load(self.vector_path)
        self._metadata = self._load(self.metadata_path)
        self._loaded = True
        logger.info(
            "Local vector store loaded from %s (%d records)",
            self.data_dir, len(self._metadata),
        )

    def _load(self, path: Path) -> dict:
        try:
            data = orjson.loads(path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.error("Error loading %s, starting empty: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Ignoring %s: expected a JSON object", path)
            return {}
        return data

    def _save(self) -> None:
        # Best effort: the in-memory maps stay authoritative if a write fails
        for path, payload in ((self.vector_path, self._vectors), (self.metadata_path, self._metadata)):
            try:
                path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
            except OSError as e:
                logger.error("Error saving %s: %s", path, e)

    # -------------------------------------------------------------------
    # Record access (shared with the text-match tier)
    # -------------------------------------------------------------------

    def put(self, record_id: str, vector: Optional[list[float]], metadata: TabMetadata) -> None:
        """Store metadata and, when given, the vector for ``record_id``."""
        self._ensure_loaded()
        if vector is not None:
            self._vectors[record_id] = list(vector)
        else:
            self._vectors.pop(record_id, None)
        self._metadata[record_id] = metadata.to_wire()
        self._save()

    def get(self, record_id: str) -> Optional[TabMetadata]:
        self._ensure_loaded()
        data = self._metadata.get(record_id)
        return TabMetadata.model_validate(data) if data is not None else None

    def iter_metadata(self) -> Iterator[tuple[str, TabMetadata]]:
        self._ensure_loaded()
        for record_id, data in list(self._metadata.items()):
            yield record_id, TabMetadata.model_validate(data)

    def remove(self, record_id: str) -> list[str]:
        """Remove a record and its chunks by scanning every record's ``parentId``."""
        self._ensure_loaded()
        ids = [record_id] if record_id in self._metadata or record_id in self._vectors else []
        ids.extend(
            rid for rid, meta in self._metadata.items()
            if meta.get("parentId") == record_id and rid != record_id
        )
        if not ids:
            return []

        for rid in ids:
            self._vectors.pop(rid, None)
            self._metadata.pop(rid, None)
        self._save()
        return ids

    def count(self) -> int:
        self._ensure_loaded()
        return len(self._metadata)

    # -------------------------------------------------------------------
    # VectorBackend
    # -------------------------------------------------------------------

    async def _vector_for(self, text: str, vector: Optional[list[float]]) -> list[float]:
        if vector is not None:
            return vector
        if self.embedder is None:
            raise EmbeddingUnavailableError("local store has no embedder")
        return await self.embedder.embed(text)

    async def upsert(self, record: DocumentRecord) -> str:
        vector = await self._vector_for(record.text, record.vector)
        self.put(record.id, vector, record.metadata)
        logger.debug("Stored %s in local vector store", record.id)
        return record.id

    async def search(
        self,
        query_text: str,
        limit: int,
        query_vector: Optional[list[float]] = None,
    ) -> list[QueryResult]:
        query_vector = await self._vector_for(query_text, query_vector)
        self._ensure_loaded()

        ids = [rid for rid in self._vectors if rid in self._metadata]
        if not ids or limit <= 0:
            return []
        for rid in ids:
            if len(self._vectors[rid]) != len(query_vector):
                raise VectorDimensionError(
                    f"Stored vector {rid} has length {len(self._vectors[rid])}, query has {len(query_vector)}"
                )

        matrix = np.asarray([self._vectors[rid] for rid in ids], dtype=float)
        query = np.asarray(query_vector, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        # Zero-magnitude vectors score 0.0
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [
            QueryResult.from_metadata(
                ids[i], TabMetadata.model_validate(self._metadata[ids[i]]), float(scores[i])
            )
            for i in order
        ]

    async def delete(self, record_id: str) -> list[str]:
        return self.remove(record_id)

    async def stats(self) -> StoreStats:
        total = self.count()
        return StoreStats(
            total_vectors=total,
            namespaces={"default": {"vectorCount": total}},
        )
