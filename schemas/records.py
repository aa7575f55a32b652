"""Pydantic models for indexed tab records and vector-store results.

Field names are snake_case in Python and camelCase on the wire (JSON files,
vector-store metadata and HTTP responses).
"""

import hashlib
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def url_to_id(url: str) -> str:
    """Deterministic record id for a URL (first 16 hex chars of its SHA-256)."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump with camelCase keys, leaving out absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TabMetadata(CamelModel):
    url: str
    title: str
    snippet: str = Field(default="", description="Bounded preview of the indexed text")
    timestamp: str
    parent_id: Optional[str] = Field(
        None, description="Id of the tab this chunk was split from; lookup only"
    )
    chunk_index: int = 0
    total_chunks: int = 1
    summary: Optional[str] = None
    reading_time: Optional[int] = Field(None, description="Estimated minutes to read")
    word_count: Optional[int] = None


class DocumentRecord(BaseModel):
    """One indexed unit: a whole short tab or one chunk of a long tab."""

    id: Optional[str] = Field(None, description="Derived from metadata.url when omitted")
    text: str = Field(description="Text the vector is computed from")
    metadata: TabMetadata
    vector: Optional[list[float]] = None

    @model_validator(mode="after")
    def _default_id(self) -> "DocumentRecord":
        if not self.id:
            self.id = url_to_id(self.metadata.url)
        return self


class QueryResult(CamelModel):
    id: str
    url: str
    title: str
    snippet: str = ""
    score: float = Field(description="Similarity, higher is more relevant")
    timestamp: str
    summary: Optional[str] = None
    reading_time: Optional[int] = None
    word_count: Optional[int] = None

    @classmethod
    def from_metadata(cls, record_id: str, metadata: TabMetadata, score: float) -> "QueryResult":
        return cls(
            id=record_id,
            url=metadata.url,
            title=metadata.title,
            snippet=metadata.snippet,
            score=float(score),
            timestamp=metadata.timestamp,
            summary=metadata.summary,
            reading_time=metadata.reading_time,
            word_count=metadata.word_count,
        )


class UpsertResult(CamelModel):
    success: bool = True
    id: str
    from_fallback: bool = False
    tier: str = ""


class SearchResults(CamelModel):
    results: list[QueryResult] = Field(default_factory=list)
    from_fallback: bool = False
    tier: str = ""


class DeleteResult(CamelModel):
    success: bool
    id: str
    deleted_ids: list[str] = Field(default_factory=list)
    from_fallback: bool = False
    tier: str = ""


class StoreStats(CamelModel):
    total_vectors: int = 0
    namespaces: dict[str, dict[str, int]] = Field(default_factory=dict)
    fallback_count: Optional[int] = None
    from_fallback: bool = False
