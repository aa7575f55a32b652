"""Pydantic models for tab payloads sent by the browser extension."""

from typing import Optional, Union

from pydantic import BaseModel, Field

from schemas.records import CamelModel


class TabContent(BaseModel):
    text: Optional[str] = None
    html: Optional[str] = None
    meta: dict = Field(default_factory=dict)


class TabPayload(CamelModel):
    url: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: Union[TabContent, str]
    timestamp: Optional[str] = None
    id: Optional[str] = None


class CleanedContent(BaseModel):
    text: str
    meta: dict = Field(default_factory=dict)


class TabEnrichment(BaseModel):
    word_count: int
    reading_time: int
    reading_time_text: str
    summary: Optional[str] = None


class IndexResult(CamelModel):
    success: bool
    id: Optional[str] = None
    message: str
    chunk_count: Optional[int] = None
    from_fallback: bool = False


class SyncItemResult(CamelModel):
    url: str
    title: str
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


class RemoveResult(CamelModel):
    success: bool
    message: str
    id: str
    deleted_count: int = 0
    from_fallback: bool = False
