from typing import Optional

from pydantic import Field

from docsearch.models.base import CamelModel


class SearchRequest(CamelModel):
    query: str = Field(..., min_length=1)
    document_ids: Optional[list[str]] = None


class ChunkOut(CamelModel):
    id: str
    content: str
    page_num: Optional[int] = None
    word_count: int
    relevance_score: float
    matches: list[str] = []
    start_word: Optional[int] = None
    end_word: Optional[int] = None


class SearchResultOut(CamelModel):
    document_id: str
    document_name: str
    total_relevance_score: float
    chunks: list[ChunkOut]


class SearchResponse(CamelModel):
    success: bool = True
    results: list[SearchResultOut]
    total_results: int
    tier: Optional[str] = None


class SearchStatusResponse(CamelModel):
    tiers: list[str]
    remote_configured: bool
    workers: dict


class WorkerResetResponse(CamelModel):
    success: bool = True
    message: str
