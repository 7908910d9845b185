from datetime import datetime
from typing import Optional

from pydantic import Field

from docsearch.models.base import CamelModel


class ProcessRequest(CamelModel):
    file_path: str = Field(..., min_length=1)
    document_id: str = Field(..., min_length=1)
    document_name: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class DocumentIndexSummary(CamelModel):
    document_id: str
    document_name: str
    total_chunks: int
    total_words: int
    total_pages: int
    indexed_at: datetime
    truncated: bool = False
    extraction_failed: bool = False
    extraction_error: Optional[str] = None


class ProcessResponse(CamelModel):
    success: bool = True
    document_index: DocumentIndexSummary


class BatchRequest(CamelModel):
    documents: list[ProcessRequest] = Field(..., min_length=1)


class BatchErrorItem(CamelModel):
    document_id: str
    document_name: str
    error: str


class BatchSummary(CamelModel):
    total: int
    successful: int
    failed: int


class BatchResponse(CamelModel):
    success: bool = True
    results: list[DocumentIndexSummary]
    errors: list[BatchErrorItem]
    summary: BatchSummary


class DocumentStatsBody(CamelModel):
    total_chunks: int
    total_words: int
    total_pages: int
    indexed_at: datetime


class DocumentStatsResponse(CamelModel):
    success: bool = True
    stats: DocumentStatsBody


class MemoryStatsBody(CamelModel):
    total_documents: int
    total_chunks: int
    total_words: int
    processing_queue_size: int


class MemoryStatsResponse(CamelModel):
    success: bool = True
    stats: MemoryStatsBody


class QueueStatusResponse(CamelModel):
    size: int
    documents: list[str]


class ClearResponse(CamelModel):
    success: bool = True
    message: str


class DocumentListResponse(CamelModel):
    success: bool = True
    documents: list[DocumentIndexSummary]
