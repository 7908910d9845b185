from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from docsearch.core.config import settings
from docsearch.core.errors import DocumentNotFoundError, ProcessingTimeoutError
from docsearch.services.indexing.chunking import DocumentChunk, chunk_text
from docsearch.services.ingestion.extractor import ContentExtractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentIndex:
    document_id: str
    document_name: str
    chunks: tuple[DocumentChunk, ...]
    total_words: int
    total_pages: int
    indexed_at: datetime
    content_length: int
    truncated: bool = False
    extraction_failed: bool = False
    extraction_error: str | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class DocumentStats:
    total_chunks: int
    total_words: int
    total_pages: int
    indexed_at: datetime


@dataclass(frozen=True)
class MemoryStats:
    total_documents: int
    total_chunks: int
    total_words: int
    processing_queue_size: int


@dataclass(frozen=True)
class BatchItem:
    file_path: str
    document_id: str
    document_name: str
    session_id: str | None = None


@dataclass(frozen=True)
class BatchError:
    document_id: str
    document_name: str
    error: str


@dataclass(frozen=True)
class BatchOutcome:
    results: list[DocumentIndex]
    errors: list[BatchError]

    @property
    def total(self) -> int:
        return len(self.results) + len(self.errors)


class DocumentStore:
    """
    In-memory document indexes plus the in-flight processing queue.

    At most one extraction runs per document id; concurrent callers for
    the same id await the same task. An index is replaced in a single
    dict assignment, so readers never see a half-built chunk list.
    """

    def __init__(
        self,
        extractor: ContentExtractor | None = None,
        *,
        processing_timeout: float | None = None,
        batch_concurrency: int | None = None,
        batch_delay: float | None = None,
    ):
        self.extractor = extractor or ContentExtractor()
        self.processing_timeout = (
            processing_timeout or settings.DOCUMENT_PROCESSING_TIMEOUT_SECONDS
        )
        self.batch_concurrency = batch_concurrency or settings.BATCH_CONCURRENCY
        self.batch_delay = settings.BATCH_DELAY_SECONDS if batch_delay is None else batch_delay

        self._documents: dict[str, DocumentIndex] = {}
        self._queue: dict[str, asyncio.Task[DocumentIndex]] = {}

    async def process_document(
        self,
        file_path: str | Path,
        document_id: str,
        document_name: str,
        *,
        cleanup: bool = False,
        session_id: str | None = None,
    ) -> DocumentIndex:
        task = self._queue.get(document_id)
        if task is not None:
            logger.info("Document %s already processing, joining in-flight task", document_id)
            try:
                return await asyncio.shield(task)
            finally:
                # this caller's own file is never extracted
                if cleanup:
                    Path(file_path).unlink(missing_ok=True)

        if not Path(file_path).is_file():
            raise DocumentNotFoundError(f"File not found: {file_path}")

        task = asyncio.create_task(
            self._process(Path(file_path), document_id, document_name, cleanup, session_id)
        )
        self._queue[document_id] = task

        return await asyncio.shield(task)

    async def _process(
        self,
        file_path: Path,
        document_id: str,
        document_name: str,
        cleanup: bool,
        session_id: str | None,
    ) -> DocumentIndex:
        try:
            return await asyncio.wait_for(
                self._build(file_path, document_id, document_name, cleanup, session_id),
                timeout=self.processing_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Processing %s timed out after %.1fs", document_id, self.processing_timeout
            )
            raise ProcessingTimeoutError(
                f"Processing '{document_name}' exceeded {self.processing_timeout:g} seconds."
            )
        finally:
            self._queue.pop(document_id, None)

    async def _build(
        self,
        file_path: Path,
        document_id: str,
        document_name: str,
        cleanup: bool,
        session_id: str | None,
    ) -> DocumentIndex:
        extracted = await self.extractor.extract(file_path, document_name, cleanup=cleanup)

        chunking = await asyncio.to_thread(
            chunk_text,
            extracted.text,
            document_id=document_id,
            page_word_offsets=extracted.page_word_offsets,
        )

        total_pages = extracted.page_count or max(
            1, math.ceil(len(chunking.chunks) / max(1, settings.CHUNKS_PER_PAGE))
        )

        index = DocumentIndex(
            document_id=document_id,
            document_name=document_name,
            chunks=tuple(chunking.chunks),
            total_words=chunking.total_words,
            total_pages=total_pages,
            indexed_at=datetime.now(timezone.utc),
            content_length=len(extracted.text),
            truncated=chunking.truncated,
            extraction_failed=not extracted.success,
            extraction_error=extracted.error,
            session_id=session_id,
        )
        self._documents[document_id] = index

        logger.info(
            "Indexed %s chunks=%d words=%d pages=%d extraction_failed=%s",
            document_id,
            len(index.chunks),
            index.total_words,
            index.total_pages,
            index.extraction_failed,
        )
        return index

    async def batch_process(self, items: list[BatchItem]) -> BatchOutcome:
        """
        Process documents in groups of `batch_concurrency`, pausing between
        groups. One failing item never aborts the batch.
        """
        results: list[DocumentIndex] = []
        errors: list[BatchError] = []

        for start in range(0, len(items), self.batch_concurrency):
            group = items[start : start + self.batch_concurrency]
            outcomes = await asyncio.gather(
                *(
                    self.process_document(
                        item.file_path,
                        item.document_id,
                        item.document_name,
                        session_id=item.session_id,
                    )
                    for item in group
                ),
                return_exceptions=True,
            )

            for item, outcome in zip(group, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning("Batch item %s failed: %s", item.document_id, outcome)
                    errors.append(
                        BatchError(
                            document_id=item.document_id,
                            document_name=item.document_name,
                            error=str(outcome),
                        )
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results.append(outcome)

            if start + self.batch_concurrency < len(items):
                await asyncio.sleep(self.batch_delay)

        return BatchOutcome(results=results, errors=errors)

    def get(self, document_id: str) -> DocumentIndex | None:
        return self._documents.get(document_id)

    def get_stats(self, document_id: str) -> DocumentStats | None:
        index = self._documents.get(document_id)
        if index is None:
            return None

        return DocumentStats(
            total_chunks=len(index.chunks),
            total_words=index.total_words,
            total_pages=index.total_pages,
            indexed_at=index.indexed_at,
        )

    def searchable(
        self,
        document_ids: list[str] | None = None,
        session_id: str | None = None,
    ) -> list[DocumentIndex]:
        """
        Candidate documents for a query. Failed extractions are never candidates;
        documents tagged with another session are hidden.
        """
        if document_ids is None:
            candidates = list(self._documents.values())
        else:
            candidates = [self._documents[d] for d in document_ids if d in self._documents]

        return [
            idx
            for idx in candidates
            if not idx.extraction_failed
            and (session_id is None or idx.session_id in (None, session_id))
        ]

    def clear(self, document_id: str) -> bool:
        removed = self._documents.pop(document_id, None) is not None
        if removed:
            logger.info("Cleared document %s", document_id)
        return removed

    def list_documents(self) -> list[DocumentIndex]:
        """Indexed documents, most recently indexed first."""
        return sorted(self._documents.values(), key=lambda d: d.indexed_at, reverse=True)

    def memory_stats(self) -> MemoryStats:
        docs = list(self._documents.values())
        return MemoryStats(
            total_documents=len(docs),
            total_chunks=sum(len(d.chunks) for d in docs),
            total_words=sum(d.total_words for d in docs),
            processing_queue_size=len(self._queue),
        )

    def queue_status(self) -> dict[str, object]:
        return {"size": len(self._queue), "documents": sorted(self._queue)}

    def reset(self) -> None:
        for task in self._queue.values():
            task.cancel()
        self._queue.clear()
        self._documents.clear()
