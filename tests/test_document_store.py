import asyncio
import sys
from pathlib import Path

import pytest

from docsearch.core.config import settings
from docsearch.core.errors import (
    ContentValidationError,
    DocumentNotFoundError,
    ProcessingTimeoutError,
)
from docsearch.services.indexing.document_store import BatchItem, DocumentStore
from docsearch.services.ingestion.extractor import ContentExtractor, ExtractionResult

TEXT = " ".join(f"word{i}" for i in range(2500))


class CountingExtractor:
    """Stand-in extractor that counts calls and tracks concurrency."""

    def __init__(self, text: str = TEXT, delay: float = 0.05, success: bool = True):
        self.text = text
        self.delay = delay
        self.success = success
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def extract(self, file_path, original_name, *, cleanup=False):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        return ExtractionResult(
            success=self.success,
            text=self.text,
            extension=".txt",
            error=None if self.success else "parser crashed",
        )


@pytest.fixture()
def source_file(tmp_path: Path) -> Path:
    p = tmp_path / "source.txt"
    p.write_text("placeholder", encoding="utf-8")
    return p


def test_reprocessing_is_idempotent(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0))

    first = asyncio.run(store.process_document(source_file, "doc1", "a.txt"))
    second = asyncio.run(store.process_document(source_file, "doc1", "a.txt"))

    assert (first.total_words, len(first.chunks)) == (second.total_words, len(second.chunks))
    assert first.total_words == 2500
    # 1000-word windows every 900 words
    assert len(first.chunks) == 3
    assert store.get("doc1") is second


def test_concurrent_processing_is_coalesced(source_file: Path):
    extractor = CountingExtractor(delay=0.1)
    store = DocumentStore(extractor)

    async def main():
        return await asyncio.gather(
            store.process_document(source_file, "doc1", "a.txt"),
            store.process_document(source_file, "doc1", "a.txt"),
        )

    a, b = asyncio.run(main())

    assert extractor.calls == 1
    assert a is b
    assert store.memory_stats().processing_queue_size == 0


def test_queue_entry_visible_while_in_flight(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0.1))

    async def main():
        task = asyncio.create_task(store.process_document(source_file, "doc1", "a.txt"))
        await asyncio.sleep(0.02)
        during = store.queue_status()
        await task
        return during

    during = asyncio.run(main())

    assert during == {"size": 1, "documents": ["doc1"]}
    assert store.queue_status()["size"] == 0


def test_missing_file_raises_not_found(tmp_path: Path):
    store = DocumentStore(CountingExtractor())

    with pytest.raises(DocumentNotFoundError):
        asyncio.run(store.process_document(tmp_path / "nope.txt", "doc1", "nope.txt"))

    assert store.get("doc1") is None


def test_validation_failure_not_indexed_and_retry_possible(write_text):
    store = DocumentStore()
    empty = write_text("empty.txt", "")

    with pytest.raises(ContentValidationError):
        asyncio.run(store.process_document(empty, "doc1", "empty.txt"))

    assert store.get_stats("doc1") is None
    assert store.memory_stats().processing_queue_size == 0

    empty.write_text("now there is real content in the file", encoding="utf-8")
    index = asyncio.run(store.process_document(empty, "doc1", "empty.txt"))
    assert index.total_words == 8


def test_extraction_failure_is_indexed_but_not_searchable(source_file: Path):
    store = DocumentStore(CountingExtractor(text="Text extraction failed for a.pdf.", success=False))

    index = asyncio.run(store.process_document(source_file, "doc1", "a.pdf"))

    assert index.extraction_failed is True
    assert index.extraction_error == "parser crashed"
    assert len(index.chunks) == 1
    assert store.searchable() == []


def test_processing_timeout(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=1.0), processing_timeout=0.05)

    with pytest.raises(ProcessingTimeoutError):
        asyncio.run(store.process_document(source_file, "doc1", "a.txt"))

    assert store.memory_stats().processing_queue_size == 0
    assert store.get("doc1") is None


def test_stats_clear_and_memory(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0))
    asyncio.run(store.process_document(source_file, "doc1", "a.txt"))
    asyncio.run(store.process_document(source_file, "doc2", "b.txt"))

    stats = store.get_stats("doc1")
    assert stats.total_chunks == 3
    assert stats.total_words == 2500
    assert stats.total_pages == 3

    mem = store.memory_stats()
    assert (mem.total_documents, mem.total_chunks, mem.total_words) == (2, 6, 5000)

    assert store.clear("doc1") is True
    assert store.clear("doc1") is False
    assert store.get_stats("doc1") is None
    assert store.memory_stats().total_documents == 1


def test_searchable_filters_ids_and_sessions(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0))
    asyncio.run(store.process_document(source_file, "shared", "s.txt"))
    asyncio.run(store.process_document(source_file, "mine", "m.txt", session_id="s1"))
    asyncio.run(store.process_document(source_file, "theirs", "t.txt", session_id="s2"))

    assert {i.document_id for i in store.searchable()} == {"shared", "mine", "theirs"}
    assert {i.document_id for i in store.searchable(session_id="s1")} == {"shared", "mine"}
    assert [i.document_id for i in store.searchable(["theirs", "unknown"])] == ["theirs"]


def test_batch_caps_concurrency_and_collects_errors(tmp_path: Path, source_file: Path):
    extractor = CountingExtractor(delay=0.05)
    store = DocumentStore(extractor, batch_concurrency=3, batch_delay=0)

    items = [BatchItem(str(source_file), f"doc{i}", f"d{i}.txt") for i in range(6)]
    items.insert(2, BatchItem(str(tmp_path / "missing.txt"), "bad", "missing.txt"))

    outcome = asyncio.run(store.batch_process(items))

    assert outcome.total == 7
    assert len(outcome.results) == 6
    assert [e.document_id for e in outcome.errors] == ["bad"]
    assert "File not found" in outcome.errors[0].error
    assert extractor.max_active <= 3


def test_reset_drops_everything(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0))
    asyncio.run(store.process_document(source_file, "doc1", "a.txt"))

    store.reset()

    assert store.memory_stats().total_documents == 0


def test_hung_pdf_is_indexed_as_failed_extraction(tmp_path: Path):
    pdf = tmp_path / "hung.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    extractor = ContentExtractor(
        pdf_timeout=0.5,
        pdf_command=(sys.executable, "-c", "import time; time.sleep(10)"),
    )
    ratio = settings.DOCUMENT_PROCESSING_TIMEOUT_SECONDS / settings.PDF_EXTRACTION_TIMEOUT_SECONDS
    store = DocumentStore(extractor, processing_timeout=0.5 * ratio)

    index = asyncio.run(store.process_document(pdf, "doc1", "hung.pdf"))

    assert ratio > 1
    assert index.extraction_failed is True
    assert "timed out" in index.extraction_error
    assert store.searchable() == []


def test_joined_upload_removes_its_own_file(write_text):
    store = DocumentStore()
    first = write_text("first.txt", "first upload of the quarterly report")
    second = write_text("second.txt", "second upload of the quarterly report")

    async def main():
        return await asyncio.gather(
            store.process_document(first, "doc1", "report.txt", cleanup=True),
            store.process_document(second, "doc1", "report.txt", cleanup=True),
        )

    a, b = asyncio.run(main())

    assert a is b
    assert not first.exists()
    assert not second.exists()


def test_list_documents_newest_first(source_file: Path):
    store = DocumentStore(CountingExtractor(delay=0))
    asyncio.run(store.process_document(source_file, "older", "o.txt"))
    asyncio.run(store.process_document(source_file, "newer", "n.txt"))

    assert [i.document_id for i in store.list_documents()] == ["newer", "older"]
