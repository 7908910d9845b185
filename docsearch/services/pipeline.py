from __future__ import annotations

from dataclasses import dataclass

import httpx

from docsearch.core.config import settings
from docsearch.services.indexing.document_store import DocumentStore
from docsearch.services.ingestion.extractor import ContentExtractor
from docsearch.services.qa.web_search import WebSearchClient
from docsearch.services.retrieval.circuit_breaker import CircuitBreaker
from docsearch.services.retrieval.executors import InlineTaskExecutor, ThreadTaskExecutor
from docsearch.services.retrieval.orchestrator import SearchOrchestrator
from docsearch.services.retrieval.remote_index import RemoteIndexClient


@dataclass
class DocumentPipeline:
    """
    All mutable pipeline state in one place: the document store with its
    processing queue, and the search orchestrator with its worker circuit.
    """

    store: DocumentStore
    orchestrator: SearchOrchestrator
    web_search: WebSearchClient | None

    def reset(self) -> None:
        self.store.reset()
        self.orchestrator.reset_workers()

    def shutdown(self) -> None:
        self.orchestrator.background.shutdown()


def build_pipeline(
    *,
    extractor: ContentExtractor | None = None,
    remote_url: str | None = None,
    remote_transport: httpx.AsyncBaseTransport | None = None,
    web_transport: httpx.AsyncBaseTransport | None = None,
) -> DocumentPipeline:
    store = DocumentStore(extractor)

    remote_url = remote_url or settings.REMOTE_INDEX_URL
    remote = RemoteIndexClient(remote_url, transport=remote_transport) if remote_url else None

    orchestrator = SearchOrchestrator(
        store,
        background=ThreadTaskExecutor(settings.WORKER_MAX_THREADS),
        inline=InlineTaskExecutor(),
        breaker=CircuitBreaker(settings.WORKER_FAILURE_THRESHOLD, name="scoring workers"),
        remote=remote,
    )

    web = WebSearchClient(transport=web_transport) if settings.WEB_SEARCH_ENABLED else None

    return DocumentPipeline(store=store, orchestrator=orchestrator, web_search=web)
