from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from docsearch.core.config import settings
from docsearch.core.errors import BackendUnavailableError, SearchTimeoutError
from docsearch.models.search import SearchResponse
from docsearch.services.indexing.chunking import DocumentChunk
from docsearch.services.retrieval.scoring import SearchResult

logger = logging.getLogger(__name__)


class RemoteIndexClient:
    """
    Client of a remote document-processing service exposing the same
    /ping and /documents/search endpoints as this API.
    """

    def __init__(
        self,
        base_url: str,
        *,
        ping_timeout: float | None = None,
        search_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.ping_timeout = ping_timeout or settings.PING_TIMEOUT_SECONDS
        self.search_timeout = search_timeout or settings.SEARCH_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=self._transport
        )

    async def ping(self) -> None:
        """Raises BackendUnavailableError unless the service answers /ping."""
        try:
            async with self._client(self.ping_timeout) as client:
                r = await client.get("/ping")
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"Remote index unreachable: {e!r}") from e

    async def search(self, query: str, document_ids: list[str] | None) -> list[SearchResult]:
        body: dict[str, object] = {"query": query}
        if document_ids is not None:
            body["documentIds"] = document_ids

        try:
            async with self._client(self.search_timeout) as client:
                r = await client.post("/documents/search", json=body)
                r.raise_for_status()
                payload = SearchResponse.model_validate(r.json())
        except httpx.TimeoutException as e:
            raise SearchTimeoutError(
                f"Remote search timed out after {self.search_timeout:g} seconds."
            ) from e
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"Remote search failed: {e!r}") from e
        except (ValidationError, ValueError) as e:
            raise BackendUnavailableError("Remote search returned a malformed payload.") from e

        logger.info("Remote search returned %d results", len(payload.results))

        return [
            SearchResult(
                document_id=res.document_id,
                document_name=res.document_name,
                total_relevance_score=res.total_relevance_score,
                chunks=[
                    DocumentChunk(
                        id=c.id,
                        content=c.content,
                        word_count=c.word_count,
                        chunk_index=i,
                        start_word=c.start_word or 0,
                        end_word=c.end_word or 0,
                        page_num=c.page_num,
                        relevance_score=c.relevance_score,
                        matches=tuple(c.matches),
                    )
                    for i, c in enumerate(res.chunks)
                ],
            )
            for res in payload.results
        ]
