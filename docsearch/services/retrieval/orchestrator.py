from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from docsearch.core.config import settings
from docsearch.core.errors import SearchUnavailableError, WorkerCircuitOpenError
from docsearch.services.indexing.chunking import DocumentChunk
from docsearch.services.indexing.document_store import DocumentIndex, DocumentStore
from docsearch.services.retrieval.circuit_breaker import CircuitBreaker
from docsearch.services.retrieval.executors import TaskExecutor, with_timeout
from docsearch.services.retrieval.remote_index import RemoteIndexClient
from docsearch.services.retrieval.scoring import (
    SearchResult,
    build_result,
    rank_results,
    score_chunk,
    score_document,
)

logger = logging.getLogger(__name__)

TIER_REMOTE = "remote"
TIER_ENHANCED = "enhanced"
TIER_BASIC = "basic"

# chunks per background task in the enhanced tier
ENHANCED_BATCH_CHUNKS = 64


@dataclass(frozen=True)
class SearchProgress:
    processed: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 100
        return round(100 * self.processed / self.total)


@dataclass(frozen=True)
class SearchOutcome:
    results: list[SearchResult]
    tier: str


ProgressCallback = Callable[[SearchProgress], None]


def _score_batch(chunks: tuple[DocumentChunk, ...], query: str) -> list[DocumentChunk]:
    return [score_chunk(c, query) for c in chunks]


def _score_all(candidates: list[DocumentIndex], query: str) -> list[SearchResult]:
    results = []
    for index in candidates:
        result = score_document(index, query)
        if result is not None:
            results.append(result)
    return results


class SearchOrchestrator:
    """
    Runs a query through the search tiers in order:

        remote   -> remote index service, when configured and answering /ping
        enhanced -> local scoring on background threads, for large documents,
                    while the worker circuit is closed
        basic    -> local scoring inline, always available

    A tier that fails or times out is logged and the next one is tried.
    Only when every tier fails does the caller see SearchUnavailableError.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        background: TaskExecutor,
        inline: TaskExecutor,
        breaker: CircuitBreaker,
        remote: RemoteIndexClient | None = None,
        search_timeout: float | None = None,
        large_document_chars: int | None = None,
    ):
        self.store = store
        self.background = background
        self.inline = inline
        self.breaker = breaker
        self.remote = remote
        self.search_timeout = search_timeout or settings.SEARCH_TIMEOUT_SECONDS
        self.large_document_chars = large_document_chars or settings.LARGE_DOCUMENT_CHARS

    async def search(
        self,
        query: str,
        document_ids: list[str] | None = None,
        *,
        session_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SearchOutcome:
        query = " ".join((query or "").split())
        if not query:
            raise ValueError("EMPTY_QUERY")

        candidates = self.store.searchable(document_ids, session_id)
        failures: list[str] = []

        for tier in self._tiers(candidates):
            try:
                results = await self._run_tier(tier, query, document_ids, candidates, on_progress)
            except Exception as e:
                logger.warning("Search tier %s failed, falling back: %s", tier, e)
                failures.append(f"{tier}: {e}")
                continue

            if results is None:
                continue

            ranked = [self._cap_chunks(r) for r in rank_results(results)]
            logger.info(
                "Search tier=%s candidates=%d results=%d", tier, len(candidates), len(ranked)
            )
            return SearchOutcome(results=ranked, tier=tier)

        raise SearchUnavailableError("Search unavailable: " + "; ".join(failures))

    def _tiers(self, candidates: list[DocumentIndex]) -> list[str]:
        tiers = []
        if self.remote is not None:
            tiers.append(TIER_REMOTE)
        if any(c.content_length > self.large_document_chars for c in candidates):
            tiers.append(TIER_ENHANCED)
        tiers.append(TIER_BASIC)
        return tiers

    async def _run_tier(
        self,
        tier: str,
        query: str,
        document_ids: list[str] | None,
        candidates: list[DocumentIndex],
        on_progress: ProgressCallback | None,
    ) -> list[SearchResult] | None:
        if tier == TIER_REMOTE:
            return await self._search_remote(query, document_ids, candidates)
        if tier == TIER_ENHANCED:
            return await self._search_enhanced(query, candidates, on_progress)

        return await with_timeout(
            self.inline.submit(_score_all, candidates, query),
            self.search_timeout,
            "Basic search",
        )

    async def _search_remote(
        self,
        query: str,
        document_ids: list[str] | None,
        candidates: list[DocumentIndex],
    ) -> list[SearchResult] | None:
        await self.remote.ping()
        results = await self.remote.search(query, document_ids)

        if not results and candidates:
            # remote index may not hold what was indexed locally
            logger.info("Remote search returned nothing, trying local tiers")
            return None

        return results

    async def _search_enhanced(
        self,
        query: str,
        candidates: list[DocumentIndex],
        on_progress: ProgressCallback | None,
    ) -> list[SearchResult]:
        if self.breaker.is_open:
            raise WorkerCircuitOpenError(
                f"Background scoring disabled after {self.breaker.failures} failures."
            )

        try:
            return await with_timeout(
                self._score_in_background(query, candidates, on_progress),
                self.search_timeout,
                "Enhanced search",
            )
        except Exception as e:
            self.breaker.record_failure(str(e))
            raise

    async def _score_in_background(
        self,
        query: str,
        candidates: list[DocumentIndex],
        on_progress: ProgressCallback | None,
    ) -> list[SearchResult]:
        total = sum(len(c.chunks) for c in candidates)
        processed = 0
        results: list[SearchResult] = []

        for index in candidates:
            scored: list[DocumentChunk] = []
            for start in range(0, len(index.chunks), ENHANCED_BATCH_CHUNKS):
                batch = index.chunks[start : start + ENHANCED_BATCH_CHUNKS]
                scored.extend(await self.background.submit(_score_batch, batch, query))

                processed += len(batch)
                if on_progress is not None:
                    on_progress(SearchProgress(processed=processed, total=total))

            result = build_result(index, scored)
            if result is not None:
                results.append(result)

        return results

    @staticmethod
    def _cap_chunks(result: SearchResult) -> SearchResult:
        chunks = sorted(result.chunks, key=lambda c: -c.relevance_score)
        return replace(result, chunks=chunks[: settings.MAX_CHUNKS_PER_RESULT])

    def reset_workers(self) -> None:
        """Re-enable the background tier. Safe to call at any time."""
        self.breaker.reset()
        self.background.recycle()

    def status(self) -> dict[str, object]:
        tiers = [TIER_REMOTE] if self.remote is not None else []
        if not self.breaker.is_open:
            tiers.append(TIER_ENHANCED)
        tiers.append(TIER_BASIC)

        return {
            "tiers": tiers,
            "remote_configured": self.remote is not None,
            "workers": self.breaker.status(),
        }
