import logging

from fastapi import APIRouter, Depends, HTTPException

from docsearch.api.deps import get_pipeline
from docsearch.core.config import settings
from docsearch.core.errors import SearchUnavailableError
from docsearch.models.search import (
    ChunkOut,
    SearchRequest,
    SearchResponse,
    SearchResultOut,
    SearchStatusResponse,
    WorkerResetResponse,
)
from docsearch.services.pipeline import DocumentPipeline
from docsearch.services.retrieval.scoring import SearchResult

router = APIRouter(tags=["search"])
logger = logging.getLogger(__name__)


def snippet(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def to_result_out(res: SearchResult) -> SearchResultOut:
    return SearchResultOut(
        document_id=res.document_id,
        document_name=res.document_name,
        total_relevance_score=res.total_relevance_score,
        chunks=[
            ChunkOut(
                id=c.id,
                content=snippet(c.content, settings.SEARCH_SNIPPET_CHARS),
                page_num=c.page_num,
                word_count=c.word_count,
                relevance_score=c.relevance_score,
                matches=list(c.matches),
                start_word=c.start_word,
                end_word=c.end_word,
            )
            for c in res.chunks
        ],
    )


@router.post("/documents/search", response_model=SearchResponse)
async def search_documents(
    body: SearchRequest,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> SearchResponse:
    try:
        outcome = await pipeline.orchestrator.search(body.query, body.document_ids)
    except ValueError:
        raise HTTPException(status_code=400, detail="Query must not be empty.")
    except SearchUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message)

    results = [to_result_out(r) for r in outcome.results]

    return SearchResponse(results=results, total_results=len(results), tier=outcome.tier)


@router.get("/search/status", response_model=SearchStatusResponse)
def search_status(pipeline: DocumentPipeline = Depends(get_pipeline)) -> SearchStatusResponse:
    return SearchStatusResponse(**pipeline.orchestrator.status())


@router.post("/search/workers/reset", response_model=WorkerResetResponse)
def reset_workers(pipeline: DocumentPipeline = Depends(get_pipeline)) -> WorkerResetResponse:
    pipeline.orchestrator.reset_workers()
    logger.info("Scoring workers reset on request")

    return WorkerResetResponse(message="Background scoring workers reset.")
