import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request

from docsearch.api.deps import get_pipeline
from docsearch.core.config import settings
from docsearch.core.errors import AnswerServiceError, InsufficientContextError
from docsearch.models.ask import AskRequest, AskResponse, AskSources, DocumentSource, WebSource
from docsearch.services.pipeline import DocumentPipeline
from docsearch.services.qa.ask_pipeline import ask as run_ask

router = APIRouter(tags=["qa"])
logger = logging.getLogger(__name__)

# failure kind -> (status, user facing message)
ANSWER_ERRORS: dict[str, tuple[int, str]] = {
    "timeout": (
        504,
        "Request Timeout: the answer took too long to generate. "
        "Try a shorter question or fewer documents.",
    ),
    "auth": (
        401,
        "Authentication Error: the answer model could not be accessed. "
        "Please check your API keys (HF_TOKEN).",
    ),
    "network": (
        502,
        "Network Error: unable to connect to the answer service. "
        "Check your connection and try again.",
    ),
    "unavailable": (503, "QA service unavailable (model not loaded)."),
    "failed": (500, "Answer generation failed unexpectedly."),
}


@router.post("/ask", response_model=AskResponse)
async def ask(
    request: Request,
    body: AskRequest,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> AskResponse:
    t0 = time.perf_counter()

    question_raw = (body.query or "").strip()
    if not question_raw:
        raise HTTPException(status_code=400, detail="Question must not be empty.")
    if len(question_raw) > settings.MAX_QUESTION_CHARS:
        raise HTTPException(status_code=400, detail="Question too long.")

    logger.info(
        "ask user=%s session=%s web=%s provider=%s",
        body.user_id,
        body.session_id,
        body.web_search,
        body.ai_provider,
    )

    try:
        qa_svc = getattr(request.app.state, "qa_service", None)
        if qa_svc is None:
            # credential / network problems at load time keep their own message
            kind = getattr(request.app.state, "qa_load_error", None)
            raise AnswerServiceError(kind if kind in ("auth", "network") else "unavailable")

        res = await run_ask(
            question_raw,
            orchestrator=pipeline.orchestrator,
            web_search=pipeline.web_search,
            qa=qa_svc,
            web_requested=body.web_search,
            session_id=body.session_id,
        )
    except InsufficientContextError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except AnswerServiceError as e:
        status, message = ANSWER_ERRORS.get(e.kind, ANSWER_ERRORS["failed"])
        logger.warning("ask failed kind=%s: %s", e.kind, e.message)
        raise HTTPException(status_code=status, detail=message)

    bundle = res.evidence
    documents = [
        DocumentSource(
            id=r.document_id,
            title=r.document_name,
            chunk=r.chunks[0].content[: settings.SEARCH_SNIPPET_CHARS] if r.chunks else "",
            relevance=r.total_relevance_score,
            chunk_id=r.chunks[0].id if r.chunks else "",
            page_num=r.chunks[0].page_num if r.chunks else None,
        )
        for r in bundle.document_sources
    ]
    web = [
        WebSource(title=w.title, snippet=w.snippet, url=w.url, source=w.source)
        for w in bundle.web_sources
    ]

    dt = int((time.perf_counter() - t0) * 1000)
    logger.info(
        "ask evidence=%s docs=%d web=%d latency_ms=%d",
        bundle.evidence_type,
        len(documents),
        len(web),
        dt,
    )

    return AskResponse(
        answer=res.answer,
        sources=AskSources(documents=documents, web=web),
        evidence_type=bundle.evidence_type,
        confidence=bundle.confidence,
        response_time=dt,
        no_doc_evidence=bundle.no_doc_evidence,
        web_search_used=bundle.web_search_used,
    )
