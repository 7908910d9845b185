from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from docsearch.core.config import settings
from docsearch.core.errors import (
    AnswerServiceError,
    InsufficientContextError,
    SearchUnavailableError,
)
from docsearch.services.qa.evidence import EvidenceBundle, assemble_evidence, should_search_web
from docsearch.services.qa.qa_service import QaResult, QAService, classify_error
from docsearch.services.qa.web_search import WebSearchClient
from docsearch.services.retrieval.orchestrator import SearchOrchestrator
from docsearch.services.retrieval.scoring import SearchResult

logger = logging.getLogger(__name__)

WS_RE = re.compile(r"\s+")

NO_ANSWER = "I don't know based on the provided sources."


@dataclass(frozen=True)
class AskPipelineResult:
    answer: str
    qa_score: float | None
    evidence: EvidenceBundle


def clean_question(q: str) -> str:
    q = (q or "").strip()
    q = WS_RE.sub(" ", q)

    return q


def truncate_context(ctx: str, max_chars: int) -> str:
    if len(ctx) <= max_chars:
        return ctx

    return ctx[:max_chars].rstrip()


def build_context(bundle: EvidenceBundle) -> str:
    """
    Context is deterministic and includes provenance headers.
    Document evidence comes first, web evidence after it.
    """
    parts: list[str] = []

    for res in bundle.document_sources:
        for c in res.chunks:
            parts.append(
                f"[document = {res.document_name} page = {c.page_num} "
                f"chunk_id = {c.id} score = {c.relevance_score:g}]"
            )
            parts.append(c.content)
            parts.append("")

    for w in bundle.web_sources:
        parts.append(f"[web = {w.source} url = {w.url}]")
        parts.append(f"{w.title}: {w.snippet}")
        parts.append("")

    return "\n".join(parts).strip()


async def run_answer(qa: QAService, question: str, context: str, timeout: float) -> QaResult:
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(qa.answer, question, context), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise AnswerServiceError("timeout", "Answer generation timed out.") from e
    except Exception as e:
        raise AnswerServiceError(classify_error(e), str(e)) from e


async def gather_evidence(
    question: str,
    *,
    orchestrator: SearchOrchestrator,
    web_search: WebSearchClient | None,
    web_requested: bool,
    session_id: str | None = None,
) -> EvidenceBundle:
    try:
        outcome = await orchestrator.search(question, session_id=session_id)
        doc_results: list[SearchResult] = outcome.results
    except SearchUnavailableError as e:
        logger.warning("Document search unavailable for ask, continuing without: %s", e)
        doc_results = []

    web_results = []
    web_used = False
    if web_search is not None and should_search_web(doc_results, web_requested):
        web_used = True
        web_results = await web_search.search(question)

    return assemble_evidence(doc_results, web_results, web_search_used=web_used)


async def ask(
    question: str,
    *,
    orchestrator: SearchOrchestrator,
    web_search: WebSearchClient | None,
    qa: QAService,
    web_requested: bool = True,
    session_id: str | None = None,
) -> AskPipelineResult:
    q = clean_question(question)
    if not q:
        raise ValueError("EMPTY_QUESTION")

    if len(q) > settings.MAX_QUESTION_CHARS:
        q = q[: settings.MAX_QUESTION_CHARS]

    bundle = await gather_evidence(
        q,
        orchestrator=orchestrator,
        web_search=web_search,
        web_requested=web_requested,
        session_id=session_id,
    )

    if bundle.is_empty:
        raise InsufficientContextError(
            "Insufficient Context: I don't have enough information from your uploaded "
            "documents to answer this question. Upload additional relevant documents"
            + ("." if web_requested else " or enable web search.")
        )

    ctx = truncate_context(build_context(bundle), settings.QA_MAX_CONTENT_CHARS)
    qa_res = await run_answer(qa, q, ctx, settings.QA_TIMEOUT_SECONDS)

    if not qa_res.answer or (qa_res.score is not None and qa_res.score < settings.QA_MIN_SCORE):
        return AskPipelineResult(answer=NO_ANSWER, qa_score=qa_res.score, evidence=bundle)

    return AskPipelineResult(answer=qa_res.answer, qa_score=qa_res.score, evidence=bundle)
