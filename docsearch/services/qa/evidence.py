"""
Evidence assembly: what grounds an answer, and how much to trust it.

Documents always take priority; web results only supplement them, or
replace them when no document matched, and only if the caller asked.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from docsearch.core.config import settings
from docsearch.services.qa.web_search import WebResult
from docsearch.services.retrieval.scoring import SearchResult

EVIDENCE_DOCUMENTS = "documents"
EVIDENCE_WEB = "web"
EVIDENCE_MIXED = "mixed"

BASE_CONFIDENCE = 0.5
DOC_CONFIDENCE_STEP = 0.1
DOC_CONFIDENCE_MAX = 0.3
WEB_CONFIDENCE_STEP = 0.1
WEB_CONFIDENCE_MAX = 0.2
MAX_CONFIDENCE = 0.95


@dataclass(frozen=True)
class EvidenceBundle:
    document_sources: tuple[SearchResult, ...]
    web_sources: tuple[WebResult, ...]
    evidence_type: str | None
    confidence: float
    no_doc_evidence: bool
    web_search_used: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.document_sources and not self.web_sources


def should_search_web(
    document_results: Sequence[SearchResult],
    web_requested: bool,
    supplement_below: int | None = None,
) -> bool:
    if not web_requested:
        return False

    supplement_below = supplement_below or settings.WEB_SUPPLEMENT_BELOW_DOC_RESULTS
    return len(document_results) < supplement_below


def evidence_type_for(doc_count: int, web_count: int) -> str | None:
    if doc_count and web_count:
        return EVIDENCE_MIXED
    if doc_count:
        return EVIDENCE_DOCUMENTS
    if web_count:
        return EVIDENCE_WEB
    return None


def compute_confidence(doc_count: int, web_count: int) -> float:
    confidence = (
        BASE_CONFIDENCE
        + min(DOC_CONFIDENCE_MAX, DOC_CONFIDENCE_STEP * max(0, doc_count))
        + min(WEB_CONFIDENCE_MAX, WEB_CONFIDENCE_STEP * max(0, web_count))
    )
    return round(min(MAX_CONFIDENCE, confidence), 4)


def assemble_evidence(
    document_results: Sequence[SearchResult],
    web_results: Sequence[WebResult] = (),
    *,
    web_search_used: bool = False,
) -> EvidenceBundle:
    docs = tuple(document_results)
    web = tuple(web_results)

    return EvidenceBundle(
        document_sources=docs,
        web_sources=web,
        evidence_type=evidence_type_for(len(docs), len(web)),
        confidence=compute_confidence(len(docs), len(web)),
        no_doc_evidence=len(docs) == 0,
        web_search_used=web_search_used,
    )
