from typing import Optional

from pydantic import Field

from docsearch.models.base import CamelModel


class AskRequest(CamelModel):
    query: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    web_search: bool = True
    ai_provider: Optional[str] = None


class DocumentSource(CamelModel):
    id: str
    title: str
    chunk: str
    relevance: float
    chunk_id: str
    page_num: Optional[int] = None


class WebSource(CamelModel):
    title: str
    snippet: str
    url: str
    source: str


class AskSources(CamelModel):
    documents: list[DocumentSource]
    web: list[WebSource]


class AskResponse(CamelModel):
    answer: str
    sources: AskSources
    evidence_type: Optional[str]
    confidence: float
    response_time: int  # milliseconds
    no_doc_evidence: bool
    web_search_used: bool = False
