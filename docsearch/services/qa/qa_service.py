from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass

import httpx
from transformers import pipeline

from docsearch.core.config import settings

AUTH_STATUS_CODES = (401, 403)
AUTH_STATUS_RE = re.compile(r"\b40[13]\b")
AUTH_MARKERS = (
    "unauthorized",
    "forbidden",
    "invalid token",
    "user token",
    "access token",
    "gated repo",
    "credential",
    "authentication",
)
NETWORK_MARKERS = ("connection", "network", "resolve", "offline", "unreachable")


@dataclass(frozen=True)
class QaResult:
    answer: str
    score: float | None


def classify_error(exc: BaseException) -> str:
    """
    Map a failure of the answer model to "timeout" | "auth" | "network" | "failed".
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return "timeout"

    status = getattr(getattr(exc, "response", None), "status_code", None)
    text = str(exc).lower()
    if (
        status in AUTH_STATUS_CODES
        or AUTH_STATUS_RE.search(text)
        or any(m in text for m in AUTH_MARKERS)
    ):
        return "auth"
    if isinstance(exc, (ConnectionError, httpx.TransportError)) or any(
        m in text for m in NETWORK_MARKERS
    ):
        return "network"

    return "failed"


class QAService:
    """
    Extractive QA pipeline loaded once at startup.
    """

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._pipe = None

    def load(self) -> None:
        if self._pipe is None:
            self._pipe = pipeline(
                "question-answering",
                model=self.model_name,
                tokenizer=self.model_name,
                token=settings.HF_TOKEN,
            )

    def answer(self, question: str, context: str) -> QaResult:
        if self._pipe is None:
            raise RuntimeError("QA model not loaded. Call load() first.")

        out = self._pipe(question=question, context=context)
        ans = (out.get("answer") or "").strip()
        score = out.get("score", None)

        try:
            score_f = float(score) if score is not None else None
        except (TypeError, ValueError):
            score_f = None

        return QaResult(answer=ans, score=score_f)


def default_qa_service() -> QAService:
    return QAService(settings.QA_MODEL_NAME)
