from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from docsearch.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebResult:
    title: str
    snippet: str
    url: str
    source: str = "DuckDuckGo"


class WebSearchClient:
    """
    DuckDuckGo Instant Answer lookup. Fail-soft: any HTTP or payload
    problem yields an empty list so the ask flow continues on documents.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        max_results: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.WEB_SEARCH_URL
        self.timeout = timeout or settings.WEB_SEARCH_TIMEOUT_SECONDS
        self.max_results = max_results or settings.WEB_SEARCH_MAX_RESULTS
        self._transport = transport

    async def search(self, query: str) -> list[WebResult]:
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.get(self.base_url, params=params)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Web search failed for %r: %r", query, e)
            return []

        if not isinstance(data, dict):
            return []

        results: list[WebResult] = []

        abstract = (data.get("Abstract") or "").strip()
        if abstract:
            results.append(
                WebResult(
                    title=data.get("Heading") or query,
                    snippet=abstract,
                    url=data.get("AbstractURL") or "",
                    source=data.get("AbstractSource") or "DuckDuckGo",
                )
            )

        for topic in data.get("RelatedTopics") or []:
            if len(results) >= self.max_results:
                break
            # grouped topics carry a nested "Topics" list and no text
            text = (topic.get("Text") or "").strip() if isinstance(topic, dict) else ""
            url = topic.get("FirstURL") if isinstance(topic, dict) else None
            if not text or not url:
                continue
            results.append(WebResult(title=text.split(" - ")[0][:100], snippet=text, url=url))

        logger.info("Web search %r returned %d results", query, len(results))
        return results[: self.max_results]
