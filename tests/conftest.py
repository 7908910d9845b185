import asyncio
from pathlib import Path

import httpx
import pytest

from docsearch.core.config import settings
from docsearch.main import app
from docsearch.services.indexing.document_store import DocumentStore
from docsearch.services.pipeline import build_pipeline


@pytest.fixture()
def temp_data_dir(tmp_path: Path):
    """
    Uses a temporary DATA_DIR for tests and restores the original
    value after execution.
    """
    old = settings.DATA_DIR
    settings.DATA_DIR = str(tmp_path)
    (tmp_path / "uploads").mkdir(parents=True, exist_ok=True)
    yield tmp_path
    settings.DATA_DIR = old


@pytest.fixture()
def web_payload():
    """
    Mutable DuckDuckGo payload served to the pipeline's web client.
    """
    return {}


@pytest.fixture()
def pipeline(web_payload, monkeypatch):
    """
    Fresh pipeline on app.state for the duration of a test; no remote
    index and a mocked web search backend.
    """
    monkeypatch.setattr(settings, "REMOTE_INDEX_URL", None)

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=web_payload))
    fresh = build_pipeline(web_transport=transport)

    old = getattr(app.state, "pipeline", None)
    app.state.pipeline = fresh
    yield fresh
    fresh.shutdown()
    app.state.pipeline = old


@pytest.fixture()
def write_text(tmp_path: Path):
    def _write(name: str, text: str) -> Path:
        p = tmp_path / name
        p.write_text(text, encoding="utf-8")
        return p

    return _write


@pytest.fixture()
def index_text(write_text):
    """
    Index a plain-text document into a store: index_text(store, doc_id, text).
    """

    def _index(store: DocumentStore, document_id: str, text: str, name: str | None = None):
        name = name or f"{document_id}.txt"
        path = write_text(name, text)
        return asyncio.run(store.process_document(path, document_id, name))

    return _index
