from io import BytesIO
from pathlib import Path

from fastapi.testclient import TestClient

from docsearch.core.config import settings
from docsearch.main import app

client = TestClient(app)


def process(path: Path, document_id: str, name: str | None = None):
    return client.post(
        "/documents/process",
        json={"filePath": str(path), "documentId": document_id, "documentName": name or path.name},
    )


def test_ping():
    r = client.get("/ping")
    assert r.status_code == 200
    assert r.json() == {"message": "pong"}


def test_process_then_stats(pipeline, write_text):
    p = write_text("notes.txt", "Mount Mandara is a sacred summit in the old texts.")

    r = process(p, "doc-1")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["success"] is True
    idx = data["documentIndex"]
    assert idx["documentId"] == "doc-1"
    assert idx["totalChunks"] == 1
    assert idx["totalWords"] == 10
    assert idx["totalPages"] == 1
    assert idx["extractionFailed"] is False
    assert "indexedAt" in idx

    r2 = client.get("/documents/doc-1/stats")
    assert r2.status_code == 200
    assert r2.json()["stats"]["totalWords"] == 10


def test_stats_unknown_document_is_404(pipeline):
    r = client.get("/documents/unknown/stats")
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_process_missing_file_is_404(pipeline, tmp_path: Path):
    r = process(tmp_path / "missing.txt", "doc-1")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": f"File not found: {tmp_path / 'missing.txt'}"}


def test_process_unsupported_format(pipeline, write_text):
    p = write_text("script.sh", "echo hello world from a script")

    r = process(p, "doc-1")
    assert r.status_code == 415
    assert ".sh" in r.json()["error"]


def test_process_empty_file_rejected(pipeline, write_text):
    p = write_text("empty.txt", "")

    r = process(p, "doc-1")
    assert r.status_code == 422
    assert r.json()["success"] is False
    assert client.get("/documents/doc-1/stats").status_code == 404


def test_invalid_document_id(pipeline, write_text):
    p = write_text("a.txt", "some content for the index")
    r = process(p, "../../etc")
    assert r.status_code == 400


def test_memory_stats_and_idempotent_delete(pipeline, write_text):
    process(write_text("a.txt", "alpha beta gamma delta epsilon"), "a")
    process(write_text("b.txt", "one two three four five six"), "b")

    stats = client.get("/documents/memory-stats").json()["stats"]
    assert stats == {
        "totalDocuments": 2,
        "totalChunks": 2,
        "totalWords": 11,
        "processingQueueSize": 0,
    }

    r1 = client.delete("/documents/a")
    r2 = client.delete("/documents/a")
    assert r1.status_code == 200 and r2.status_code == 200
    assert r1.json()["message"] == "Document cleared."
    assert r2.json()["success"] is True
    assert client.get("/documents/memory-stats").json()["stats"]["totalDocuments"] == 1


def test_batch_process_reports_per_item(pipeline, write_text, tmp_path: Path):
    docs = [
        {"filePath": str(write_text("a.txt", "first document text here")), "documentId": "a", "documentName": "a.txt"},
        {"filePath": str(write_text("b.txt", "")), "documentId": "b", "documentName": "b.txt"},
        {"filePath": str(tmp_path / "c.txt"), "documentId": "c", "documentName": "c.txt"},
        {"filePath": str(write_text("d.txt", "fourth document text here")), "documentId": "d", "documentName": "d.txt"},
    ]

    r = client.post("/documents/batch-process", json={"documents": docs})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["summary"] == {"total": 4, "successful": 2, "failed": 2}
    assert [x["documentId"] for x in data["results"]] == ["a", "d"]
    assert {e["documentId"] for e in data["errors"]} == {"b", "c"}


def test_search_endpoint(pipeline, write_text):
    process(write_text("chain.txt", "Notes about blockchain consensus. " * 3), "chain")
    process(write_text("food.txt", "Bread and soup recipes for winter."), "food")

    r = client.post("/documents/search", json={"query": "blockchain"})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["totalResults"] == 1
    assert data["tier"] == "basic"
    res = data["results"][0]
    assert res["documentId"] == "chain"
    assert res["chunks"][0]["matches"] == ["blockchain"]
    assert res["chunks"][0]["relevanceScore"] == 23


def test_search_snippet_truncated(pipeline, write_text, monkeypatch):
    monkeypatch.setattr(settings, "SEARCH_SNIPPET_CHARS", 20)
    process(write_text("long.txt", "blockchain " * 50), "long")

    chunk = client.post("/documents/search", json={"query": "blockchain"}).json()["results"][0][
        "chunks"
    ][0]
    assert chunk["content"] == ("blockchain " * 2)[:20] + "..."


def test_search_restricted_to_document_ids(pipeline, write_text):
    process(write_text("chain.txt", "Notes about blockchain consensus."), "chain")

    r = client.post("/documents/search", json={"query": "blockchain", "documentIds": ["other"]})
    assert r.status_code == 200
    assert r.json()["results"] == []


def test_search_status_and_worker_reset(pipeline):
    status = client.get("/search/status").json()
    assert status["tiers"] == ["enhanced", "basic"]
    assert status["remoteConfigured"] is False

    r = client.post("/search/workers/reset")
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_upload_txt_is_indexed_and_cleaned(pipeline, temp_data_dir: Path):
    files = {"file": ("notes.txt", BytesIO(b"Uploaded notes about the sacred summit."), "text/plain")}

    r = client.post("/documents/upload", files=files, data={"documentId": "up-1"})
    assert r.status_code == 200, r.text
    assert r.json()["documentIndex"]["documentId"] == "up-1"
    assert r.json()["documentIndex"]["documentName"] == "notes.txt"

    assert list((temp_data_dir / "uploads" / "up-1").glob("*")) == []


def test_upload_empty_txt_is_rejected(pipeline, temp_data_dir: Path):
    files = {"file": ("empty.txt", BytesIO(b""), "text/plain")}

    r = client.post("/documents/upload", files=files, data={"documentId": "up-2"})
    assert r.status_code == 422
    assert client.get("/documents/up-2/stats").status_code == 404
    assert client.get("/documents/memory-stats").json()["stats"]["totalDocuments"] == 0
    assert "up-2" not in [d["documentId"] for d in client.get("/documents").json()["documents"]]


def test_upload_rejects_unsupported_extension(pipeline, temp_data_dir: Path):
    files = {"file": ("tool.exe", BytesIO(b"MZ"), "application/octet-stream")}

    r = client.post("/documents/upload", files=files)
    assert r.status_code == 415


def test_upload_rejects_magic_bytes_mismatch(pipeline, temp_data_dir: Path):
    files = {"file": ("fake.pdf", BytesIO(b"NOTPDF"), "application/pdf")}

    r = client.post("/documents/upload", files=files)
    assert r.status_code == 415
    assert "Magic-bytes" in r.json()["error"]


def test_upload_rejects_too_large_file(pipeline, temp_data_dir: Path, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_MB", 1)
    big = BytesIO(b"a" * (1024 * 1024 + 10))

    r = client.post("/documents/upload", files={"file": ("big.txt", big, "text/plain")})
    assert r.status_code == 413
    assert "max size" in r.json()["error"].lower()


def test_pipeline_reset_clears_index_and_reopens_workers(pipeline, write_text):
    process(write_text("a.txt", "alpha beta gamma delta epsilon"), "a")
    for _ in range(settings.WORKER_FAILURE_THRESHOLD):
        pipeline.orchestrator.breaker.record_failure("boom")
    assert client.get("/search/status").json()["workers"]["open"] is True

    pipeline.reset()

    assert client.get("/documents/memory-stats").json()["stats"]["totalDocuments"] == 0
    assert client.get("/search/status").json()["workers"]["open"] is False


def test_list_documents(pipeline, write_text):
    process(write_text("a.txt", "alpha beta gamma delta epsilon"), "a")
    process(write_text("b.txt", "one two three four five six"), "b")

    r = client.get("/documents")
    assert r.status_code == 200
    docs = r.json()["documents"]
    assert {d["documentId"] for d in docs} == {"a", "b"}
    b = next(d for d in docs if d["documentId"] == "b")
    assert (b["documentName"], b["totalChunks"], b["totalWords"]) == ("b.txt", 1, 6)
    assert b["extractionFailed"] is False
    assert "indexedAt" in b
