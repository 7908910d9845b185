import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from docsearch.api.deps import get_pipeline
from docsearch.core.config import settings
from docsearch.core.errors import (
    ContentValidationError,
    DocumentNotFoundError,
    PipelineError,
    ProcessingTimeoutError,
    UnsupportedFormatError,
)
from docsearch.models.documents import (
    BatchErrorItem,
    BatchRequest,
    BatchResponse,
    BatchSummary,
    ClearResponse,
    DocumentIndexSummary,
    DocumentListResponse,
    DocumentStatsBody,
    DocumentStatsResponse,
    MemoryStatsBody,
    MemoryStatsResponse,
    ProcessRequest,
    ProcessResponse,
    QueueStatusResponse,
)
from docsearch.services.indexing.document_store import BatchItem, DocumentIndex
from docsearch.services.pipeline import DocumentPipeline
from docsearch.storage.files import read_first_bytes, save_upload_file_streaming, sniff_magic

router = APIRouter(tags=["documents"])
logger = logging.getLogger(__name__)

DOCUMENT_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

ERROR_STATUS: dict[type[PipelineError], int] = {
    DocumentNotFoundError: 404,
    UnsupportedFormatError: 415,
    ContentValidationError: 422,
    ProcessingTimeoutError: 504,
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _status_for(exc: PipelineError) -> int:
    for cls, status in ERROR_STATUS.items():
        if isinstance(exc, cls):
            return status
    return 500


def _validate_document_id(document_id: str) -> None:
    if not DOCUMENT_ID_RE.match(document_id):
        raise HTTPException(status_code=400, detail="Invalid documentId format.")


def _summary(index: DocumentIndex) -> DocumentIndexSummary:
    return DocumentIndexSummary(
        document_id=index.document_id,
        document_name=index.document_name,
        total_chunks=len(index.chunks),
        total_words=index.total_words,
        total_pages=index.total_pages,
        indexed_at=index.indexed_at,
        truncated=index.truncated,
        extraction_failed=index.extraction_failed,
        extraction_error=index.extraction_error,
    )


@router.post("/documents/process", response_model=ProcessResponse)
async def process_document(
    body: ProcessRequest,
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    _validate_document_id(body.document_id)

    try:
        index = await pipeline.store.process_document(
            body.file_path,
            body.document_id,
            body.document_name,
            session_id=body.session_id,
        )
    except PipelineError as e:
        logger.warning("Processing %s failed: %s", body.document_id, e.message)
        return error_response(_status_for(e), e.message)

    return ProcessResponse(document_index=_summary(index))


@router.post("/documents/upload", response_model=ProcessResponse)
async def upload_document(
    file: UploadFile = File(...),
    document_id: Optional[str] = Form(None, alias="documentId"),
    session_id: Optional[str] = Form(None, alias="sessionId"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """
    Store an uploaded file, then extract and index it. The stored
    upload is removed once extraction is done.
    """
    filename = file.filename or "file"
    document_id = document_id or uuid.uuid4().hex
    _validate_document_id(document_id)

    suffix = Path(filename).suffix.lower()
    if suffix not in settings.ALLOWED_EXTENSIONS:
        return error_response(415, UnsupportedFormatError(suffix).message)

    first = await read_first_bytes(file, 16)
    if not sniff_magic(suffix, first):
        return error_response(415, f"Magic-bytes verification failed for '{filename}'.")

    try:
        saved = await save_upload_file_streaming(
            upload_file=file,
            document_id=document_id,
            max_bytes=settings.MAX_UPLOAD_MB * 1024 * 1024,
        )
    except ValueError as e:
        if str(e) == "FILE_TOO_LARGE":
            return error_response(413, f"File exceeds max size {settings.MAX_UPLOAD_MB} MB.")
        raise

    logger.info("Stored upload %s (%d bytes) as %s", filename, saved.size_bytes, document_id)

    try:
        index = await pipeline.store.process_document(
            saved.stored_path,
            document_id,
            filename,
            cleanup=True,
            session_id=session_id,
        )
    except PipelineError as e:
        logger.warning("Processing upload %s failed: %s", document_id, e.message)
        return error_response(_status_for(e), e.message)

    return ProcessResponse(document_index=_summary(index))


@router.post("/documents/batch-process", response_model=BatchResponse)
async def batch_process(
    body: BatchRequest,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> BatchResponse:
    outcome = await pipeline.store.batch_process(
        [
            BatchItem(
                file_path=d.file_path,
                document_id=d.document_id,
                document_name=d.document_name,
                session_id=d.session_id,
            )
            for d in body.documents
        ]
    )

    return BatchResponse(
        results=[_summary(i) for i in outcome.results],
        errors=[
            BatchErrorItem(document_id=e.document_id, document_name=e.document_name, error=e.error)
            for e in outcome.errors
        ],
        summary=BatchSummary(
            total=outcome.total,
            successful=len(outcome.results),
            failed=len(outcome.errors),
        ),
    )


@router.get("/documents", response_model=DocumentListResponse)
def list_documents(pipeline: DocumentPipeline = Depends(get_pipeline)) -> DocumentListResponse:
    return DocumentListResponse(documents=[_summary(i) for i in pipeline.store.list_documents()])


@router.get("/documents/memory-stats", response_model=MemoryStatsResponse)
def memory_stats(pipeline: DocumentPipeline = Depends(get_pipeline)) -> MemoryStatsResponse:
    stats = pipeline.store.memory_stats()

    return MemoryStatsResponse(
        stats=MemoryStatsBody(
            total_documents=stats.total_documents,
            total_chunks=stats.total_chunks,
            total_words=stats.total_words,
            processing_queue_size=stats.processing_queue_size,
        )
    )


@router.get("/documents/queue", response_model=QueueStatusResponse)
def queue_status(pipeline: DocumentPipeline = Depends(get_pipeline)) -> QueueStatusResponse:
    return QueueStatusResponse(**pipeline.store.queue_status())


@router.get("/documents/{document_id}/stats", response_model=DocumentStatsResponse)
def document_stats(document_id: str, pipeline: DocumentPipeline = Depends(get_pipeline)):
    _validate_document_id(document_id)

    stats = pipeline.store.get_stats(document_id)
    if stats is None:
        return error_response(404, "Document not indexed.")

    return DocumentStatsResponse(
        stats=DocumentStatsBody(
            total_chunks=stats.total_chunks,
            total_words=stats.total_words,
            total_pages=stats.total_pages,
            indexed_at=stats.indexed_at,
        )
    )


@router.delete("/documents/{document_id}", response_model=ClearResponse)
def clear_document(document_id: str, pipeline: DocumentPipeline = Depends(get_pipeline)):
    _validate_document_id(document_id)

    removed = pipeline.store.clear(document_id)
    message = "Document cleared." if removed else "Document was not indexed."

    return ClearResponse(message=message)
