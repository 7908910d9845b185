from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from docsearch.core.config import settings
from docsearch.core.errors import (
    ContentValidationError,
    ExtractionFailedError,
    ExtractionTimeoutError,
    UnsupportedFormatError,
)
from docsearch.services.ingestion.docx_text import extract_docx_text
from docsearch.services.ingestion.pdf_text import normalize_text

logger = logging.getLogger(__name__)

PDF_WORKER_MODULE = "docsearch.services.ingestion.pdf_worker"

SUPPORTED_EXTENSIONS: tuple[str, ...] = (".pdf", ".docx", ".doc", ".txt", ".md")


@dataclass(frozen=True)
class ExtractionResult:
    success: bool
    text: str
    extension: str
    page_count: int | None = None
    # word offset at which each page starts in `text`
    page_word_offsets: tuple[int, ...] | None = None
    error: str | None = None


def placeholder_text(document_name: str, error: str) -> str:
    return (
        f"Text extraction failed for '{document_name}'. {error} "
        "The document was stored but its content could not be read."
    )


def legacy_doc_message(document_name: str) -> str:
    return (
        f"Legacy Word document (.doc) format detected for '{document_name}'. "
        "Please convert it to .docx to enable text extraction."
    )


def join_pages(pages: list[str]) -> tuple[str, tuple[int, ...]]:
    """
    Concatenate normalized page texts and record the word offset where each page starts.
    """
    offsets: list[int] = []
    words_so_far = 0
    parts: list[str] = []

    for page in pages:
        offsets.append(words_so_far)
        if page:
            parts.append(page)
            words_so_far += len(page.split())

    return " ".join(parts), tuple(offsets)


class ContentExtractor:
    """
    Turns one file into normalized text.

    PDF parsing runs in a child process so a crash or hang in the parser
    cannot take the API process down with it.
    """

    def __init__(
        self,
        *,
        pdf_timeout: float | None = None,
        min_content_chars: int | None = None,
        pdf_command: tuple[str, ...] | None = None,
    ):
        self.pdf_timeout = pdf_timeout or settings.PDF_EXTRACTION_TIMEOUT_SECONDS
        self.min_content_chars = (
            settings.MIN_CONTENT_CHARS if min_content_chars is None else min_content_chars
        )
        self.pdf_command = pdf_command or (sys.executable, "-m", PDF_WORKER_MODULE)

    async def extract(
        self,
        file_path: str | Path,
        original_name: str,
        *,
        cleanup: bool = False,
    ) -> ExtractionResult:
        """
        Dispatch on the extension of the declared original filename.

        Raises UnsupportedFormatError and ContentValidationError.
        Extraction failures come back as a result with success=False and
        a placeholder text instead of raising.
        """
        path = Path(file_path)
        ext = Path(original_name).suffix.lower()

        try:
            if ext not in SUPPORTED_EXTENSIONS:
                raise UnsupportedFormatError(ext)

            try:
                result = await self._dispatch(ext, path, original_name)
            except ExtractionFailedError as e:
                logger.warning("Extraction failed for %s: %s", original_name, e.message)
                return ExtractionResult(
                    success=False,
                    text=placeholder_text(original_name, e.message),
                    extension=ext,
                    error=e.message,
                )

            if not result.success:
                return result

            self._validate(result, original_name)
            return result
        finally:
            if cleanup:
                path.unlink(missing_ok=True)

    def _validate(self, result: ExtractionResult, original_name: str) -> None:
        if len(result.text) < self.min_content_chars:
            raise ContentValidationError(
                f"Document '{original_name}' has no usable text "
                f"({len(result.text)} characters extracted, minimum {self.min_content_chars})."
            )

    async def _dispatch(self, ext: str, path: Path, original_name: str) -> ExtractionResult:
        if not path.is_file():
            raise ExtractionFailedError(f"File not found: {path.name}")

        if ext == ".doc":
            message = legacy_doc_message(original_name)
            return ExtractionResult(success=False, text=message, extension=ext, error=message)

        if ext == ".pdf":
            return await self._extract_pdf(path)

        if ext == ".docx":
            try:
                raw = await asyncio.to_thread(extract_docx_text, path)
            except Exception as e:
                raise ExtractionFailedError(f"DOCX extraction failed: {e}") from e
            return ExtractionResult(success=True, text=normalize_text(raw), extension=ext)

        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            raise ExtractionFailedError(f"Could not read text file: {e}") from e

        return ExtractionResult(success=True, text=normalize_text(raw), extension=ext)

    async def _extract_pdf(self, path: Path) -> ExtractionResult:
        proc = await asyncio.create_subprocess_exec(
            *self.pdf_command,
            str(path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.pdf_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ExtractionTimeoutError(
                f"PDF extraction timed out after {self.pdf_timeout:g} seconds."
            )
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="ignore").strip()
            raise ExtractionFailedError(
                f"PDF extraction failed ({detail or f'exit code {proc.returncode}'})."
            )

        try:
            payload = json.loads(stdout.decode("utf-8"))
            pages = [normalize_text(str(p or "")) for p in payload["pages"]]
            page_count = int(payload.get("page_count", len(pages)))
        except (ValueError, KeyError, TypeError) as e:
            raise ExtractionFailedError("PDF extraction returned unreadable output.") from e

        text, offsets = join_pages(pages)
        logger.info("PDF extracted pages=%d chars=%d", page_count, len(text))

        return ExtractionResult(
            success=True,
            text=text,
            extension=".pdf",
            page_count=page_count,
            page_word_offsets=offsets,
        )
