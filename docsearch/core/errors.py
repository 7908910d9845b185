"""
Error taxonomy of the indexing / retrieval pipeline.

Service code raises these; routes translate them into HTTP responses.
"""


class PipelineError(Exception):
    code = "PIPELINE_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class UnsupportedFormatError(PipelineError):
    code = "UNSUPPORTED_FORMAT"

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"Unsupported file format '{extension or '<none>'}'.")


class ExtractionFailedError(PipelineError):
    code = "EXTRACTION_FAILED"


class ExtractionTimeoutError(ExtractionFailedError):
    code = "EXTRACTION_TIMEOUT"


class ContentValidationError(PipelineError):
    code = "CONTENT_VALIDATION_FAILED"


class ProcessingTimeoutError(PipelineError):
    code = "PROCESSING_TIMEOUT"


class WorkerCircuitOpenError(PipelineError):
    code = "WORKER_CIRCUIT_OPEN"


class BackendUnavailableError(PipelineError):
    code = "BACKEND_UNAVAILABLE"


class SearchTimeoutError(PipelineError):
    code = "SEARCH_TIMEOUT"


class SearchUnavailableError(PipelineError):
    code = "SEARCH_UNAVAILABLE"


class DocumentNotFoundError(PipelineError):
    code = "DOCUMENT_NOT_FOUND"


class InsufficientContextError(PipelineError):
    code = "INSUFFICIENT_CONTEXT"


class AnswerServiceError(PipelineError):
    """
    Failure of the answer collaborator.
    kind: "timeout" | "auth" | "network" | "unavailable" | "failed"
    """

    code = "ANSWER_FAILED"

    def __init__(self, kind: str, message: str | None = None):
        self.kind = kind
        super().__init__(message or f"Answer generation failed ({kind}).")
