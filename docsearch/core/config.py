from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "DocSearch API"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "./data"
    PING_MESSAGE: str = "pong"

    # Upload config
    MAX_UPLOAD_MB: int = 25
    ALLOWED_EXTENSIONS: tuple[str, ...] = (".pdf", ".docx", ".doc", ".txt", ".md")

    # Extraction
    MAX_PDF_PAGES: int = 500
    PDF_EXTRACTION_TIMEOUT_SECONDS: float = 30.0
    MIN_CONTENT_CHARS: int = 10

    # Chunking (word based)
    CHUNK_SIZE_WORDS: int = 1000
    CHUNK_OVERLAP_WORDS: int = 100
    MAX_TOKENS_PER_CHUNK: int = 4000
    MAX_CHUNKS_PER_DOCUMENT: int = 5000
    CHUNKS_PER_PAGE: int = 1

    # Indexing
    # must exceed PDF_EXTRACTION_TIMEOUT_SECONDS so a hung PDF is indexed as a failed extraction
    DOCUMENT_PROCESSING_TIMEOUT_SECONDS: float = 45.0
    BATCH_CONCURRENCY: int = 3
    BATCH_DELAY_SECONDS: float = 0.1

    # Search tiers
    REMOTE_INDEX_URL: str | None = None
    PING_TIMEOUT_SECONDS: float = 5.0
    SEARCH_TIMEOUT_SECONDS: float = 10.0
    LARGE_DOCUMENT_CHARS: int = 100_000
    WORKER_FAILURE_THRESHOLD: int = 3
    WORKER_MAX_THREADS: int = 4
    MAX_SEARCH_RESULTS: int = 5
    MAX_CHUNKS_PER_RESULT: int = 5
    SEARCH_SNIPPET_CHARS: int = 500

    # Evidence
    WEB_SUPPLEMENT_BELOW_DOC_RESULTS: int = 3

    # Web search
    WEB_SEARCH_ENABLED: bool = True
    WEB_SEARCH_URL: str = "https://api.duckduckgo.com/"
    WEB_SEARCH_TIMEOUT_SECONDS: float = 10.0
    WEB_SEARCH_MAX_RESULTS: int = 3

    # QA
    QA_MODEL_NAME: str = "distilbert-base-cased-distilled-squad"
    QA_MAX_CONTENT_CHARS: int = 4000
    QA_MIN_SCORE: float = 0.15
    QA_TIMEOUT_SECONDS: float = 30.0

    MAX_QUESTION_CHARS: int = 500

    HF_TOKEN: str | None = None


settings = Settings()
