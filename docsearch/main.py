import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docsearch.api.routes.ask import router as ask_router
from docsearch.api.routes.documents import router as documents_router
from docsearch.api.routes.health import router as health_router
from docsearch.api.routes.search import router as search_router
from docsearch.core.config import settings
from docsearch.core.logging import setup_logging
from docsearch.services.pipeline import build_pipeline
from docsearch.services.qa.qa_service import classify_error, default_qa_service

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize huggingface token
    if settings.HF_TOKEN:
        os.environ["HF_TOKEN"] = settings.HF_TOKEN
        os.environ["HUGGINGFACEHUB_API_TOKEN"] = settings.HF_TOKEN

    # Initialize QA model singleton once (fail-soft)
    try:
        qa = default_qa_service()
        qa.load()
        app.state.qa_service = qa
        app.state.qa_load_error = None
        logger.info("QA service loaded: %s", qa.model_name)
    except Exception as e:
        app.state.qa_service = None
        app.state.qa_load_error = classify_error(e)
        logger.exception("QA model load failed (service disabled): %s", e)

    yield

    app.state.pipeline.shutdown()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.state.pipeline = build_pipeline()

app.include_router(health_router)
app.include_router(documents_router)
app.include_router(search_router)
app.include_router(ask_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})

    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
