"""HTTP API for querying and managing documents.

Run with ``uvicorn pdfqa.api:app``.
"""

import asyncio
import json
import logging
from functools import lru_cache

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from pdfqa.config import Settings
from pdfqa.rag.errors import (
    ConfigurationError,
    EmptyGenerationError,
    IngestionError,
    RateLimitError,
    is_rate_limit_message,
)
from pdfqa.rag.pipeline import IngestionPipeline, QueryPipeline

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "The AI service is temporarily busy. Please wait a moment and try again."
EMPTY_ANSWER_MESSAGE = "No answer was produced. Please try again or rephrase the question."


@lru_cache
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()


@lru_cache
def get_query_pipeline() -> QueryPipeline:
    return QueryPipeline(get_settings())


@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(get_settings())


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    top_k: int | None = Field(default=None, alias="topK", ge=1, le=50)
    document_filter: str | None = Field(default=None, alias="documentFilter")


class QueryResponse(BaseModel):
    success: bool = True
    answer: str
    sources: list[str]
    context_count: int = Field(serialization_alias="contextCount")


def _require_query(request: QueryRequest) -> str:
    query = request.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query cannot be empty")
    return query


def error_event(error: Exception) -> dict:
    """Render a failure as a stream event the client can display."""
    is_rate_limit = isinstance(error, RateLimitError) or is_rate_limit_message(str(error))
    if is_rate_limit:
        message = BUSY_MESSAGE
    elif isinstance(error, EmptyGenerationError):
        message = EMPTY_ANSWER_MESSAGE
    else:
        message = str(error) or type(error).__name__
    return {"type": "error", "error": message, "isRateLimit": is_rate_limit}


router = APIRouter()


@router.post("/query", response_model=QueryResponse, response_model_by_alias=True)
async def query_documents(
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
):
    query = _require_query(request)
    try:
        result = await pipeline.answer(query, request.top_k or 5, request.document_filter)
    except RateLimitError as e:
        logger.warning(f"Rate limited: {e}")
        raise HTTPException(status_code=429, detail=BUSY_MESSAGE)
    except EmptyGenerationError as e:
        logger.warning(f"Empty generation for {query!r}: {e}")
        raise HTTPException(status_code=502, detail=EMPTY_ANSWER_MESSAGE)
    except Exception as e:
        logger.error(f"Error processing query: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process query: {e}")

    return QueryResponse(
        answer=result.answer,
        sources=result.sources,
        context_count=len(result.context),
    )


@router.post("/chat")
async def chat(
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
):
    """Stream an answer as newline-delimited JSON events."""
    query = _require_query(request)

    async def events():
        chunk_count = 0
        try:
            async for event in pipeline.stream_answer(query, request.top_k or 3, request.document_filter):
                if event["type"] == "chunk":
                    chunk_count += 1
                yield json.dumps(event) + "\n"
            yield json.dumps({"type": "done", "chunks": chunk_count}) + "\n"
        except Exception as e:
            logger.error(f"Stream generation error: {e}")
            yield json.dumps(error_event(e)) + "\n"

    return StreamingResponse(
        events(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache, no-store", "X-Accel-Buffering": "no"},
    )


@router.post("/upload")
async def upload_document(
    file: UploadFile = File(...),
    chunk_size: int | None = Form(default=None, alias="chunkSize"),
    chunk_overlap: int | None = Form(default=None, alias="chunkOverlap"),
    settings: Settings = Depends(get_settings),
    ingestion: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    filename = file.filename or ""
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")

    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File size exceeds {limit_mb}MB limit")

    try:
        stats = await asyncio.to_thread(
            ingestion.ingest_pdf, filename, data, chunk_size, chunk_overlap
        )
    except IngestionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Upload error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process PDF: {e}")

    return {
        "success": True,
        "message": f"Successfully processed {filename}",
        "stats": stats.model_dump(),
    }


@router.get("/documents")
async def list_documents(ingestion: IngestionPipeline = Depends(get_ingestion_pipeline)):
    try:
        documents = await asyncio.to_thread(ingestion.list_documents)
    except Exception as e:
        logger.error(f"List documents error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list documents: {e}")
    return {"success": True, "documents": documents, "count": len(documents)}


@router.delete("/documents")
async def delete_document(
    name: str | None = None,
    ingestion: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    if not name:
        raise HTTPException(status_code=400, detail="Document name is required")
    try:
        deleted = await asyncio.to_thread(ingestion.delete_document, name)
    except Exception as e:
        logger.error(f"Delete document error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete document: {e}")
    return {
        "success": True,
        "message": f"Deleted {deleted} chunks for document: {name}",
        "deletedChunks": deleted,
    }


@router.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        dict: Health status information.
    """
    return {"status": "healthy"}


def create_app() -> FastAPI:
    app = FastAPI(title="PDF Question Answering API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix="/api")

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request, exc: ConfigurationError):
        logger.error(f"Configuration error: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app


app = create_app()
