"""FastAPI service consumed by the tab assistant browser extension.

Launch:
    python -m uvicorn --factory webapp.app:create_app --port 3000

Or via pipeline:
    python pipeline.py serve --port 3000
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from processors.content_extractor import InvalidInputError
from schemas.tab import TabPayload
from settings import Settings, load_settings
from vectorstore.embedder import Embedder
from vectorstore.ingest import TabIndexer
from vectorstore.store import VectorStore, build_vector_store
from webapp.rag.query_engine import AnswerEngine, LLMClient
from webapp.rag.retriever import Retriever

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
ENDPOINTS = ["/api/index", "/api/sync", "/api/search", "/api/remove/:id", "/api/stats"]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@dataclass
class Services:
    settings: Settings
    store: VectorStore
    indexer: TabIndexer
    retriever: Retriever
    answer_engine: AnswerEngine


def build_services(
    settings: Settings,
    embedder: Optional[Embedder] = None,
    llm: Optional[LLMClient] = None,
    client_factory=None,
) -> Services:
    """Wire store, indexer, retriever and answer engine from settings."""
    store = build_vector_store(settings, embedder=embedder, client_factory=client_factory)
    answer_engine = AnswerEngine.from_settings(settings, llm=llm)
    summarizer = answer_engine.summarize if answer_engine.llm_available else None
    return Services(
        settings=settings,
        store=store,
        indexer=TabIndexer.from_settings(settings, store, summarizer=summarizer),
        retriever=Retriever(store, default_limit=settings.search_limit),
        answer_engine=answer_engine,
    )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class SyncRequest(BaseModel):
    tabs: list[dict]


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: Optional[int] = Field(None, gt=0, le=100)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or (services.settings if services else load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services or build_services(settings)
        logger.info(
            "Tab assistant API ready (remote store %s, LLM %s)",
            "configured" if settings.remote_configured else "not configured",
            settings.llm_provider if app.state.services.answer_engine.llm_available else "templated",
        )
        yield
        await app.state.services.store.close()

    app = FastAPI(
        title="Tab AI Assistant",
        description="Semantic search and question answering over browser tabs",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d (%.0fms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - t0) * 1000,
        )
        return response

    # -------------------------------------------------------------------
    # Error handling
    # -------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors()})
        return _error(400, "Bad Request", f"Missing or invalid fields: {', '.join(fields)}")

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(400, "Bad Request", str(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal Server Error", str(exc) or "Something went wrong")

    # -------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------

    @app.get("/")
    async def root():
        return {"message": "Tab AI Assistant API", "version": VERSION, "endpoints": ENDPOINTS}

    @app.get("/health")
    async def health():
        return {"status": "OK"}

    @app.post("/api/index")
    async def index_tab(payload: TabPayload, request: Request):
        result = await request.app.state.services.indexer.index_tab(payload)
        return result.to_wire()

    @app.post("/api/sync")
    async def sync_tabs(body: SyncRequest, request: Request):
        results = await request.app.state.services.indexer.sync_tabs(body.tabs)
        return {"success": True, "results": [r.to_wire() for r in results]}

    @app.delete("/api/remove/{tab_id}")
    async def remove_tab(tab_id: str, request: Request):
        result = await request.app.state.services.indexer.remove_tab(tab_id)
        return result.to_wire()

    @app.post("/api/search")
    async def search(body: SearchRequest, request: Request):
        query = body.query.strip()
        if not query:
            raise InvalidInputError("Search query is required")

        services: Services = request.app.state.services
        retrieval = await services.retriever.search(query, body.limit)
        answer = await services.answer_engine.answer(query, retrieval.results)
        return {
            "success": True,
            "results": [r.to_wire() for r in retrieval.results],
            "ai_answer": answer.answer_text,
            "source_tabs": [r.to_wire() for r in answer.sources],
            "fromFallback": retrieval.from_fallback,
        }

    @app.get("/api/stats")
    async def stats(request: Request):
        stats = await request.app.state.services.store.stats()
        return {"success": True, "stats": stats.to_wire()}

    return app
