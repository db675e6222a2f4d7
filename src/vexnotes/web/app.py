"""FastAPI application exposing sync, query and search endpoints."""

from __future__ import annotations

import asyncio
import contextlib
import hmac
import logging
import threading
from typing import Any, AsyncIterator, List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from vexnotes import __version__
from vexnotes.context import AppContext
from vexnotes.errors import SyncCancelledError, SyncError, ValidationError, VexError
from vexnotes.web.frontend import router as frontend_router

LOGGER = logging.getLogger(__name__)


class QueryPayload(BaseModel):
    query: str = ""


class SearchPayload(BaseModel):
    query: str = ""
    top_k: int = 4


class SyncPayload(BaseModel):
    full: bool = False


class PushEvent(BaseModel):
    ref: str = ""
    repository: dict[str, Any] = Field(default_factory=dict)
    pusher: dict[str, Any] = Field(default_factory=dict)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def require_api_key(request: Request, context: AppContext = Depends(get_context)) -> None:
    """Accept ``X-API-Key``, ``Authorization: Bearer`` or an ``api_key`` query value."""
    expected = context.config.api_key
    if not expected:
        return

    key = request.headers.get("X-API-Key", "").strip()
    if not key:
        auth = request.headers.get("Authorization", "").strip()
        if auth.lower().startswith("bearer "):
            key = auth[len("bearer "):].strip()
    if not key:
        key = request.query_params.get("api_key", "").strip()

    if not key or not hmac.compare_digest(key, expected):
        raise HTTPException(status_code=401, detail="unauthorized")


async def _run_sync(request: Request, *, full: bool = False) -> dict[str, Any]:
    context: AppContext = request.app.state.context
    cancel: threading.Event = request.app.state.cancel_sync
    try:
        result = await asyncio.to_thread(context.orchestrator.run, cancel=cancel, full=full)
    except SyncCancelledError as exc:
        LOGGER.warning("Sync interrupted by shutdown: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except SyncError as exc:
        LOGGER.error("Sync failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return result.to_dict()


def create_app(context: AppContext) -> FastAPI:
    cancel_sync = threading.Event()

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        # A running pass stops before its next document.
        LOGGER.info("Shutting down; cancelling any running sync")
        cancel_sync.set()

    app = FastAPI(title="VexNotes", version=__version__, lifespan=lifespan)
    app.state.context = context
    app.state.cancel_sync = cancel_sync
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(frontend_router)

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "invalid JSON body"})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "vexnotes"}

    @app.get("/stats", dependencies=[Depends(require_api_key)])
    async def stats(context: AppContext = Depends(get_context)) -> dict[str, Any]:
        return {
            "approximate_count": context.index.approximate_count(),
            "state": context.orchestrator.state.value,
        }

    @app.post("/sync", dependencies=[Depends(require_api_key)])
    async def sync(request: Request, payload: SyncPayload | None = None) -> dict[str, Any]:
        return await _run_sync(request, full=payload.full if payload else False)

    @app.post("/git-webhook", dependencies=[Depends(require_api_key)])
    async def git_webhook(request: Request, event: PushEvent | None = None) -> dict[str, Any]:
        if event is not None:
            LOGGER.info(
                "Push to %s on branch %s by %s",
                event.repository.get("full_name", "?"),
                event.ref or "?",
                event.pusher.get("name", "?"),
            )
        return await _run_sync(request)

    @app.post("/query", dependencies=[Depends(require_api_key)])
    async def query(
        payload: QueryPayload, context: AppContext = Depends(get_context)
    ) -> dict[str, str]:
        question = payload.query.strip()
        if not question:
            raise HTTPException(status_code=400, detail="field 'query' is required")

        LOGGER.info("Processing query %r", question)
        try:
            answer = await asyncio.to_thread(context.pipeline.answer, question)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except VexError as exc:
            LOGGER.error("Query processing error: %s", exc)
            raise HTTPException(
                status_code=500, detail=f"query processing error: {exc}"
            ) from exc
        return {"query": payload.query, "answer": answer.answer}

    @app.post("/search", dependencies=[Depends(require_api_key)])
    async def search(
        payload: SearchPayload, context: AppContext = Depends(get_context)
    ) -> List[dict[str, Any]]:
        question = payload.query.strip()
        if not question:
            raise HTTPException(status_code=400, detail="Empty query")

        top_k = max(1, min(payload.top_k, 50))
        try:
            results = await asyncio.to_thread(context.pipeline.retrieve, question, top_k)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except VexError as exc:
            LOGGER.error("Search failed: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return [result.to_dict() for result in results]

    return app
