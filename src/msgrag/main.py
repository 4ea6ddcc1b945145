"""HTTP surface for asking questions against the indexed guides."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from msgrag.config import Settings, load_settings
from msgrag.errors import MsgragError
from msgrag.llm_provider import LLMError
from msgrag.rag import RetrievalAugmentedPipeline, build_pipeline
from msgrag.telemetry import emit_exception
from msgrag.vectorstore import VectorStoreUnavailableError

LOGGER = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    """Request body accepted by the query endpoint."""

    question: str = Field(..., min_length=1, description="Question to ask against the indexed documents.")


class ContextChunk(BaseModel):
    text: str
    metadata: dict[str, Any]


class QueryResponse(BaseModel):
    question: str
    answer: str
    context: list[ContextChunk]


def get_pipeline(request: Request) -> RetrievalAugmentedPipeline:
    """Dependency returning the app's pipeline, built from the environment on first use."""

    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        pipeline = request.app.state.pipeline = build_pipeline(load_settings().validate())
    return pipeline


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API; with *settings* the pipeline is wired before serving."""

    app = FastAPI(title="Market Message RAG API")
    app.state.settings = settings
    app.state.pipeline = build_pipeline(settings) if settings is not None else None

    @app.get("/", response_class=PlainTextResponse)
    def read_root() -> str:
        """Healthcheck endpoint for the service."""
        return "ok"

    @app.get("/readyz", response_class=PlainTextResponse)
    def readiness_probe(pipeline: RetrievalAugmentedPipeline = Depends(get_pipeline)) -> str:
        status = pipeline.llm.status()
        if status.error:
            raise HTTPException(status_code=503, detail=status.error)
        return "ok"

    @app.post("/query", response_model=QueryResponse)
    async def query(
        request: QueryRequest,
        pipeline: RetrievalAugmentedPipeline = Depends(get_pipeline),
    ) -> QueryResponse:
        try:
            state = await pipeline.invoke(request.question)
        except (VectorStoreUnavailableError, LLMError) as exc:
            emit_exception(module=f"{__name__}.query", error=exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except MsgragError as exc:
            emit_exception(module=f"{__name__}.query", error=exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return QueryResponse(
            question=state.question,
            answer=state.answer or "",
            context=[ContextChunk(text=chunk.text, metadata=dict(chunk.metadata)) for chunk in state.context],
        )

    return app


app = create_app()
