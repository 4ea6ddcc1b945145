"""Retrieval-augmented answering."""
from __future__ import annotations

from msgrag.config import Settings
from msgrag.llm_provider import LLM, get_llm
from msgrag.prompt_builder import load_template
from msgrag.retriever import Retriever
from msgrag.vectorstore import ChunkVectorStore, get_vector_store

from .pipeline import NO_CONTEXT_ANSWER, PipelineStage, QuestionState, RetrievalAugmentedPipeline


def build_pipeline(
    settings: Settings,
    *,
    vector_store: ChunkVectorStore | None = None,
    llm: LLM | None = None,
) -> RetrievalAugmentedPipeline:
    """Wire a pipeline from *settings*, reusing the process-wide clients."""

    store = vector_store or get_vector_store(settings)
    return RetrievalAugmentedPipeline(
        Retriever(store, min_score=settings.min_score),
        llm or get_llm(settings),
        template=load_template(settings.prompt_template_path),
        top_k=settings.top_k,
    )


__all__ = [
    "NO_CONTEXT_ANSWER",
    "PipelineStage",
    "QuestionState",
    "RetrievalAugmentedPipeline",
    "build_pipeline",
]
