"""Two-stage question answering: retrieve context, then generate an answer."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from msgrag.ingest.models import Chunk
from msgrag.llm_provider import LLM
from msgrag.prompt_builder import build_prompt, load_template
from msgrag.retriever import Retriever
from msgrag.telemetry import emit_inference_result, emit_prompt_event, emit_retriever_event

LOGGER = logging.getLogger(__name__)

NO_CONTEXT_ANSWER = "I couldn't find anything relevant in the documents."
DEFAULT_TOP_K = 4


class PipelineStage(str, Enum):
    RETRIEVE = "retrieve"
    GENERATE = "generate"
    DONE = "done"


@dataclass(slots=True)
class QuestionState:
    """State of a single pipeline invocation."""

    question: str
    context: List[Chunk] = field(default_factory=list)
    answer: Optional[str] = None
    stage: PipelineStage = PipelineStage.RETRIEVE
    req_id: str = field(default_factory=lambda: uuid.uuid4().hex)


def has_usable_context(context: List[Chunk]) -> bool:
    return any(chunk.text and chunk.text.strip() for chunk in context)


class RetrievalAugmentedPipeline:
    """Answer one question at a time from the vector index.

    The run always goes Retrieve -> Generate -> Done. Generate skips the
    model call and returns :data:`NO_CONTEXT_ANSWER` when retrieval found
    nothing usable.
    """

    def __init__(
        self,
        retriever: Retriever,
        llm: LLM,
        *,
        template: Optional[str] = None,
        top_k: int = DEFAULT_TOP_K,
        no_context_answer: str = NO_CONTEXT_ANSWER,
    ) -> None:
        self.retriever = retriever
        self.llm = llm
        self.template = template if template is not None else load_template()
        self.top_k = top_k
        self.no_context_answer = no_context_answer

    async def invoke(self, question: str) -> QuestionState:
        state = QuestionState(question=question)
        while state.stage is not PipelineStage.DONE:
            if state.stage is PipelineStage.RETRIEVE:
                await self._retrieve(state)
                state.stage = PipelineStage.GENERATE
            else:
                await self._generate(state)
                state.stage = PipelineStage.DONE
        return state

    async def answer(self, question: str) -> str:
        state = await self.invoke(question)
        return state.answer if state.answer is not None else ""

    async def _retrieve(self, state: QuestionState) -> None:
        started = time.perf_counter()
        results = await self.retriever.retrieve(state.question, top_k=self.top_k)
        state.context = [result.chunk for result in results]
        emit_retriever_event(
            req_id=state.req_id,
            query=state.question,
            top_k=self.top_k,
            results=[
                {"id": result.id, "score": round(result.score, 4), "preview": result.chunk.text[:200]}
                for result in results
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )

    async def _generate(self, state: QuestionState) -> None:
        LOGGER.debug("Generating with %d context chunks", len(state.context))
        if not has_usable_context(state.context):
            state.answer = self.no_context_answer
            emit_inference_result(
                req_id=state.req_id,
                duration_ms=0.0,
                model_used="none",
                answer_preview=state.answer,
                context_chunks=len(state.context),
                fallback=True,
            )
            return

        prompt = build_prompt(self.template, state.question, state.context)
        emit_prompt_event(req_id=state.req_id, context_chunks=len(state.context), prompt_chars=len(prompt))
        started = time.perf_counter()
        answer = await asyncio.to_thread(self.llm.complete, prompt)
        state.answer = answer if answer is not None else ""
        emit_inference_result(
            req_id=state.req_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=self.llm.model_name,
            answer_preview=state.answer,
            context_chunks=len(state.context),
            fallback=False,
        )


__all__ = [
    "NO_CONTEXT_ANSWER",
    "PipelineStage",
    "QuestionState",
    "RetrievalAugmentedPipeline",
    "has_usable_context",
]
