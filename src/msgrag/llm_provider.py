"""Language model backends used to generate answers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from msgrag.config import Settings
from msgrag.errors import ConfigurationError, MsgragError

LOGGER = logging.getLogger(__name__)

MOCK_PREFIX = "MOCK_ANSWER: "
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


@dataclass(slots=True)
class LLMStatus:
    """Structured status information about the configured LLM backend."""

    model_loaded: bool
    model_name: str
    error: Optional[str] = None


class LLMError(MsgragError):
    """Base exception raised for LLM provider issues."""


class LLMNotReadyError(LLMError):
    """Raised when the model cannot be loaded or is unavailable."""


class LLMGenerationError(LLMError):
    """Raised when text generation fails unexpectedly."""


class LLM:
    """Common interface exposed by language model implementations."""

    def complete(self, prompt: str) -> str:
        """Return the model's completion for *prompt*."""

        raise NotImplementedError

    @property
    def model_loaded(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return "unknown"

    def status(self) -> LLMStatus:
        return LLMStatus(model_loaded=self.model_loaded, model_name=self.model_name)


class MockLLM(LLM):
    """Deterministic backend echoing the start of the prompt."""

    def __init__(self, preview_chars: int = 100) -> None:
        self.preview_chars = preview_chars

    def complete(self, prompt: str) -> str:
        return MOCK_PREFIX + prompt[: self.preview_chars]

    @property
    def model_name(self) -> str:
        return "mock"


class OpenAILLM(LLM):
    """Chat completion backend for OpenAI-compatible APIs."""

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        *,
        api_key: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 512,
    ) -> None:
        if not api_key:
            raise LLMNotReadyError("OPENAI_API_KEY is not configured")
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key)
        self._model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return self._model

    def complete(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as error:
            raise LLMGenerationError(f"OpenAI completion failed: {error}") from error
        return (response.choices[0].message.content or "").strip()


class TransformersLLM(LLM):
    """Local HuggingFace text-generation model, loaded on first use."""

    def __init__(self, model_path: str, *, temperature: float = 0.0, max_tokens: int = 512) -> None:
        self.model_path = model_path
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._pipeline = None
        self._last_error: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def model_loaded(self) -> bool:
        return self._pipeline is not None

    @property
    def model_name(self) -> str:
        return self.model_path

    def status(self) -> LLMStatus:
        return LLMStatus(model_loaded=self.model_loaded, model_name=self.model_name, error=self._last_error)

    def _ensure_loaded(self) -> None:
        if self._pipeline is not None:
            return
        with self._lock:
            if self._pipeline is not None:
                return
            from transformers import pipeline

            LOGGER.info("Loading text-generation model from %s", self.model_path)
            try:
                self._pipeline = pipeline("text-generation", model=self.model_path)
            except Exception as error:
                self._last_error = str(error)
                raise LLMNotReadyError(f"Failed to load model {self.model_path}: {error}") from error

    def complete(self, prompt: str) -> str:
        self._ensure_loaded()
        sampling = {"do_sample": True, "temperature": self.temperature} if self.temperature > 0 else {"do_sample": False}
        try:
            outputs = self._pipeline(  # type: ignore[misc]
                prompt,
                max_new_tokens=self.max_tokens,
                return_full_text=False,
                **sampling,
            )
        except Exception as error:
            raise LLMGenerationError(f"Text generation failed: {error}") from error
        return str(outputs[0]["generated_text"]).strip()


_GLOBAL_LLMS: Dict[Tuple[str, Optional[str]], LLM] = {}


def build_llm(settings: Settings) -> LLM:
    """Instantiate the configured backend."""

    provider = settings.llm_provider
    if provider == "mock":
        return MockLLM()
    if provider == "openai":
        return OpenAILLM(
            settings.llm_model or DEFAULT_OPENAI_MODEL,
            api_key=settings.openai_api_key,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    if provider == "transformers":
        if not settings.llm_model:
            raise ConfigurationError("LLM_MODEL must name a local model for the transformers provider")
        return TransformersLLM(
            settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    raise ConfigurationError(f"Unsupported LLM_PROVIDER: {provider!r}")


def get_llm(settings: Settings) -> LLM:
    """Return a lazily initialised, process-wide LLM instance."""

    key = (settings.llm_provider, settings.llm_model)
    llm = _GLOBAL_LLMS.get(key)
    if llm is None:
        llm = _GLOBAL_LLMS[key] = build_llm(settings)
        LOGGER.info("Initialised %s LLM backend (%s)", settings.llm_provider, llm.model_name)
    return llm


def reset_llm_cache() -> None:
    _GLOBAL_LLMS.clear()


__all__ = [
    "LLM",
    "LLMError",
    "LLMGenerationError",
    "LLMNotReadyError",
    "LLMStatus",
    "MockLLM",
    "OpenAILLM",
    "TransformersLLM",
    "build_llm",
    "get_llm",
    "reset_llm_cache",
]
