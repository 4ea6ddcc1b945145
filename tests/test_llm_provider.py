from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from msgrag.config import load_settings
from msgrag.errors import ConfigurationError
from msgrag.llm_provider import (
    DEFAULT_OPENAI_MODEL,
    MOCK_PREFIX,
    LLMGenerationError,
    LLMNotReadyError,
    MockLLM,
    OpenAILLM,
    TransformersLLM,
    build_llm,
    get_llm,
)


def test_mock_llm_echoes_prompt_prefix():
    llm = MockLLM()

    answer = llm.complete("x" * 250)

    assert answer == MOCK_PREFIX + "x" * 100
    assert llm.status().model_loaded
    assert llm.status().model_name == "mock"


def test_openai_without_key_is_not_ready():
    with pytest.raises(LLMNotReadyError):
        OpenAILLM("gpt-4o-mini", api_key=None)


def test_openai_completion_uses_chat_api():
    llm = OpenAILLM("gpt-4o-mini", api_key="sk-test", temperature=0.0, max_tokens=64)
    client = Mock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="  Registration request.  "))]
    )
    llm._client = client

    assert llm.complete("prompt") == "Registration request."
    client.chat.completions.create.assert_called_once_with(
        model="gpt-4o-mini",
        messages=[{"role": "user", "content": "prompt"}],
        temperature=0.0,
        max_tokens=64,
    )


def test_openai_failures_are_wrapped():
    llm = OpenAILLM("gpt-4o-mini", api_key="sk-test")
    client = Mock()
    client.chat.completions.create.side_effect = TimeoutError("slow")
    llm._client = client

    with pytest.raises(LLMGenerationError):
        llm.complete("prompt")


def test_transformers_backend_loads_lazily():
    llm = TransformersLLM("some/local-model")

    assert not llm.model_loaded
    assert llm.status().error is None
    assert llm.model_name == "some/local-model"


def test_build_llm_selects_configured_backend(offline_settings):
    assert isinstance(build_llm(offline_settings), MockLLM)
    local = build_llm(offline_settings.with_overrides(llm_provider="transformers", llm_model="some/local-model"))
    assert isinstance(local, TransformersLLM)

    with pytest.raises(ConfigurationError):
        build_llm(offline_settings.with_overrides(llm_provider="unknown"))


def test_get_llm_reuses_instance(offline_settings):
    assert get_llm(offline_settings) is get_llm(offline_settings)


def test_openai_provider_defaults_to_chat_model(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    llm = build_llm(load_settings().validate())

    assert llm.model_name == DEFAULT_OPENAI_MODEL


def test_transformers_provider_requires_a_model(monkeypatch, offline_settings):
    monkeypatch.setenv("LLM_PROVIDER", "transformers")

    with pytest.raises(ConfigurationError):
        load_settings().validate()
    with pytest.raises(ConfigurationError):
        build_llm(offline_settings.with_overrides(llm_provider="transformers"))
