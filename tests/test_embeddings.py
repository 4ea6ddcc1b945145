import pytest

from msgrag.config import load_settings
from msgrag.embeddings import DEFAULT_OPENAI_MODEL, EmbeddingModel, get_embedding_model
from msgrag.errors import ConfigurationError


def test_hash_backend_is_deterministic():
    model = EmbeddingModel("hash", dimension=8)

    first = model.embed_texts(["Message 001", "Message 002"])
    second = model.embed_texts(["Message 001", "Message 002"])

    assert first == second
    assert first[0] != first[1]
    assert model.dimension == 8
    assert all(len(vector) == 8 for vector in first)


def test_empty_input_returns_no_vectors():
    assert EmbeddingModel("hash").embed_texts([]) == []


def test_unknown_backend_is_rejected():
    with pytest.raises(ConfigurationError):
        EmbeddingModel("word2vec")


def test_embedding_model_is_shared_per_settings(offline_settings):
    assert get_embedding_model(offline_settings) is get_embedding_model(offline_settings)


def test_openai_backend_defaults_to_openai_model(monkeypatch):
    monkeypatch.setenv("EMBEDDING_BACKEND", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = load_settings().validate()

    assert settings.embedding_model is None
    assert get_embedding_model(settings).model_name == DEFAULT_OPENAI_MODEL


def test_explicit_embedding_model_is_used(monkeypatch):
    monkeypatch.setenv("EMBEDDING_BACKEND", "openai")
    monkeypatch.setenv("EMBEDDING_MODEL", "text-embedding-3-large")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    assert get_embedding_model(load_settings()).model_name == "text-embedding-3-large"


@pytest.mark.heavy
def test_sentence_transformer_vectors_are_normalised():
    model = EmbeddingModel("sentence-transformers")

    vector = model.embed_texts(["How do I register a meter point?"])[0]

    assert len(vector) == model.dimension
    assert sum(value * value for value in vector) == pytest.approx(1.0, rel=1e-3)
