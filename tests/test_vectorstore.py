from unittest.mock import Mock

import pytest

from msgrag.ingest.models import Chunk
from msgrag.vectorstore import (
    ChunkVectorStore,
    MockVectorStore,
    VectorStoreUnavailableError,
    get_vector_store,
)
from msgrag.vectorstore.chroma_store import ChromaStore


def test_mock_store_orders_by_cosine_distance():
    store = MockVectorStore()
    store.create_collection("docs")
    store.add(
        "docs",
        ids=["far", "near", "middle"],
        embeddings=[[0.0, 1.0], [1.0, 0.0], [1.0, 1.0]],
        documents=["far", "near", "middle"],
        metadatas=[{}, {}, {}],
    )

    results = store.query("docs", [1.0, 0.0], k=2)

    assert [result.id for result in results] == ["near", "middle"]
    assert results[0].distance == pytest.approx(0.0)
    assert store.count("docs") == 3


def test_mock_store_rejects_unknown_collection_and_ragged_input():
    store = MockVectorStore()
    with pytest.raises(KeyError):
        store.add("missing", ids=["a"], embeddings=[[1.0]], documents=["a"])

    store.create_collection("docs")
    with pytest.raises(ValueError):
        store.add("docs", ids=["a", "b"], embeddings=[[1.0]], documents=["a"])


def test_upsert_then_search_returns_exact_match_first(memory_store):
    chunks = [
        Chunk(text="Message 001: Registration Request", metadata={"message_code": "001", "split_id": 0}),
        Chunk(text="Message 002: Change of Supplier", metadata={"message_code": "002", "split_id": 0}),
    ]

    ids = memory_store.upsert_batch(chunks)
    results = memory_store.search("Message 002: Change of Supplier", k=2)

    assert len(ids) == 2 and len(set(ids)) == 2
    assert results[0].chunk == chunks[1]
    assert results[0].score == pytest.approx(1.0)
    assert results[0].score >= results[1].score


def test_uploads_are_append_only(memory_store):
    chunk = Chunk(text="Message 001: Registration Request", metadata={"split_id": 0})

    first = memory_store.upsert_batch([chunk])
    second = memory_store.upsert_batch([chunk])

    assert first != second
    assert len(memory_store.search(chunk.text, k=10)) == 2


def test_search_with_blank_query_or_empty_index(memory_store):
    assert memory_store.search("   ") == []
    assert memory_store.search("anything", k=0) == []
    assert memory_store.search("anything") == []
    assert memory_store.upsert_batch([]) == []


def test_backend_failures_are_wrapped(hash_embeddings):
    backend = Mock()
    backend.query.side_effect = ConnectionError("refused")
    store = ChunkVectorStore(backend, hash_embeddings)

    with pytest.raises(VectorStoreUnavailableError) as excinfo:
        store.search("question")

    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_collection_creation_failure_is_wrapped(hash_embeddings):
    backend = Mock()
    backend.create_collection.side_effect = RuntimeError("no disk")

    with pytest.raises(VectorStoreUnavailableError):
        ChunkVectorStore(backend, hash_embeddings)


def test_chroma_store_translates_query_results():
    collection = Mock()
    collection.count.return_value = 2
    collection.query.return_value = {
        "ids": [["a", "b"]],
        "documents": [["first", None]],
        "metadatas": [[{"split_id": 0}, None]],
        "distances": [[0.1, 0.4]],
    }
    client = Mock()
    client.get_or_create_collection.return_value = collection

    store = ChromaStore(client=client)
    results = store.query("documents", [0.5, 0.5], k=5)

    client.get_or_create_collection.assert_called_once_with(name="documents", metadata=None)
    assert collection.query.call_args.kwargs["n_results"] == 2
    assert results == [
        {"id": "a", "document": "first", "metadata": {"split_id": 0}, "distance": 0.1},
        {"id": "b", "document": "", "metadata": {}, "distance": 0.4},
    ]


def test_chroma_store_skips_query_on_empty_collection():
    collection = Mock()
    collection.count.return_value = 0
    client = Mock()
    client.get_or_create_collection.return_value = collection

    assert ChromaStore(client=client).query("documents", [1.0], k=3) == []
    collection.query.assert_not_called()


def test_chunk_store_scores_chroma_results(hash_embeddings):
    backend = Mock()
    backend.query.return_value = [{"id": "a", "document": "text", "metadata": {"split_id": 0}, "distance": 0.25}]

    results = ChunkVectorStore(backend, hash_embeddings).search("question")

    assert results[0].id == "a"
    assert results[0].score == pytest.approx(0.75)
    assert results[0].chunk == Chunk(text="text", metadata={"split_id": 0})


def test_get_vector_store_is_cached(offline_settings):
    first = get_vector_store(offline_settings)
    second = get_vector_store(offline_settings)
    other = get_vector_store(offline_settings.with_overrides(collection_name="other"))

    assert first is second
    assert other is not first
    assert other.collection_name == "other"


def test_mock_store_honours_collection_distance_space():
    store = MockVectorStore()
    store.create_collection("docs", metadata={"hnsw:space": "l2"})
    store.add("docs", ids=["long", "short"], embeddings=[[10.0, 0.0], [1.0, 0.0]], documents=["long", "short"])

    results = store.query("docs", [2.0, 0.0], k=2)

    # Cosine would tie these two; squared L2 prefers the closer point.
    assert [result.id for result in results] == ["short", "long"]
    assert results[0].distance == pytest.approx(1.0)

    with pytest.raises(ValueError):
        store.create_collection("other", metadata={"hnsw:space": "manhattan"})


def test_chroma_store_add_passes_aligned_columns():
    collection = Mock()
    client = Mock()
    client.get_or_create_collection.return_value = collection

    ChromaStore(client=client).add(
        "documents",
        ids=["a", "b"],
        embeddings=[[1, 0], [0, 1]],
        documents=["first", "second"],
        metadatas=[{"split_id": 0}, {}],
    )

    collection.add.assert_called_once_with(
        ids=["a", "b"],
        embeddings=[[1.0, 0.0], [0.0, 1.0]],
        documents=["first", "second"],
        metadatas=[{"split_id": 0}, None],
    )


class CountingEmbeddings:
    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def embed_texts(self, texts):
        self.calls.append(len(texts))
        return self.inner.embed_texts(texts)


def _numbered_chunks(count: int) -> list:
    return [Chunk(text=f"Message {index:03d}", metadata={"split_id": index}) for index in range(count)]


def test_large_upload_is_sliced_to_the_backend_limit(hash_embeddings):
    collection = Mock()
    client = Mock()
    client.get_or_create_collection.return_value = collection
    client.get_max_batch_size.return_value = 3
    embeddings = CountingEmbeddings(hash_embeddings)
    store = ChunkVectorStore(ChromaStore(client=client), embeddings)

    ids = store.upsert_batch(_numbered_chunks(7))

    assert len(ids) == 7
    assert embeddings.calls == [3, 3, 1]
    added = [call.kwargs["ids"] for call in collection.add.call_args_list]
    assert [len(batch) for batch in added] == [3, 3, 1]
    assert sum(added, []) == ids


def test_upload_slices_by_embedding_batch_size(hash_embeddings):
    embeddings = CountingEmbeddings(hash_embeddings)
    store = ChunkVectorStore(MockVectorStore(), embeddings, collection_name="docs", batch_size=4)

    store.upsert_batch(_numbered_chunks(10))

    assert embeddings.calls == [4, 4, 2]
    assert len(store.search("Message 003", k=20)) == 10
    assert store.search("Message 003", k=1)[0].chunk.text == "Message 003"
