import io

import pytest

from msgrag import cli
from msgrag.ingest.models import Chunk
from msgrag.ingest.sink import RecordSink
from msgrag.vectorstore import get_vector_store


def _scripted(*lines: str):
    remaining = list(lines)

    def read_line(prompt: str) -> str:
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


@pytest.mark.anyio
async def test_repl_answers_until_exit():
    asked = []

    async def answer(question: str) -> str:
        asked.append(question)
        return f"answer to {question}"

    out = io.StringIO()
    await cli.run_repl(answer, read_line=_scripted("first", "   ", "EXIT", "never asked"), out=out)

    assert asked == ["first"]
    assert out.getvalue() == "answer to first\n"


@pytest.mark.anyio
async def test_repl_survives_failed_question():
    async def answer(question: str) -> str:
        if question == "bad":
            raise RuntimeError("index offline")
        return "fine"

    out = io.StringIO()
    await cli.run_repl(answer, read_line=_scripted("bad", "good"), out=out)

    assert out.getvalue() == "Failed to answer question: index offline\nfine\n"


def test_invalid_chunking_exits_with_configuration_error(monkeypatch, capsys):
    monkeypatch.setenv("CHUNK_SIZE", "100")
    monkeypatch.setenv("CHUNK_OVERLAP", "100")
    monkeypatch.setenv("LLM_PROVIDER", "mock")

    assert cli.main(["split"]) == 2
    assert "CHUNK_OVERLAP" in capsys.readouterr().err


def test_split_without_pdfs_is_a_no_op(monkeypatch, tmp_path):
    monkeypatch.setenv("LLM_PROVIDER", "mock")

    assert cli.main(["split", "--docs-dir", str(tmp_path / "docs"), "--out-dir", str(tmp_path / "out")]) == 0
    assert not (tmp_path / "out").exists()


def test_upload_loads_chunks_into_index(monkeypatch, tmp_path, capsys):
    RecordSink().write(
        [Chunk(text="Message 001: Registration Request", metadata={"split_id": 0})],
        tmp_path / "chunks" / "guide.jsonl",
    )
    monkeypatch.setenv("VECTOR_STORE", "mock")
    monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("LLM_PROVIDER", "mock")

    assert cli.main(["run", "--upload", "--chunks-dir", str(tmp_path / "chunks")]) == 0
    assert "Uploaded 1 chunks from 1 files to 'documents'." in capsys.readouterr().out


def test_upload_reports_malformed_file(monkeypatch, tmp_path, capsys):
    chunks_dir = tmp_path / "chunks"
    chunks_dir.mkdir()
    (chunks_dir / "guide.jsonl").write_text("{broken\n", encoding="utf-8")
    monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("LLM_PROVIDER", "mock")

    assert cli.main(["run", "--upload", "--chunks-dir", str(chunks_dir)]) == 1
    assert "guide.jsonl:1" in capsys.readouterr().err


def test_api_serves_the_selected_profile(monkeypatch):
    served = []
    monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: served.append((app, kwargs)))
    monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("LLM_PROVIDER", "mock")

    assert cli.main(["--profile", "tutorial", "api", "--port", "9000"]) == 0

    app, kwargs = served[0]
    assert kwargs["port"] == 9000
    assert app.state.settings.collection_name == "tutorial"
    assert app.state.pipeline is not None
    assert get_vector_store(app.state.settings).collection_name == "tutorial"


def test_api_reports_configuration_errors_before_serving(monkeypatch, tmp_path, capsys):
    template = tmp_path / "answer.txt"
    template.write_text("No placeholders here.", encoding="utf-8")
    monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: pytest.fail("server started"))
    monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("PROMPT_TEMPLATE_PATH", str(template))

    assert cli.main(["api"]) == 2
    assert "Configuration error" in capsys.readouterr().err
