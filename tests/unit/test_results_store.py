"""
Tests for the results stores.
"""

import json
from pathlib import Path

import pytest

from reqai.core.exceptions import PersistenceError, ResultsNotFoundError
from reqai.domain.extraction import ExtractionResult, FileExtraction
from reqai.repositories.results_repo import FileResultsStore, InMemoryResultsStore


def _result(**texts: str) -> ExtractionResult:
    return ExtractionResult(
        files={
            name: FileExtraction(file_type="txt", extracted_text=text)
            for name, text in texts.items()
        }
    )


class TestFileResultsStore:
    """Tests for the JSON-file store."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> FileResultsStore:
        return FileResultsStore(
            results_path=str(tmp_path / "extraction_results.json"),
            responses_path=str(tmp_path / "chat_responses.json"),
        )

    @pytest.mark.asyncio
    async def test_missing_snapshot_is_not_found(self, store: FileResultsStore) -> None:
        with pytest.raises(ResultsNotFoundError):
            await store.load_snapshot()

    @pytest.mark.asyncio
    async def test_snapshot_is_keyed_by_filename(self, store: FileResultsStore) -> None:
        await store.save_snapshot(_result(**{"a.txt": "alpha"}))

        document = json.loads(store.results_path.read_text(encoding="utf-8"))
        assert document == {
            "a.txt": {"file_type": "txt", "extracted_text": "alpha", "status": "extracted"}
        }

    @pytest.mark.asyncio
    async def test_save_overwrites_previous_snapshot(self, store: FileResultsStore) -> None:
        await store.save_snapshot(_result(**{"a.txt": "alpha"}))
        await store.save_snapshot(_result(**{"b.txt": "beta"}))

        loaded = await store.load_snapshot()
        assert list(loaded.files) == ["b.txt"]
        assert loaded["b.txt"].extracted_text == "beta"

    @pytest.mark.asyncio
    async def test_unparsable_snapshot_is_persistence_error(self, store: FileResultsStore) -> None:
        store.results_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            await store.load_snapshot()

        assert exc_info.value.message == "Failed to parse results file"
        assert "could not be parsed" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_legacy_string_entries_load(self, store: FileResultsStore) -> None:
        store.results_path.write_text(json.dumps({"notes.md": "# Notes"}), encoding="utf-8")

        loaded = await store.load_snapshot()

        assert loaded["notes.md"].file_type == "md"
        assert loaded["notes.md"].extracted_text == "# Notes"

    @pytest.mark.asyncio
    async def test_record_and_clear_responses(self, store: FileResultsStore) -> None:
        assert await store.record_response("sess_1", "first") is True
        assert await store.record_response("sess_1", "second") is True
        assert await store.record_response("sess_2", "other") is True

        data = json.loads(store.responses_path.read_text(encoding="utf-8"))
        assert [r["content"] for r in data["sess_1"]] == ["first", "second"]

        assert await store.clear_responses("sess_1") is True
        data = json.loads(store.responses_path.read_text(encoding="utf-8"))
        assert "sess_1" not in data
        assert "sess_2" in data

    @pytest.mark.asyncio
    async def test_malformed_session_entry_is_replaced(self, store: FileResultsStore) -> None:
        store.responses_path.write_text(
            json.dumps({"sess_1": "not a list", "sess_2": []}), encoding="utf-8"
        )

        assert await store.record_response("sess_1", "fresh") is True

        data = json.loads(store.responses_path.read_text(encoding="utf-8"))
        assert [r["content"] for r in data["sess_1"]] == ["fresh"]

    @pytest.mark.asyncio
    async def test_record_failure_returns_false(self, tmp_path: Path) -> None:
        blocked = tmp_path / "responses"
        blocked.mkdir()
        store = FileResultsStore(
            results_path=str(tmp_path / "results.json"),
            responses_path=str(blocked),
        )

        assert await store.record_response("sess_1", "text") is False


class TestInMemoryResultsStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        store = InMemoryResultsStore()
        await store.save_snapshot(_result(**{"a.txt": "alpha"}))

        loaded = await store.load_snapshot()

        assert loaded["a.txt"].extracted_text == "alpha"

    @pytest.mark.asyncio
    async def test_responses(self) -> None:
        store = InMemoryResultsStore()
        await store.record_response("sess_1", "hello")

        assert [r["content"] for r in store.responses_for("sess_1")] == ["hello"]
        assert await store.clear_responses("sess_1") is True
        assert store.responses_for("sess_1") == []
