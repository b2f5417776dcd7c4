"""
Results store for the persisted extraction snapshot and assistant responses.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from reqai.core.config import settings
from reqai.core.exceptions import PersistenceError, ResultsNotFoundError
from reqai.core.logging import get_logger
from reqai.domain.extraction import ExtractionResult

logger = get_logger(__name__)


class ResultsStore(ABC):
    """
    Read/write boundary for artifacts consumed by the UI and by export.

    The extraction snapshot is a single slot: every save overwrites the
    previous one. Response recording is best-effort: ``record_response`` and
    ``clear_responses`` never raise, they return False and log on failure.
    """

    @abstractmethod
    async def save_snapshot(self, result: ExtractionResult) -> None:
        """Overwrite the latest extraction snapshot."""
        ...

    @abstractmethod
    async def load_snapshot(self) -> ExtractionResult:
        """
        Read the latest extraction snapshot.

        Raises:
            ResultsNotFoundError: If no extraction has run yet
            PersistenceError: If the snapshot cannot be read or parsed
        """
        ...

    @abstractmethod
    async def record_response(self, session_id: str, content: str) -> bool:
        """Best-effort append of an assistant response."""
        ...

    @abstractmethod
    async def clear_responses(self, session_id: str) -> bool:
        """Best-effort removal of a session's recorded responses."""
        ...


class InMemoryResultsStore(ResultsStore):
    """
    In-memory results store for development/testing.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[dict[str, Any]] = None
        self._responses: dict[str, list[dict[str, str]]] = {}

    async def save_snapshot(self, result: ExtractionResult) -> None:
        self._snapshot = result.to_snapshot()

    async def load_snapshot(self) -> ExtractionResult:
        if self._snapshot is None:
            raise ResultsNotFoundError()
        return ExtractionResult.from_snapshot(self._snapshot)

    async def record_response(self, session_id: str, content: str) -> bool:
        self._responses.setdefault(session_id, []).append(
            {"content": content, "recorded_at": datetime.now(timezone.utc).isoformat()}
        )
        return True

    async def clear_responses(self, session_id: str) -> bool:
        self._responses.pop(session_id, None)
        return True

    def responses_for(self, session_id: str) -> list[dict[str, str]]:
        """Recorded responses for a session (test helper)."""
        return list(self._responses.get(session_id, []))


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FileResultsStore(ResultsStore):
    """
    JSON-file results store.

    The snapshot lives in one document keyed by original filename; responses
    go to a second document keyed by session ID.
    """

    def __init__(
        self,
        results_path: Optional[str] = None,
        responses_path: Optional[str] = None,
    ) -> None:
        self.results_path = Path(results_path or settings.extraction.results_path)
        self.responses_path = Path(responses_path or settings.extraction.responses_path)
        self._responses_lock = asyncio.Lock()

    async def save_snapshot(self, result: ExtractionResult) -> None:
        try:
            await asyncio.to_thread(_write_json_atomic, self.results_path, result.to_snapshot())
        except OSError as e:
            raise PersistenceError(
                "Failed to write extraction results",
                details={"path": str(self.results_path), "error": str(e)},
            ) from e
        logger.debug("Extraction snapshot saved", path=str(self.results_path), files=len(result))

    async def load_snapshot(self) -> ExtractionResult:
        if not self.results_path.exists():
            raise ResultsNotFoundError()

        try:
            raw = await asyncio.to_thread(self.results_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(
                "Failed to access extraction results",
                details={"path": str(self.results_path), "error": str(e)},
            ) from e

        try:
            return ExtractionResult.from_snapshot(json.loads(raw))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            raise PersistenceError(
                "Failed to parse results file",
                details={
                    "path": str(self.results_path),
                    "error": f"The file exists but could not be parsed: {e}",
                },
            ) from e

    def _read_responses(self) -> dict[str, list[dict[str, str]]]:
        if not self.responses_path.exists():
            return {}
        data = json.loads(self.responses_path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    async def record_response(self, session_id: str, content: str) -> bool:
        async with self._responses_lock:
            try:
                data = await asyncio.to_thread(self._read_responses)
                entries = data.get(session_id)
                if not isinstance(entries, list):
                    entries = []
                entries.append(
                    {"content": content, "recorded_at": datetime.now(timezone.utc).isoformat()}
                )
                data[session_id] = entries
                await asyncio.to_thread(_write_json_atomic, self.responses_path, data)
                return True
            except (OSError, ValueError) as e:
                logger.warning("Failed to record response", session_id=session_id, error=str(e))
                return False

    async def clear_responses(self, session_id: str) -> bool:
        async with self._responses_lock:
            try:
                data = await asyncio.to_thread(self._read_responses)
                if data.pop(session_id, None) is not None:
                    await asyncio.to_thread(_write_json_atomic, self.responses_path, data)
                return True
            except (OSError, ValueError) as e:
                logger.warning("Failed to clear responses", session_id=session_id, error=str(e))
                return False
