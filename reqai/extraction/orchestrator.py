"""
Extraction orchestration with graceful degradation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from reqai.core.config import settings
from reqai.core.constants import (
    DEGRADED_EXTRACTION_WARNING,
    PLAIN_TEXT_EXTENSIONS,
    UNSUPPORTED_FILE_MESSAGE,
    ExtractionStatus,
)
from reqai.core.exceptions import EmptyUploadError, ExtractionProviderError, PersistenceError
from reqai.core.logging import LogContext, get_logger
from reqai.core.security import generate_batch_id, safe_filename, sanitize_path
from reqai.domain.extraction import ExtractionResult, FileExtraction, file_type_for
from reqai.extraction.provider import ExtractionProvider
from reqai.repositories.results_repo import ResultsStore

logger = get_logger(__name__)


@dataclass
class UploadedFile:
    """A file received in an upload batch."""

    filename: str
    content: bytes


def degraded_extraction(filename: str, content: bytes) -> FileExtraction:
    """
    Extract a single file without the provider.

    Plain-text types are decoded as UTF-8, with undecodable bytes replaced by
    U+FFFD; everything else gets a diagnostic entry instead of being dropped.
    """
    file_type = file_type_for(filename)

    if file_type not in PLAIN_TEXT_EXTENSIONS:
        return FileExtraction(
            file_type=file_type,
            extracted_text=UNSUPPORTED_FILE_MESSAGE,
            status=ExtractionStatus.UNSUPPORTED,
        )

    text = content.decode("utf-8", errors="replace")
    return FileExtraction(file_type=file_type, extracted_text=text)


class ExtractionOrchestrator:
    """
    Owns the extraction fallback policy.

    ``extract`` always returns one entry per uploaded file name and never
    raises for provider trouble; the only error it surfaces is an empty batch.
    """

    def __init__(
        self,
        provider: ExtractionProvider,
        results_store: ResultsStore,
        upload_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            provider: Extraction capability
            results_store: Where the latest snapshot is persisted
            upload_dir: Root of the per-batch working directories
        """
        self.provider = provider
        self.results_store = results_store
        self.upload_dir = Path(upload_dir or settings.extraction.upload_dir)

    async def extract(self, files: Sequence[UploadedFile]) -> ExtractionResult:
        """
        Extract text from an upload batch and persist the result.

        Args:
            files: Uploaded files; a repeated name keeps the last upload

        Returns:
            ExtractionResult keyed by original file name

        Raises:
            EmptyUploadError: If the batch is empty
        """
        if not files:
            raise EmptyUploadError()

        batch_id = generate_batch_id()
        with LogContext(batch_id=batch_id):
            contents = {safe_filename(f.filename): f.content for f in files}
            paths = await self._persist_uploads(batch_id, contents)

            result = await self._run_provider(contents, paths)

            try:
                await self.results_store.save_snapshot(result)
            except PersistenceError as e:
                logger.error("Failed to persist extraction results", error=e.message)

            logger.info(
                "Extraction finished",
                files=len(result),
                degraded=result.degraded,
            )
            return result

    async def _persist_uploads(
        self, batch_id: str, contents: dict[str, bytes]
    ) -> dict[str, Path]:
        batch_dir = self.upload_dir / batch_id
        paths: dict[str, Path] = {}

        await asyncio.to_thread(batch_dir.mkdir, parents=True, exist_ok=True)
        for name, content in contents.items():
            try:
                path = Path(sanitize_path(name, str(batch_dir)))
                await asyncio.to_thread(path.write_bytes, content)
            except (OSError, ValueError) as e:
                # Still gets a degraded entry; the provider just never sees it
                logger.warning("Failed to store upload", filename=name, error=str(e))
                continue
            paths[name] = path

        return paths

    async def _run_provider(
        self, contents: dict[str, bytes], paths: dict[str, Path]
    ) -> ExtractionResult:
        if not paths:
            return self._degrade(contents, reason="no files could be stored")

        try:
            raw = await self.provider.extract(list(paths.values()))
            resolved = self._resolve(raw, contents)
        except ExtractionProviderError as e:
            logger.warning("Extraction provider failed", provider=self.provider.name, error=e.message)
            return self._degrade(contents, reason=e.message)

        missing = [name for name in contents if name not in resolved]
        if not missing:
            return ExtractionResult(files=resolved)

        logger.warning("Extraction provider omitted files", missing=missing)
        for name in missing:
            resolved[name] = degraded_extraction(name, contents[name])
        return ExtractionResult(
            files={name: resolved[name] for name in contents},
            degraded=True,
            warning=DEGRADED_EXTRACTION_WARNING,
        )

    def _resolve(
        self, raw: dict[str, Any], contents: dict[str, bytes]
    ) -> dict[str, FileExtraction]:
        by_name = {safe_filename(str(key)): value for key, value in raw.items()}
        resolved: dict[str, FileExtraction] = {}

        for name in contents:
            if name not in by_name:
                continue
            try:
                resolved[name] = FileExtraction.from_provider(name, by_name[name])
            except ValueError as e:
                raise ExtractionProviderError(str(e), details={"filename": name}) from e

        return resolved

    def _degrade(self, contents: dict[str, bytes], reason: str) -> ExtractionResult:
        logger.info("Using degraded extraction", reason=reason, files=len(contents))
        return ExtractionResult(
            files={name: degraded_extraction(name, content) for name, content in contents.items()},
            degraded=True,
            warning=DEGRADED_EXTRACTION_WARNING,
        )
