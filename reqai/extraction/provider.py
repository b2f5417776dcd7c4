"""
Extraction providers: the external capability that turns documents into text.
"""

from __future__ import annotations

import asyncio
import json
import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Sequence

from reqai.core.config import settings
from reqai.core.exceptions import ExtractionProviderError
from reqai.core.logging import get_logger

logger = get_logger(__name__)


class ExtractionProvider(ABC):
    """
    Batch-in, result-or-failure-out extraction capability.

    Implementations return a mapping keyed by file name (or path) whose values
    are either the extracted text or an object with ``file_type`` and
    ``extracted_text``. Any failure is raised as ExtractionProviderError.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier used in logs."""
        ...

    @abstractmethod
    async def extract(self, paths: Sequence[Path]) -> dict[str, Any]:
        """
        Extract text from a batch of files.

        Args:
            paths: Files already written to the working directory

        Returns:
            Raw provider mapping

        Raises:
            ExtractionProviderError: If the tool is unavailable or its output is unusable
        """
        ...


class SubprocessExtractionProvider(ExtractionProvider):
    """
    Runs an external extraction tool as a child process.

    The tool receives the file paths as arguments and reports its result as a
    JSON object, either on stdout or in ``output_file`` when one is
    configured.
    """

    def __init__(
        self,
        command: Optional[str] = None,
        output_file: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            command: Tool command line (file paths are appended)
            output_file: Artifact the tool writes its JSON result to
            timeout_seconds: Kill the tool after this long
            cwd: Working directory for the tool
        """
        self.command = command if command is not None else settings.extraction.command
        self.output_file = Path(output_file) if output_file else (
            Path(settings.extraction.output_file) if settings.extraction.output_file else None
        )
        self.timeout_seconds = timeout_seconds or settings.extraction.timeout_seconds
        self.cwd = cwd

    @property
    def name(self) -> str:
        return "subprocess"

    async def extract(self, paths: Sequence[Path]) -> dict[str, Any]:
        if not self.command:
            raise ExtractionProviderError("No extraction command configured")

        argv = [*shlex.split(self.command), *(str(p) for p in paths)]

        # A stale artifact from an earlier run must not be mistaken for this one
        if self.output_file is not None:
            self.output_file.unlink(missing_ok=True)

        logger.info("Running extraction tool", command=argv[0], files=len(paths))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
            )
        except OSError as e:
            raise ExtractionProviderError(
                f"Could not start extraction tool: {e}", details={"command": argv[0]}
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ExtractionProviderError(
                f"Extraction tool timed out after {self.timeout_seconds} seconds",
                details={"timeout_seconds": self.timeout_seconds},
            ) from e

        stderr_text = stderr.decode("utf-8", errors="replace")
        if process.returncode != 0:
            raise ExtractionProviderError(
                f"Extraction tool exited with status {process.returncode}",
                details={"stderr": stderr_text[-2000:]},
            )
        if "Error" in stderr_text:
            raise ExtractionProviderError(
                "Extraction tool reported an error", details={"stderr": stderr_text[-2000:]}
            )

        return self._read_output(stdout)

    def _read_output(self, stdout: bytes) -> dict[str, Any]:
        if self.output_file is not None:
            if not self.output_file.exists():
                raise ExtractionProviderError(
                    "Results file not found", details={"path": str(self.output_file)}
                )
            try:
                raw = self.output_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ExtractionProviderError(f"Unreadable results file: {e}") from e
        else:
            raw = stdout.decode("utf-8", errors="replace")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ExtractionProviderError(f"Unparsable extraction output: {e}") from e

        if not isinstance(data, dict):
            raise ExtractionProviderError(
                "Extraction output must be a JSON object keyed by file name",
                details={"type": type(data).__name__},
            )
        return data
