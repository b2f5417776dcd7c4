"""
Extraction domain model.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, Field

from reqai.core.constants import ExtractionStatus


def file_type_for(filename: str) -> str:
    """Short lowercase extension tag, e.g. 'txt' for 'Spec.TXT'."""
    suffix = PurePath(filename).suffix
    return suffix[1:].lower() if suffix else ""


class FileExtraction(BaseModel):
    """Extracted text (or a diagnostic) for one uploaded file."""

    file_type: str = Field(..., description="Short extension tag")
    extracted_text: str = Field(..., description="Extracted text or diagnostic message")
    status: ExtractionStatus = Field(default=ExtractionStatus.EXTRACTED)

    @property
    def is_diagnostic(self) -> bool:
        """True when extracted_text explains a failure rather than holding content."""
        return self.status != ExtractionStatus.EXTRACTED

    @classmethod
    def from_provider(cls, filename: str, raw: Any) -> "FileExtraction":
        """
        Resolve a provider entry into a typed result.

        Providers return either a bare string or an object with
        ``file_type``/``extracted_text`` keys.

        Raises:
            ValueError: If the entry has neither shape
        """
        if isinstance(raw, str):
            return cls(file_type=file_type_for(filename), extracted_text=raw)

        if isinstance(raw, dict) and isinstance(raw.get("extracted_text"), str):
            file_type = raw.get("file_type")
            if not isinstance(file_type, str) or not file_type:
                file_type = file_type_for(filename)
            status = raw.get("status", ExtractionStatus.EXTRACTED.value)
            try:
                status = ExtractionStatus(status)
            except ValueError:
                status = ExtractionStatus.EXTRACTED
            return cls(
                file_type=file_type.lstrip(".").lower(),
                extracted_text=raw["extracted_text"],
                status=status,
            )

        raise ValueError(f"Unrecognized extraction entry for '{filename}': {type(raw).__name__}")


class ExtractionResult(BaseModel):
    """Per-batch extraction result keyed by original filename."""

    files: dict[str, FileExtraction] = Field(default_factory=dict)
    degraded: bool = Field(default=False, description="Produced by the fallback path")
    warning: str | None = Field(default=None)

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, filename: object) -> bool:
        return filename in self.files

    def __getitem__(self, filename: str) -> FileExtraction:
        return self.files[filename]

    def to_snapshot(self) -> dict[str, dict[str, Any]]:
        """Persisted/wire layout: filename -> {file_type, extracted_text, status}."""
        return {name: entry.model_dump(mode="json") for name, entry in self.files.items()}

    @classmethod
    def from_snapshot(cls, data: Any) -> "ExtractionResult":
        """
        Rebuild a result from its persisted layout.

        Raises:
            ValueError: If the document is not a filename-keyed object
        """
        if not isinstance(data, dict):
            raise ValueError("Extraction snapshot must be a JSON object keyed by filename")
        return cls(
            files={
                str(name): FileExtraction.from_provider(str(name), raw)
                for name, raw in data.items()
            }
        )

    def combined_text(self, include_diagnostics: bool = False) -> str:
        """Concatenate extracted text for downstream generation."""
        parts = []
        for name, entry in self.files.items():
            if entry.is_diagnostic and not include_diagnostics:
                continue
            parts.append(f"# {name}\n{entry.extracted_text.strip()}")
        return "\n\n".join(parts)
