"""
Document text extraction.
"""

from reqai.extraction.orchestrator import ExtractionOrchestrator, UploadedFile, degraded_extraction
from reqai.extraction.provider import ExtractionProvider, SubprocessExtractionProvider

__all__ = [
    "ExtractionOrchestrator",
    "ExtractionProvider",
    "SubprocessExtractionProvider",
    "UploadedFile",
    "degraded_extraction",
]
