"""
Document extraction endpoints.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from reqai.api.deps import get_orchestrator, get_results_store
from reqai.core.exceptions import EmptyUploadError
from reqai.core.logging import get_logger
from reqai.extraction.orchestrator import ExtractionOrchestrator, UploadedFile
from reqai.repositories.results_repo import ResultsStore

logger = get_logger(__name__)

router = APIRouter()


class ExtractionResponse(BaseModel):
    """Extraction result keyed by original filename."""

    results: dict[str, dict[str, Any]]
    warning: Optional[str] = Field(default=None)


async def read_uploads(files: list[UploadFile]) -> list[UploadedFile]:
    """Read multipart uploads into memory, skipping unnamed parts."""
    uploaded: list[UploadedFile] = []
    for upload in files:
        if not upload.filename:
            continue
        uploaded.append(UploadedFile(filename=upload.filename, content=await upload.read()))
    return uploaded


@router.post("/extraction/upload", response_model=ExtractionResponse, response_model_exclude_none=True)
async def upload_files(
    files: list[UploadFile] = File(default=[]),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
) -> ExtractionResponse:
    """
    Extract text from an upload batch.

    Always answers with one entry per uploaded file; a warning is attached
    when the fallback extractor was used.
    """
    uploaded = await read_uploads(files)
    if not uploaded:
        raise EmptyUploadError()

    logger.info("Processing upload batch", files=len(uploaded))
    result = await orchestrator.extract(uploaded)

    return ExtractionResponse(results=result.to_snapshot(), warning=result.warning)


@router.get("/extraction/results", response_model=ExtractionResponse, response_model_exclude_none=True)
async def get_results(
    results_store: ResultsStore = Depends(get_results_store),
) -> ExtractionResponse:
    """Latest persisted extraction snapshot."""
    result = await results_store.load_snapshot()
    return ExtractionResponse(results=result.to_snapshot())


@router.get("/extraction/results/download")
async def download_results(
    results_store: ResultsStore = Depends(get_results_store),
) -> Response:
    """Latest snapshot as a JSON attachment."""
    result = await results_store.load_snapshot()
    return Response(
        content=json.dumps(result.to_snapshot(), indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="extraction_results.json"'},
    )
