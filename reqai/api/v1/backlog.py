"""
Backlog generation endpoints.
"""

import json
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from reqai.api.deps import get_session_manager
from reqai.backlog.hierarchy import build_tree, counts_by_type, export_backlog, orphans
from reqai.core.logging import get_logger
from reqai.domain.backlog import BacklogResult
from reqai.services.session_manager import SessionManager

logger = get_logger(__name__)

router = APIRouter()


class GenerateBacklogRequest(BaseModel):
    """Request to generate a backlog."""

    session_id: str
    text: Optional[str] = Field(
        default=None,
        description="Requirements text; defaults to the latest extraction, then the conversation",
    )


class BacklogResponse(BaseModel):
    """Flat items plus the views derived from them."""

    session_id: str
    items: list[dict[str, Any]]
    tree: list[dict[str, Any]]
    orphans: list[str]
    counts: dict[str, int]
    generated_at: str


def _render(session_id: str, result: BacklogResult) -> BacklogResponse:
    return BacklogResponse(
        session_id=session_id,
        items=[item.model_dump(mode="json") for item in result.items],
        tree=[node.model_dump(mode="json") for node in build_tree(result.items)],
        orphans=[item.item_id for item in orphans(result.items)],
        counts=counts_by_type(result.items),
        generated_at=result.generated_at.isoformat(),
    )


@router.post("/backlog/generate", response_model=BacklogResponse)
async def generate_backlog(
    request: GenerateBacklogRequest,
    session_manager: SessionManager = Depends(get_session_manager),
) -> BacklogResponse:
    """
    Structure requirements into Epics, Stories, Tasks and Sub-tasks.
    Regenerating replaces the previous backlog of the session.
    """
    logger.info("Generating backlog", session_id=request.session_id)

    result = await session_manager.generate_backlog(request.session_id, request.text)
    return _render(request.session_id, result)


@router.get("/backlog/{session_id}", response_model=BacklogResponse)
async def get_backlog(
    session_id: str,
    session_manager: SessionManager = Depends(get_session_manager),
) -> BacklogResponse:
    """Latest backlog of a session."""
    result = await session_manager.get_backlog(session_id)
    return _render(session_id, result)


@router.get("/backlog/{session_id}/export")
async def export(
    session_id: str,
    format: Literal["structured", "raw"] = Query(default="structured"),
    session_manager: SessionManager = Depends(get_session_manager),
) -> Response:
    """Download the backlog as a timestamped JSON file."""
    result = await session_manager.get_backlog(session_id)
    filename, payload = export_backlog(result, format)

    return Response(
        content=json.dumps(payload, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
