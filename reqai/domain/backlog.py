"""
Backlog domain model for Epics, Stories, Tasks and Sub-tasks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from reqai.core.constants import BacklogItemType, Priority


class BacklogItem(BaseModel):
    """A generated unit of work. Never mutated after generation."""

    item_id: str = Field(..., description="Stable synthetic identifier")
    type: BacklogItemType = Field(..., description="Hierarchy level")
    summary: str = Field(..., description="Human-readable title")
    description: str = Field(default="")
    priority: Optional[Priority] = Field(default=None, description="None when unspecified")
    labels: list[str] = Field(default_factory=list, description="Ordered, without duplicates")

    parent: Optional[str] = Field(
        default=None, description="Summary of the parent item as generated (display only)"
    )
    parent_id: Optional[str] = Field(default=None, description="Resolved parent identifier")

    model_config = {"frozen": True}


class BacklogNode(BaseModel):
    """An item placed in the Epic -> Story -> Task -> Sub-task tree."""

    item: BacklogItem
    children: list[BacklogNode] = Field(default_factory=list)


class BacklogResult(BaseModel):
    """One generation run: the flat item list plus the raw model reply."""

    items: list[BacklogItem] = Field(default_factory=list)
    raw_response: str = Field(default="")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
