"""
Views derived from a flat backlog: tree, orphans, counts and exports.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from reqai.core.constants import BacklogItemType
from reqai.domain.backlog import BacklogItem, BacklogNode, BacklogResult

EXPORT_FORMATS = ("structured", "raw")


def build_tree(items: list[BacklogItem]) -> list[BacklogNode]:
    """Epics at the root, each child under the item its parent_id names."""
    children: dict[str, list[BacklogItem]] = {}
    for item in items:
        if item.parent_id is not None:
            children.setdefault(item.parent_id, []).append(item)

    def node(item: BacklogItem) -> BacklogNode:
        return BacklogNode(
            item=item,
            children=[node(child) for child in children.get(item.item_id, [])],
        )

    return [node(item) for item in items if item.type == BacklogItemType.EPIC]


def _walk(nodes: list[BacklogNode]) -> set[str]:
    seen: set[str] = set()
    stack = list(nodes)
    while stack:
        current = stack.pop()
        seen.add(current.item.item_id)
        stack.extend(current.children)
    return seen


def orphans(items: list[BacklogItem]) -> list[BacklogItem]:
    """Items that do not appear anywhere in the tree."""
    placed = _walk(build_tree(items))
    return [item for item in items if item.item_id not in placed]


def counts_by_type(items: list[BacklogItem]) -> dict[str, int]:
    """Number of items per hierarchy level."""
    counts = {item_type.value: 0 for item_type in BacklogItemType}
    for item in items:
        counts[item.type.value] += 1
    return counts


def export_filename(fmt: str, at: Optional[datetime] = None) -> str:
    """Timestamped download name, e.g. ``jira-items-2024-05-01T12-30-00.json``."""
    stamp = (at or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    prefix = "jira-items" if fmt == "structured" else "jira-full-result"
    return f"{prefix}-{stamp}.json"


def export_backlog(result: BacklogResult, fmt: str = "structured") -> tuple[str, Any]:
    """
    Render a backlog for download.

    Returns:
        (filename, JSON-serializable payload)

    Raises:
        ValueError: On an unknown format
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format: {fmt}")

    items = [item.model_dump(mode="json") for item in result.items]
    if fmt == "structured":
        return export_filename(fmt), items

    payload = {
        "items": items,
        "tree": [node.model_dump(mode="json") for node in build_tree(result.items)],
        "orphans": [item.item_id for item in orphans(result.items)],
        "counts": counts_by_type(result.items),
        "raw_response": result.raw_response,
        "generated_at": result.generated_at.isoformat(),
    }
    return export_filename(fmt), payload
