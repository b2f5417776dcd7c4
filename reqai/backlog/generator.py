"""
Backlog item generator.
Structures free-form requirements into Epics, Stories, Tasks and Sub-tasks.
"""

import json
import re
from collections import defaultdict
from typing import Any, Optional

from reqai.core.config import settings
from reqai.core.constants import (
    ITEM_ID_PREFIXES,
    PARENT_TYPES,
    BacklogItemType,
    MessageRole,
    Priority,
)
from reqai.core.exceptions import BacklogParseError, ValidationError
from reqai.core.logging import get_logger
from reqai.domain.backlog import BacklogItem, BacklogResult
from reqai.domain.session import Message
from reqai.llm.gateway import LLMGateway
from reqai.llm.prompts import BACKLOG_SYSTEM_PROMPT, BACKLOG_USER_TEMPLATE

logger = get_logger(__name__)

_TYPE_ALIASES = {
    "epic": BacklogItemType.EPIC,
    "story": BacklogItemType.STORY,
    "user story": BacklogItemType.STORY,
    "task": BacklogItemType.TASK,
    "sub-task": BacklogItemType.SUB_TASK,
    "subtask": BacklogItemType.SUB_TASK,
    "sub task": BacklogItemType.SUB_TASK,
}

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _FENCE_RE.sub("", content.strip()).strip()


def parse_backlog_response(content: str) -> list[dict[str, Any]]:
    """
    Extract the raw item list from a model reply.

    Accepts ``{"items": [...]}`` or a bare list, optionally fenced or
    surrounded by prose.

    Raises:
        BacklogParseError: If no item list can be found
    """
    cleaned = strip_code_fences(content)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        parsed = _extract_embedded_json(cleaned)

    if isinstance(parsed, dict):
        parsed = parsed.get("items")
    if not isinstance(parsed, list):
        raise BacklogParseError("Model reply does not contain a backlog item list", content)

    return [entry for entry in parsed if isinstance(entry, dict)]


def _extract_embedded_json(content: str) -> Any:
    """Parse the outermost JSON object or array embedded in prose."""
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = content.find(opener), content.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(content[start : end + 1])
            except json.JSONDecodeError:
                continue
    raise BacklogParseError("Model reply is not valid JSON", content)


def normalize_type(value: Any) -> Optional[BacklogItemType]:
    """Map a loosely written item type onto the hierarchy, or None."""
    if not isinstance(value, str):
        return None
    return _TYPE_ALIASES.get(value.strip().lower())


def normalize_priority(value: Any) -> Optional[Priority]:
    """Case-insensitive priority match; anything else is unspecified."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    for priority in Priority:
        if priority.value.lower() == lowered:
            return priority
    return None


def normalize_labels(value: Any) -> list[str]:
    """Labels as an ordered list without duplicates or blanks."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    labels = (str(label).strip() for label in value if label is not None)
    return list(dict.fromkeys(label for label in labels if label))


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _reference(value: Any) -> str:
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def build_items(entries: list[dict[str, Any]]) -> list[BacklogItem]:
    """
    Turn raw model entries into identified, parent-resolved items.

    Parents are resolved by the model's own id first, then by summary among
    items of the expected parent type, preferring the nearest preceding one.
    Entries without a recognizable type or a summary are skipped.
    """
    counters: dict[BacklogItemType, int] = defaultdict(int)
    drafts: list[dict[str, Any]] = []

    for entry in entries:
        item_type = normalize_type(entry.get("type"))
        summary = _text(entry.get("summary"))
        if item_type is None or not summary:
            logger.warning("Skipping unusable backlog entry", type=entry.get("type"))
            continue

        counters[item_type] += 1
        drafts.append(
            {
                "item_id": f"{ITEM_ID_PREFIXES[item_type]}-{counters[item_type]}",
                "model_id": entry.get("id"),
                "type": item_type,
                "summary": summary,
                "description": _text(entry.get("description")),
                "priority": normalize_priority(entry.get("priority")),
                "labels": normalize_labels(entry.get("labels")),
                "parent_ref": _reference(entry.get("parent")),
            }
        )

    by_model_id: dict[str, int] = {}
    for index, draft in enumerate(drafts):
        model_id = draft["model_id"]
        if model_id is not None and str(model_id) not in by_model_id:
            by_model_id[str(model_id)] = index

    items: list[BacklogItem] = []
    for index, draft in enumerate(drafts):
        parent_index = _resolve_parent(index, draft, drafts, by_model_id)
        parent = drafts[parent_index] if parent_index is not None else None

        if draft["type"] == BacklogItemType.EPIC:
            parent_text = None
        elif parent is not None:
            parent_text = parent["summary"]
        else:
            parent_text = draft["parent_ref"] or None

        items.append(
            BacklogItem(
                item_id=draft["item_id"],
                type=draft["type"],
                summary=draft["summary"],
                description=draft["description"],
                priority=draft["priority"],
                labels=draft["labels"],
                parent=parent_text,
                parent_id=parent["item_id"] if parent is not None else None,
            )
        )

    return items


def _resolve_parent(
    index: int,
    draft: dict[str, Any],
    drafts: list[dict[str, Any]],
    by_model_id: dict[str, int],
) -> Optional[int]:
    expected = PARENT_TYPES.get(draft["type"])
    reference = draft["parent_ref"]
    if expected is None or not reference:
        return None

    candidate = by_model_id.get(reference)
    if candidate is not None and candidate != index and drafts[candidate]["type"] == expected:
        return candidate

    wanted = reference.casefold()
    matches = [
        i
        for i, other in enumerate(drafts)
        if i != index and other["type"] == expected and other["summary"].casefold() == wanted
    ]
    if not matches:
        return None
    preceding = [i for i in matches if i < index]
    return preceding[-1] if preceding else matches[0]


class BacklogItemGenerator:
    """
    Produces a flat backlog from requirements text.

    Model failures propagate to the caller; there is no canned backlog.
    """

    def __init__(self, gateway: LLMGateway, max_tokens: Optional[int] = None) -> None:
        """
        Initialize the generator.

        Args:
            gateway: Chat-completion gateway
            max_tokens: Reply length limit for structuring calls
        """
        self.gateway = gateway
        self.max_tokens = max_tokens or settings.llm.backlog_max_tokens

    async def generate(self, text: str) -> BacklogResult:
        """
        Structure requirements into backlog items.

        Raises:
            ValidationError: If there is no text to structure
            LLMGatewayError: If the model call fails
            BacklogParseError: If the reply holds no item list
        """
        if not text or not text.strip():
            raise ValidationError("No requirements text to structure")

        messages = [
            Message(role=MessageRole.SYSTEM, content=BACKLOG_SYSTEM_PROMPT),
            Message(role=MessageRole.USER, content=BACKLOG_USER_TEMPLATE.format(text=text)),
        ]
        raw = await self.gateway.complete(messages, max_tokens=self.max_tokens)

        items = build_items(parse_backlog_response(raw))
        logger.info("Backlog generated", item_count=len(items))
        return BacklogResult(items=items, raw_response=raw)
