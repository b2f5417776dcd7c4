"""
Builds the message sequence transmitted to the chat-completion API.
Applies role coercion, sliding-window limiting and per-message truncation.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence

from reqai.core.config import settings
from reqai.core.constants import (
    CONTEXT_PREFIX,
    SUMMARY_PREVIEW_CHARS,
    SYSTEM_PREFIX,
    TRUNCATION_MARKER,
    ExtractionStatus,
    MessageRole,
)
from reqai.core.logging import get_logger
from reqai.domain.extraction import ExtractionResult
from reqai.domain.session import Message

logger = get_logger(__name__)


class ConversationContextBuilder:
    """
    Turns stored history plus a pending user action into an API-safe buffer.

    Keeps:
    1. The first ``preserved_head`` messages (system directive / greeting)
    2. The most recent ``window_size - preserved_head`` messages

    Stored history is never modified; every rewrite happens on copies.
    """

    def __init__(
        self,
        window_size: Optional[int] = None,
        preserved_head: Optional[int] = None,
        max_content_chars: Optional[int] = None,
    ) -> None:
        """
        Initialize the builder.

        Args:
            window_size: Maximum number of transmitted messages
            preserved_head: Leading messages always kept
            max_content_chars: Per-message character budget
        """
        self.window_size = window_size if window_size is not None else settings.context.window_size
        self.preserved_head = (
            preserved_head if preserved_head is not None else settings.context.preserved_head
        )
        self.max_content_chars = max_content_chars or settings.context.max_content_chars

        if self.preserved_head < 0 or self.window_size <= self.preserved_head:
            raise ValueError("window_size must be larger than preserved_head")

    def build(
        self,
        history: Sequence[Message],
        pending: Sequence[Message] = (),
    ) -> list[Message]:
        """
        Produce the exact sequence to submit for one turn.

        Args:
            history: Stored conversation so far
            pending: Messages for the current action not yet in history

        Returns:
            Normalized, windowed and truncated copies; may be empty
        """
        buffer = [*history, *pending]
        windowed = self.limit_window(buffer)
        normalized = self.normalize_roles(windowed)
        transmitted = [self.truncate(m) for m in normalized]

        if len(buffer) != len(transmitted):
            logger.debug(
                "Conversation window applied",
                original_count=len(buffer),
                transmitted_count=len(transmitted),
            )
        return transmitted

    def limit_window(self, messages: Sequence[Message]) -> list[Message]:
        """Keep the head and the most recent messages, dropping the middle."""
        if len(messages) <= self.window_size:
            return list(messages)
        tail = self.window_size - self.preserved_head
        return [*messages[: self.preserved_head], *messages[-tail:]]

    @staticmethod
    def normalize_roles(messages: Sequence[Message]) -> list[Message]:
        """Rewrite every system message that is not first into a marked user message."""
        normalized: list[Message] = []
        for index, message in enumerate(messages):
            if message.role == MessageRole.SYSTEM and index > 0:
                normalized.append(
                    Message(role=MessageRole.USER, content=f"{SYSTEM_PREFIX} {message.content}")
                )
            else:
                normalized.append(message.model_copy())
        return normalized

    def truncate(self, message: Message) -> Message:
        """Bound a message to the character budget, appending the truncation marker."""
        if len(message.content) <= self.max_content_chars:
            return message
        return message.model_copy(
            update={"content": message.content[: self.max_content_chars] + TRUNCATION_MARKER}
        )

    @staticmethod
    def context_message(result: ExtractionResult) -> Message:
        """Machine-attached context turn carrying the extracted documents."""
        payload = json.dumps(result.to_snapshot(), ensure_ascii=False)
        return Message(
            role=MessageRole.USER,
            content=f"{CONTEXT_PREFIX} I've uploaded documents with the following content: {payload}",
        )


def summarize_extraction(result: ExtractionResult) -> str:
    """
    Markdown overview of an extraction for display in the conversation.

    Long texts are previewed; diagnostics are replaced by a notice.
    """
    lines = ["## Document Analysis Results", ""]

    for name, entry in result.files.items():
        lines.append(f"### {name} ({entry.file_type})" if entry.file_type else f"### {name}")
        text = entry.extracted_text

        if entry.status == ExtractionStatus.UNSUPPORTED or text.startswith("Binary file"):
            lines.append(
                "_This file was processed, but full text extraction requires specialized "
                "tools. The analysis will be based on file metadata and any text that "
                "could be extracted._"
            )
        elif entry.status == ExtractionStatus.ERROR:
            lines.append(f"_{text}_")
        elif len(text) > SUMMARY_PREVIEW_CHARS:
            lines.extend(["```", text[:SUMMARY_PREVIEW_CHARS].strip() + "...", "```", ""])
            lines.append("_Note: This is a preview. The full content has been processed for analysis._")
        else:
            lines.extend(["```", text.strip(), "```"])
        lines.append("")

    if result.warning:
        lines.append(f"> {result.warning}")

    return "\n".join(lines).rstrip() + "\n"
