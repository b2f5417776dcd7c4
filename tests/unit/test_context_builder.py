"""
Tests for the conversation context builder.
"""

import json

import pytest

from reqai.conversation.context_builder import ConversationContextBuilder, summarize_extraction
from reqai.core.constants import MessageRole
from reqai.domain.extraction import ExtractionResult, FileExtraction
from reqai.domain.session import Message


def _conversation(count: int) -> list[Message]:
    messages = [Message(role=MessageRole.SYSTEM, content="directive")]
    for i in range(1, count):
        role = MessageRole.ASSISTANT if i % 2 else MessageRole.USER
        messages.append(Message(role=role, content=f"message {i}"))
    return messages


class TestWindow:
    """Sliding window with a preserved head."""

    @pytest.fixture
    def builder(self) -> ConversationContextBuilder:
        return ConversationContextBuilder(window_size=8, preserved_head=2, max_content_chars=1500)

    def test_twelve_messages_keep_head_and_tail(self, builder: ConversationContextBuilder) -> None:
        history = _conversation(12)

        sent = builder.build(history)

        assert [m.content for m in sent] == [
            history[i].content for i in (0, 1, 6, 7, 8, 9, 10, 11)
        ]

    def test_short_history_is_sent_whole(self, builder: ConversationContextBuilder) -> None:
        history = _conversation(5)

        assert len(builder.build(history)) == 5

    def test_pending_messages_count_towards_window(
        self, builder: ConversationContextBuilder
    ) -> None:
        history = _conversation(8)
        pending = [Message(role=MessageRole.USER, content="new question")]

        sent = builder.build(history, pending)

        assert len(sent) == 8
        assert sent[-1].content == "new question"
        assert sent[0].content == "directive"

    def test_window_must_exceed_head(self) -> None:
        with pytest.raises(ValueError):
            ConversationContextBuilder(window_size=2, preserved_head=2)

    def test_empty_history_builds_empty_sequence(
        self, builder: ConversationContextBuilder
    ) -> None:
        assert builder.build([]) == []


class TestRoles:
    """System messages after the first position become user messages."""

    def test_no_system_message_after_first(self) -> None:
        builder = ConversationContextBuilder(window_size=8, preserved_head=2, max_content_chars=1500)
        history = [
            Message(role=MessageRole.SYSTEM, content="directive"),
            Message(role=MessageRole.ASSISTANT, content="hello"),
            Message(role=MessageRole.SYSTEM, content="reset tone"),
            Message(role=MessageRole.USER, content="question"),
        ]

        sent = builder.build(history)

        assert sent[0].role == MessageRole.SYSTEM
        assert all(m.role != MessageRole.SYSTEM for m in sent[1:])
        assert sent[2].role == MessageRole.USER
        assert sent[2].content == "[SYSTEM] reset tone"

    def test_stored_history_is_not_modified(self) -> None:
        builder = ConversationContextBuilder(window_size=8, preserved_head=2, max_content_chars=5)
        history = [
            Message(role=MessageRole.USER, content="first"),
            Message(role=MessageRole.SYSTEM, content="a long directive"),
        ]

        builder.build(history)

        assert history[1].role == MessageRole.SYSTEM
        assert history[1].content == "a long directive"


class TestTruncation:
    """Per-message character budget."""

    def test_long_content_is_truncated_with_marker(self) -> None:
        builder = ConversationContextBuilder(window_size=8, preserved_head=2, max_content_chars=10)
        history = [Message(role=MessageRole.USER, content="x" * 25)]

        sent = builder.build(history)

        assert sent[0].content == "x" * 10 + "..."

    def test_content_at_budget_is_untouched(self) -> None:
        builder = ConversationContextBuilder(window_size=8, preserved_head=2, max_content_chars=10)
        history = [Message(role=MessageRole.USER, content="y" * 10)]

        assert builder.build(history)[0].content == "y" * 10


class TestContextTurn:
    """Extraction results injected into the conversation."""

    @pytest.fixture
    def result(self) -> ExtractionResult:
        return ExtractionResult(
            files={
                "spec.txt": FileExtraction(file_type="txt", extracted_text="Shall export CSV."),
            }
        )

    def test_context_message_is_prefixed_user_turn(self, result: ExtractionResult) -> None:
        message = ConversationContextBuilder.context_message(result)

        assert message.role == MessageRole.USER
        assert message.content.startswith("[CONTEXT] ")
        payload = message.content.split("following content: ", 1)[1]
        assert json.loads(payload)["spec.txt"]["extracted_text"] == "Shall export CSV."

    def test_summary_previews_long_text(self) -> None:
        result = ExtractionResult(
            files={"long.txt": FileExtraction(file_type="txt", extracted_text="z" * 2000)}
        )

        summary = summarize_extraction(result)

        assert summary.startswith("## Document Analysis Results")
        assert "### long.txt (txt)" in summary
        assert "z" * 801 not in summary
        assert "This is a preview" in summary
