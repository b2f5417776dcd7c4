"""
Conversation context management.
"""

from reqai.conversation.context_builder import ConversationContextBuilder, summarize_extraction

__all__ = ["ConversationContextBuilder", "summarize_extraction"]
