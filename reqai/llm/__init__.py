"""
Language-model access.
"""

from reqai.llm.gateway import GatewayReply, LLMGateway, local_fallback_reply

__all__ = ["GatewayReply", "LLMGateway", "local_fallback_reply"]
