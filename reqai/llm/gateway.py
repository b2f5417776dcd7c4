"""
Chat-completion gateway.
Sends a normalized message sequence and returns the assistant text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from reqai.core.config import settings
from reqai.core.constants import FallbackMode, MessageRole
from reqai.core.exceptions import EmptyConversationError, LLMGatewayError
from reqai.core.logging import get_logger
from reqai.domain.session import Message
from reqai.llm.prompts import DOCUMENT_ANALYSIS_FALLBACK, DOCUMENT_REFERENCE, REQUIREMENTS_FALLBACK

logger = get_logger(__name__)


@dataclass
class GatewayReply:
    """Assistant text for one turn."""

    content: str
    fallback_used: bool = False
    model: str = ""


def local_fallback_reply(messages: Sequence[Message]) -> str:
    """
    Context-aware canned reply used when the remote call fails.

    Picks the document-analysis reply when the last user message refers to
    uploaded content, otherwise the generic requirements reply.
    """
    last_user = next(
        (m.content for m in reversed(messages) if m.role == MessageRole.USER),
        "",
    )
    if DOCUMENT_REFERENCE.search(last_user):
        return DOCUMENT_ANALYSIS_FALLBACK
    return REQUIREMENTS_FALLBACK


class LLMGateway:
    """
    Client for an OpenAI-style chat-completion endpoint.

    One outbound call per turn. With the default ``max_attempts=1`` a failed
    call fails once; callers wanting resilience raise ``max_attempts``.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            api_url: Chat-completion endpoint
            api_key: Bearer token
            model: Model name
            temperature: Sampling temperature
            top_p: Nucleus sampling
            max_tokens: Reply length limit
            timeout: Request timeout in seconds
            max_attempts: Attempts per call
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url or settings.llm.api_url
        self.api_key = api_key if api_key is not None else settings.llm.api_key
        self.model = model or settings.llm.model
        self.temperature = temperature if temperature is not None else settings.llm.temperature
        self.top_p = top_p if top_p is not None else settings.llm.top_p
        self.max_tokens = max_tokens or settings.llm.max_tokens
        self.timeout = timeout or settings.llm.timeout
        self.max_attempts = max_attempts or settings.llm.max_attempts
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json", "Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_payload(
        self,
        messages: Sequence[Message],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Request body for the chat-completion endpoint."""
        return {
            "model": self.model,
            "messages": [m.to_api() for m in messages],
            "temperature": self.temperature if temperature is None else temperature,
            "top_p": self.top_p,
            "max_tokens": max_tokens or self.max_tokens,
        }

    async def complete(
        self,
        messages: Sequence[Message],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a message sequence and return the assistant text.

        Args:
            messages: Already-normalized sequence
            max_tokens: Override of the reply length limit
            temperature: Override of the sampling temperature

        Returns:
            Assistant reply content

        Raises:
            EmptyConversationError: If there is nothing to send
            LLMGatewayError: On transport errors, non-success status or malformed body
        """
        if not messages:
            raise EmptyConversationError()

        payload = self.build_payload(messages, max_tokens=max_tokens, temperature=temperature)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(LLMGatewayError),
            reraise=True,
        ):
            with attempt:
                return await self._post(payload)

        raise LLMGatewayError("No attempt was made")  # pragma: no cover

    async def _post(self, payload: dict[str, Any]) -> str:
        client = await self._get_client()

        logger.debug(
            "Calling chat completion",
            model=self.model,
            message_count=len(payload["messages"]),
        )

        try:
            response = await client.post(self.api_url, json=payload)
        except httpx.RequestError as e:
            logger.error("Chat completion request error", error=str(e))
            raise LLMGatewayError(f"Request failed: {e}") from e

        if response.is_error:
            logger.error(
                "Chat completion failed",
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise LLMGatewayError(
                f"HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMGatewayError(
                "Malformed chat completion response", details={"body": response.text[:500]}
            ) from e

        if not isinstance(content, str):
            raise LLMGatewayError("Chat completion content is not text")
        return content

    async def respond(self, messages: Sequence[Message], mode: FallbackMode) -> GatewayReply:
        """
        Produce the assistant reply for a conversational turn.

        Args:
            messages: Already-normalized sequence
            mode: LOCAL substitutes a canned reply on failure, ERROR propagates it

        Raises:
            LLMGatewayError: Only in ERROR mode
        """
        try:
            content = await self.complete(messages)
        except LLMGatewayError as e:
            if mode == FallbackMode.ERROR:
                raise
            logger.warning("Using local fallback reply", error=e.message)
            return GatewayReply(content=local_fallback_reply(messages), fallback_used=True)

        return GatewayReply(content=content, model=self.model)
