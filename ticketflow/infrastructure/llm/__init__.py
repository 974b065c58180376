"""
LLM Client Infrastructure
==========================

Wrapper for OpenAI compatible providers providing a clean interface for
chat completions.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the application layer depends on
abstractions, not concrete implementations.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI

from ticketflow.config import Settings, settings as default_settings
from ticketflow.core import LLMException, ConfigurationException
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 600,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Works against any OpenAI compatible endpoint via ``openai_base_url``.
    Every request is bounded by ``llm_timeout_seconds`` and is not retried.
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings
        if not config.openai_api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url or None,
            timeout=config.llm_timeout_seconds,
            max_retries=0,
        )
        self._model = config.llm_model

    @property
    def model(self) -> str:
        return self._model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 600,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens to generate
            operation: Operation type for logging (chat_completion, extraction)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
            content = response.choices[0].message.content or ""
            usage = response.usage
            prompt_tokens = usage.prompt_tokens if usage else 0
            completion_tokens = usage.completion_tokens if usage else 0
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        logger.info(
            "LLM call completed",
            extra={
                "operation": operation,
                "model": self._model,
                "latency_ms": latency_ms,
                "tokens_used": prompt_tokens + completion_tokens,
            }
        )

        return ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs.

    Returns predictable responses without calling external APIs.
    """

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.2,
        max_tokens: int = 600,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        if "extraction" in operation.lower():
            mock_response = {
                "reproduction": "Mock: open the affected page and repeat the failing action.",
                "userIntent": "Mock: restore normal service for the reporting user.",
                "confidence": {"environment": 0.6, "impact": 0.7},
                "evidence": {"environment": "Mock extraction", "impact": "Mock extraction"},
            }
            content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"
        else:
            content = "This is a mock LLM response for testing purposes."

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )


def build_llm_client(config: Optional[Settings] = None) -> Optional[ILLMClient]:
    """
    Build the configured LLM client.

    Returns:
        MockLLMClient when ``mock_llm`` is set, OpenAILLMClient when an API key
        is present, otherwise None (text extraction disabled).
    """
    config = config or default_settings
    if config.mock_llm:
        return MockLLMClient()
    if not config.openai_api_key:
        return None
    return OpenAILLMClient(config)
