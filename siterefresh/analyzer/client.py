"""
Claude API Client for the Redesign Pipeline

Thin async wrapper around the Anthropic SDK with token usage and cost
tracking. Errors from the SDK propagate unchanged; retries are the
caller's concern (see ``siterefresh.analyzer.retry``).
"""

import os
import asyncio
import logging
import time
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass

import anthropic

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def estimated_cost(self) -> float:
        """Estimate cost based on Claude Sonnet 4 pricing."""
        # Sonnet 4 pricing: $3/1M input, $15/1M output
        input_cost = (self.input_tokens / 1_000_000) * 3.0
        output_cost = (self.output_tokens / 1_000_000) * 15.0
        return input_cost + output_cost


@dataclass
class CompletionResponse:
    """Response from a single Claude call."""
    content: str
    usage: TokenUsage
    model: str
    stop_reason: Optional[str]
    latency_ms: int = 0


MessageContent = Union[str, List[Dict[str, Any]]]


class ClaudeClient:
    """
    Async client for Claude API used by the pipeline agents.

    Features:
    - Per-call timeout (a timeout is raised, and treated as transient upstream)
    - Text and image content blocks
    - Cumulative token and cost tracking
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    MAX_TOKENS = 8192
    TEMPERATURE = 0.3

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
        async_client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to env var)
            model: Default model when a skill does not override it
            timeout: Per-call timeout in seconds
            async_client: Pre-built SDK client (tests)
        """
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout

        if async_client is not None:
            self.async_client = async_client
        else:
            api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY not provided")
            # SDK retries are disabled; the pipeline owns the retry schedule
            self.async_client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

        self.total_usage = TokenUsage()
        self.call_count = 0

    async def complete(
        self,
        content: MessageContent,
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = MAX_TOKENS,
        temperature: float = TEMPERATURE,
        timeout: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Send one user message to Claude.

        Args:
            content: User message text or list of content blocks
            system: System prompt
            model: Model override
            max_tokens: Maximum output tokens
            temperature: Sampling temperature
            timeout: Per-call timeout override in seconds

        Returns:
            CompletionResponse with text content and usage

        Raises:
            anthropic.APIError subclasses and asyncio.TimeoutError, unchanged
        """
        kwargs = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            kwargs["system"] = system

        started = time.monotonic()
        response = await asyncio.wait_for(
            self.async_client.messages.create(**kwargs),
            timeout=timeout or self.timeout,
        )
        latency_ms = int((time.monotonic() - started) * 1000)

        text = ""
        for block in response.content:
            if hasattr(block, "text"):
                text += block.text

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        self.total_usage.input_tokens += usage.input_tokens
        self.total_usage.output_tokens += usage.output_tokens
        self.call_count += 1

        logger.info(
            f"Claude call: {usage.input_tokens} in, {usage.output_tokens} out, "
            f"{latency_ms}ms, ${usage.estimated_cost:.4f}"
        )

        return CompletionResponse(
            content=text,
            usage=usage,
            model=kwargs["model"],
            stop_reason=response.stop_reason,
            latency_ms=latency_ms,
        )

    def get_usage_summary(self) -> Dict[str, Any]:
        """Get summary of all API usage."""
        return {
            "total_calls": self.call_count,
            "input_tokens": self.total_usage.input_tokens,
            "output_tokens": self.total_usage.output_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "estimated_cost": self.total_usage.estimated_cost,
        }
