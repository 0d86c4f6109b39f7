"""
Base Agent Class for the Redesign Pipeline

All pipeline agents inherit from this base class, which provides:
- Skill-driven model, temperature and output ceiling
- Token budget check (and input truncation) before each call
- Provider call under the retry policy
- Fire-and-forget prompt logging
- Structured output parsing

Architecture:
    BaseAgent (abstract)
    ├── ScreenshotAnalysisAgent   (stage 1, vision + HTML)
    ├── IndustrySeoAgent          (stage 1)
    ├── ScoreAgent                (stage 2)
    └── CreativeAgent ×3          (stage 3, one per direction)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple, TYPE_CHECKING
from uuid import UUID

from ..analyzer.client import CompletionResponse, MessageContent
from ..analyzer.retry import with_retry
from ..analyzer.token_budget import (
    SAFE_CONTEXT_LIMIT,
    check_budget,
    estimate_tokens,
    truncate_to_budget,
)
from ..errors import AgentOutputError
from ..output.parser import safe_parse
from .skills import DEFAULT_SKILLS, SkillSnapshot

if TYPE_CHECKING:
    from ..analyzer.client import ClaudeClient
    from ..persistence.prompt_log import PromptLogger

logger = logging.getLogger(__name__)

OnRetry = Optional[Callable[[int], Any]]


class BaseAgent(ABC):
    """
    Abstract base class for all pipeline agents.

    Each agent must implement:
    - slug: Skill identifier (e.g., 'score')
    - run(): Build input, call, and return a typed result
    """

    MAX_OUTPUT_TOKENS = 4096
    TEMPERATURE = 0.3

    # Characters of the logged prompt kept for inspection
    PROMPT_LOG_CHARS = 15_000

    def __init__(
        self,
        client: "ClaudeClient",
        skill: Optional[SkillSnapshot] = None,
        prompt_logger: Optional["PromptLogger"] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize agent.

        Args:
            client: ClaudeClient instance for API calls
            skill: Skill snapshot for this run (defaults to the built-in skill)
            prompt_logger: Side channel for prompt/response records
            sleep: Retry wait function (injectable for tests)
        """
        self.client = client
        self.skill = skill or DEFAULT_SKILLS.get(self.slug)
        self.prompt_logger = prompt_logger
        self._sleep = sleep

    # =========================================================================
    # ABSTRACT PROPERTIES
    # =========================================================================

    @property
    @abstractmethod
    def slug(self) -> str:
        """Skill slug (e.g., 'industry-seo')."""
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        """Run the agent and return its typed result."""
        pass

    # =========================================================================
    # SKILL-DERIVED SETTINGS
    # =========================================================================

    @property
    def system_prompt(self) -> str:
        return self.skill.system_prompt if self.skill else ""

    @property
    def model(self) -> Optional[str]:
        return self.skill.model if self.skill else None

    @property
    def max_tokens(self) -> int:
        if self.skill and self.skill.max_tokens:
            return self.skill.max_tokens
        return self.MAX_OUTPUT_TOKENS

    @property
    def temperature(self) -> float:
        if self.skill and self.skill.temperature is not None:
            return self.skill.temperature
        return self.TEMPERATURE

    # =========================================================================
    # SHARED CALL PATH
    # =========================================================================

    def fit_to_budget(self, fixed_text: str, material: str) -> Tuple[str, int]:
        """
        Make ``fixed_text`` + ``material`` fit the context window.

        Truncates ``material`` when the prompt plus the desired output does
        not fit, then returns the output ceiling to use.

        Returns:
            (material, max_tokens)
        """
        prompt = f"{self.system_prompt}\n{fixed_text}\n{material}"
        budget = check_budget(prompt, self.max_tokens)
        if budget.fits:
            return material, self.max_tokens

        allowed = SAFE_CONTEXT_LIMIT - estimate_tokens(f"{self.system_prompt}\n{fixed_text}") - self.max_tokens
        if material and allowed > 0:
            material = truncate_to_budget(material, allowed)
            budget = check_budget(f"{self.system_prompt}\n{fixed_text}\n{material}", self.max_tokens)

        logger.warning(
            f"[{self.slug}] Prompt is {budget.prompt_tokens} tokens, "
            f"max_tokens lowered to {budget.recommended_max_tokens}"
        )
        return material, budget.recommended_max_tokens

    async def call(
        self,
        content: MessageContent,
        prompt_for_log: str,
        max_tokens: Optional[int] = None,
        on_retry: OnRetry = None,
        run_id: Optional[UUID] = None,
    ) -> CompletionResponse:
        """
        Call the provider under the retry policy and log the exchange.

        Provider errors propagate unchanged after retries are exhausted.
        """
        response = await with_retry(
            lambda: self.client.complete(
                content,
                system=self.system_prompt,
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature,
            ),
            on_retry=on_retry,
            sleep=self._sleep,
        )

        if self.prompt_logger is not None:
            try:
                self.prompt_logger.record(
                    step=self.slug.replace("-", "_"),
                    model=response.model,
                    prompt=f"{self.system_prompt}\n---\n{prompt_for_log[:self.PROMPT_LOG_CHARS]}",
                    response=response.content,
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    latency_ms=response.latency_ms,
                    run_id=run_id,
                )
            except Exception as e:
                logger.warning(f"[{self.slug}] Prompt log failed: {e}")

        return response

    def parse_json(self, text: str) -> Any:
        """Parse a response or raise AgentOutputError."""
        result = safe_parse(text)
        if not result.success:
            raise AgentOutputError(self.slug, "returned invalid JSON")
        if result.parse_method != "direct":
            logger.info(f"[{self.slug}] Output recovered with {result.parse_method} parse")
        return result.data
