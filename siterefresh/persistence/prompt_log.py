"""
Prompt Log Side Channel

Every provider call is recorded (prompt, response, tokens, latency) for
later inspection. Writes run as background tasks so a slow or failing
database never holds up, or fails, the stage being logged.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set
from uuid import UUID

logger = logging.getLogger(__name__)

# Long prompts and responses are clipped before storage
MAX_PROMPT_CHARS = 15_000
MAX_RESPONSE_CHARS = 20_000


@dataclass
class PromptLogEntry:
    """One provider call."""
    step: str
    model: str
    prompt: str
    response: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    run_id: Optional[UUID] = None


class PromptLogger:
    """
    Bounded fire-and-forget writer.

    Usage:
        prompt_logger = PromptLogger(repository.create_prompt_log)
        prompt_logger.record(step="score", model=..., prompt=..., response=...)
        await prompt_logger.drain()  # on shutdown
    """

    def __init__(self, writer: Callable[[PromptLogEntry], None], max_pending: int = 100):
        """
        Args:
            writer: Blocking function that persists one entry (runs in a thread)
            max_pending: Entries beyond this many in-flight writes are dropped
        """
        self._writer = writer
        self.max_pending = max_pending
        self._pending: Set[asyncio.Task] = set()
        self.dropped = 0

    def record(
        self,
        step: str,
        model: str,
        prompt: str,
        response: str,
        input_tokens: int = 0,
        output_tokens: int = 0,
        latency_ms: int = 0,
        run_id: Optional[UUID] = None,
    ) -> None:
        """Schedule a write; never raises and never blocks."""
        if len(self._pending) >= self.max_pending:
            self.dropped += 1
            logger.warning(f"Prompt log queue full, dropping entry for {step}")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, prompt log for {step} skipped")
            return

        entry = PromptLogEntry(
            step=step,
            model=model,
            prompt=prompt[:MAX_PROMPT_CHARS],
            response=response[:MAX_RESPONSE_CHARS],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
            run_id=run_id,
        )
        task = loop.create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: PromptLogEntry):
        try:
            await asyncio.to_thread(self._writer, entry)
        except Exception as e:
            logger.warning(f"Prompt log write failed for {entry.step}: {e}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for in-flight writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
