"""
NDJSON Progress Streaming

Runs one analysis in a background task and yields its progress events as
newline-delimited JSON. A ``keepalive`` line is written whenever nothing
happened for ``keepalive_seconds`` so proxies do not close the connection.
The stream always ends with exactly one ``done`` or ``error`` line.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional, Set

from .events import DoneEvent, ErrorEvent, KeepaliveEvent, ProgressEvent
from .orchestrator import AnalysisOrchestrator, user_message_for

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

# Runs whose client went away keep going; references are held here
_background_runs: Set[asyncio.Task] = set()


def encode_event(event: ProgressEvent) -> str:
    """One NDJSON line."""
    return json.dumps(event.to_dict()) + "\n"


async def stream_analysis(
    orchestrator: AnalysisOrchestrator,
    url: str,
    keepalive_seconds: Optional[float] = None,
) -> AsyncIterator[str]:
    """
    Yield NDJSON lines for one analysis.

    Args:
        orchestrator: Configured orchestrator
        url: URL as submitted
        keepalive_seconds: Idle interval before a keepalive line
                           (defaults to the orchestrator's settings)
    """
    if keepalive_seconds is None:
        keepalive_seconds = orchestrator.settings.KEEPALIVE_SECONDS

    queue: asyncio.Queue = asyncio.Queue()

    async def on_progress(event: ProgressEvent):
        await queue.put(event)

    async def run():
        try:
            outcome = await orchestrator.run_analysis(url, on_progress=on_progress)
            await queue.put(DoneEvent.for_run(outcome.run_id, outcome.access_token))
        except Exception as e:
            logger.warning(f"Streamed analysis for {url} ended with {type(e).__name__}: {e}")
            await queue.put(ErrorEvent(message=user_message_for(e)))

    task = asyncio.create_task(run())
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    while True:
        try:
            event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
        except asyncio.TimeoutError:
            yield encode_event(KeepaliveEvent())
            continue

        yield encode_event(event)
        if event.is_terminal:
            break
