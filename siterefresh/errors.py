"""
Pipeline Error Taxonomy

Every error the orchestrator can turn into a terminal run state carries a
short, non-technical ``user_message``. Internal detail stays in ``str(e)``
and is only ever logged.

Provider errors (``anthropic.APIError`` subclasses) are not wrapped here:
they propagate unchanged so the retry policy can classify them.
"""

from typing import Optional


GENERIC_FAILURE_MESSAGE = "Analysis failed. Please try again in a few minutes."


class PipelineError(Exception):
    """Base class for errors raised by the analysis pipeline."""

    user_message = GENERIC_FAILURE_MESSAGE

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class InvalidURLError(PipelineError):
    """The submitted URL could not be parsed into a target identity."""

    user_message = "Please enter a valid website address."


class FetchError(PipelineError):
    """
    The target page could not be fetched.

    ``kind`` is one of ``blocked``, ``unreachable``, ``non_html``, ``timeout``.
    The message is written for end users and is surfaced verbatim.
    """

    BLOCKED = "blocked"
    UNREACHABLE = "unreachable"
    NON_HTML = "non_html"
    TIMEOUT = "timeout"

    def __init__(self, kind: str, message: str, detail: str = ""):
        super().__init__(message, user_message=message)
        self.kind = kind
        self.detail = detail


class AgentOutputError(PipelineError):
    """An agent response could not be parsed into its expected structure."""

    def __init__(self, agent: str, message: str):
        super().__init__(f"[{agent}] {message}")
        self.agent = agent


class CreativeGenerationError(PipelineError):
    """All creative directions failed."""

    user_message = "We couldn't generate redesigns for this site. Please try again."


class PipelineTimeoutError(PipelineError):
    """The deadline expired before a run record existed."""

    user_message = "The analysis took too long. Please try again."
