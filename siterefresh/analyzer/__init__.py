"""
Analyzer Module

Provider access for the pipeline agents:
- ClaudeClient: async Anthropic wrapper with usage tracking
- Retry policy: transient/fatal classification with fixed backoff
- Token budget: prompt size estimation and truncation
"""

from .client import ClaudeClient, CompletionResponse, TokenUsage
from .retry import is_retryable, is_quota_error, with_retry, RETRY_DELAYS_MS, MAX_RETRIES
from .token_budget import (
    BudgetCheck,
    SAFE_CONTEXT_LIMIT,
    estimate_tokens,
    check_budget,
    truncate_to_budget,
)

__all__ = [
    "ClaudeClient",
    "CompletionResponse",
    "TokenUsage",
    "is_retryable",
    "is_quota_error",
    "with_retry",
    "RETRY_DELAYS_MS",
    "MAX_RETRIES",
    "BudgetCheck",
    "SAFE_CONTEXT_LIMIT",
    "estimate_tokens",
    "check_budget",
    "truncate_to_budget",
]
