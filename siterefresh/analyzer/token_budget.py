"""
Token Budget Estimator

Estimates prompt size with the cl100k_base BPE encoding and truncates
oversized material before it reaches the provider. When the encoding
cannot be loaded (e.g. no network access to fetch the BPE file) token
counts fall back to ~4 characters per token.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import tiktoken

logger = logging.getLogger(__name__)

SAFE_CONTEXT_LIMIT = 180_000
MIN_OUTPUT_TOKENS = 1024
CHARS_PER_TOKEN = 4

_encoder = None
_encoder_failed = False


def _get_encoder() -> Optional["tiktoken.Encoding"]:
    global _encoder, _encoder_failed
    if _encoder is None and not _encoder_failed:
        try:
            _encoder = tiktoken.get_encoding("cl100k_base")
        except Exception as e:
            _encoder_failed = True
            logger.warning(f"tiktoken encoding unavailable, using character estimate: {e}")
    return _encoder


@dataclass
class BudgetCheck:
    """Result of checking a prompt against the context ceiling."""
    fits: bool
    prompt_tokens: int
    budget_remaining: int
    recommended_max_tokens: int


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text``."""
    if not text:
        return 0
    encoder = _get_encoder()
    if encoder is not None:
        return len(encoder.encode(text, disallowed_special=()))
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def check_budget(prompt: str, desired_max_tokens: int) -> BudgetCheck:
    """
    Check whether a prompt plus desired output fits the safe context limit.

    Args:
        prompt: Full prompt text (system + user)
        desired_max_tokens: Output ceiling the caller would like to use

    Returns:
        BudgetCheck; ``recommended_max_tokens`` never drops below 1024
    """
    prompt_tokens = estimate_tokens(prompt)
    remaining = SAFE_CONTEXT_LIMIT - prompt_tokens
    return BudgetCheck(
        fits=remaining >= desired_max_tokens,
        prompt_tokens=prompt_tokens,
        budget_remaining=remaining,
        recommended_max_tokens=max(MIN_OUTPUT_TOKENS, min(desired_max_tokens, remaining)),
    )


def truncate_to_budget(text: str, max_tokens: int) -> str:
    """
    Return the longest prefix of ``text`` whose estimate fits ``max_tokens``.

    Binary search over prefix length keeps truncation consistent with
    ``estimate_tokens`` instead of slicing on a character ratio.
    """
    if max_tokens <= 0 or not text:
        return ""
    if estimate_tokens(text) <= max_tokens:
        return text

    low, high = 0, len(text)
    while low < high:
        mid = (low + high + 1) // 2
        if estimate_tokens(text[:mid]) <= max_tokens:
            low = mid
        else:
            high = mid - 1

    logger.info(f"Truncated text from {len(text)} to {low} chars to fit {max_tokens} tokens")
    return text[:low]
