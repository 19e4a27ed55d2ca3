from __future__ import annotations

from typing import NamedTuple

import openai


class AIError(Exception):
    def __init__(self, message: str, code: str, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable


class RateLimitError(AIError):
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, "RATE_LIMIT", True)


class AITimeoutError(AIError, TimeoutError):
    def __init__(self, message: str = "Request timed out"):
        super().__init__(message, "TIMEOUT", True)


class ValidationError(AIError):
    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, "VALIDATION", False)


class UsageLimitError(AIError):
    def __init__(self, message: str = "Usage limit exceeded"):
        super().__init__(message, "USAGE_LIMIT", False)


class InvalidTaskTransition(Exception):
    def __init__(self, task_id: str, current: str, requested: str):
        super().__init__(f"task {task_id} cannot move from {current} to {requested}")
        self.task_id = task_id
        self.current = current
        self.requested = requested


class ErrorKind(NamedTuple):
    code: str
    retryable: bool


def should_retry(error: BaseException) -> bool:
    if isinstance(error, AIError):
        return error.retryable

    # Anything mentioning the network or a timeout is treated as transient,
    # even when it is not.
    message = str(error)
    return "network" in message or "timeout" in message


def error_kind(error: BaseException) -> ErrorKind:
    if isinstance(error, AIError):
        return ErrorKind(error.code, error.retryable)
    return ErrorKind("INTERNAL", should_retry(error))


def translate_provider_error(exc: Exception) -> Exception:
    """Map an OpenAI SDK exception onto the taxonomy; other exceptions pass through."""
    if isinstance(exc, AIError):
        return exc
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError("OpenAI rate limit exceeded")
    if isinstance(exc, openai.APITimeoutError):
        return AITimeoutError("OpenAI call timed out")
    if isinstance(exc, openai.APIConnectionError):
        return AIError(f"OpenAI network error: {exc}", "NETWORK", True)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 429:
            return RateLimitError("OpenAI rate limit exceeded")
        return AIError(f"OpenAI API error: {exc.message}", "PROVIDER", exc.status_code >= 500)
    return exc
