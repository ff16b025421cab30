"""Retry state machine for provider calls.

Each failure is classified into one of three kinds, and the kind alone
decides the next state:

    transient (429/503, rate limit)  → back off base * 2^(attempt-1), retry
    malformed (bad/truncated JSON)   → retry immediately
    fatal (anything else)            → stop

Running out of attempts on a transient error surfaces as
ProviderOverloadedError; any other stop surfaces as EvaluationFailedError.
ConfigurationError is never retried and is re-raised unchanged.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from services.errors import (
    ConfigurationError,
    EvaluationFailedError,
    MalformedResponseError,
    ProviderOverloadedError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 503})
# Substring match on provider SDK messages. Digits included because some SDKs
# only expose the status inside the message text.
TRANSIENT_MESSAGE_MARKERS = ("resource_exhausted", "rate limit", "429", "503", "overloaded")


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    MALFORMED = "malformed"
    FATAL = "fatal"


def _status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ConfigurationError):
        return ErrorKind.FATAL
    if isinstance(exc, TransientProviderError) or _status_code(exc) in TRANSIENT_STATUS_CODES:
        return ErrorKind.TRANSIENT
    if isinstance(exc, (MalformedResponseError, json.JSONDecodeError)):
        return ErrorKind.MALFORMED
    message = str(exc).lower()
    if any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay_ms: int = 2000

    def backoff_ms(self, attempt: int) -> int:
        """Delay after the given (1-based) failed attempt."""
        return self.base_delay_ms * 2 ** (attempt - 1)


async def run_with_retry(
    call: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "provider call",
    failure_prefix: str = "Failed to evaluate candidate",
) -> Any:
    """Run ``call`` until it succeeds or the policy says stop."""
    attempt = 0
    while True:
        attempt += 1
        try:
            return await call()
        except Exception as e:
            kind = classify_error(e)
            exhausted = attempt >= policy.max_attempts

            if isinstance(e, ConfigurationError):
                raise

            if kind is ErrorKind.TRANSIENT and not exhausted:
                delay_ms = policy.backoff_ms(attempt)
                logger.warning(
                    "%s rate limited (attempt %d/%d), retrying in %dms: %s",
                    label, attempt, policy.max_attempts, delay_ms, e,
                )
                await sleep(delay_ms / 1000)
                continue

            if kind is ErrorKind.MALFORMED and not exhausted:
                logger.warning(
                    "%s returned malformed JSON (attempt %d/%d), retrying: %s",
                    label, attempt, policy.max_attempts, e,
                )
                continue

            if kind is ErrorKind.TRANSIENT:
                logger.error("%s still overloaded after %d attempts: %s", label, attempt, e)
                raise ProviderOverloadedError() from e

            logger.error("%s failed after %d attempt(s): %s", label, attempt, e)
            raise EvaluationFailedError(f"{failure_prefix}: {e}") from e
