"""Retry policy with exponential backoff.

Wraps every remote journey write: a failed call is retried with delays of
1s, 2s and 4s by default, then logged and dropped. Delivery of non-terminal
events is best-effort, so exhaustion is reported through the result rather
than raised.

Usage:
    policy = RetryPolicy()

    async def write():
        return await repository.update_journey(journey_id, fields)

    result = await policy.execute(write, context={"operation": "score_sync"})
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from journeytrack.utils.exceptions import JourneyApiError, SessionInactiveError

logger = structlog.get_logger()

T = TypeVar("T")


class ErrorType(str, Enum):
    """Classification of error types for retry decisions."""

    TRANSIENT = "transient"  # Temporary failure, retry likely to succeed
    PERMANENT = "permanent"  # Won't succeed on retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3  # Retries after the first attempt
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 30.0  # Maximum delay cap
    exponential_base: float = 2.0  # For exponential backoff

    # HTTP statuses worth retrying even though they are client errors
    retryable_statuses: frozenset[int] = field(
        default_factory=lambda: frozenset({408, 425, 429})
    )


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_delay: float = 0.0
    error_type: ErrorType | None = None


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_operations: int = 0
    dropped_operations: int = 0
    total_delay_seconds: float = 0.0
    retries_by_type: dict[ErrorType, int] = field(default_factory=dict)


class RetryPolicy:
    """Retry executor for remote writes.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=3, base_delay=1.0))

        result = await policy.execute(async_operation)
        if not result.success:
            ...  # already logged, the write is dropped
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Awaitable used for backoff delays.
        """
        self.config = config or RetryConfig()
        self.metrics = RetryMetrics()
        self._sleep = sleep
        self.logger = logger.bind(service="retry_policy")

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        context: dict[str, Any] | None = None,
    ) -> RetryResult:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute.
            context: Optional context for logging.

        Returns:
            RetryResult with outcome.
        """
        attempts = 0
        total_delay = 0.0
        last_error: Exception | None = None
        last_error_type: ErrorType | None = None

        while attempts <= self.config.max_retries:
            attempts += 1
            self.metrics.total_attempts += 1

            try:
                result = await func()

                self.metrics.successful_operations += 1

                if attempts > 1:
                    self.logger.info(
                        "Operation succeeded after retry",
                        attempts=attempts,
                        total_delay=total_delay,
                        **(context or {}),
                    )

                return RetryResult(
                    success=True,
                    value=result,
                    attempts=attempts,
                    total_delay=total_delay,
                )

            except Exception as e:
                last_error = e
                last_error_type = self._classify_error(e)
                self.metrics.retries_by_type[last_error_type] = (
                    self.metrics.retries_by_type.get(last_error_type, 0) + 1
                )

                if not self._should_retry(last_error_type, attempts):
                    break

                delay = self._calculate_delay(attempts)
                total_delay += delay

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    error_type=last_error_type.value,
                    attempt=attempts,
                    max_retries=self.config.max_retries,
                    next_delay=delay,
                    **(context or {}),
                )

                await self._sleep(delay)

        self.metrics.dropped_operations += 1
        self.metrics.total_delay_seconds += total_delay

        if isinstance(last_error, SessionInactiveError):
            self.logger.debug(
                "Operation skipped, session ended",
                attempts=attempts,
                **(context or {}),
            )
        else:
            self.logger.warning(
                "Operation failed after max retries"
                if last_error_type == ErrorType.TRANSIENT
                else "Operation failed permanently",
                error=str(last_error),
                error_type=last_error_type.value if last_error_type else None,
                attempts=attempts,
                total_delay=total_delay,
                **(context or {}),
            )

        return RetryResult(
            success=False,
            error=last_error,
            attempts=attempts,
            total_delay=total_delay,
            error_type=last_error_type,
        )

    def _classify_error(self, error: Exception) -> ErrorType:
        """Classify an error as transient or permanent.

        Args:
            error: Exception to classify.

        Returns:
            ErrorType classification.
        """
        if isinstance(error, SessionInactiveError):
            return ErrorType.PERMANENT

        if isinstance(error, JourneyApiError):
            status = error.http_status
            if status is None or status >= 500:
                return ErrorType.TRANSIENT
            if status in self.config.retryable_statuses:
                return ErrorType.TRANSIENT
            return ErrorType.PERMANENT

        if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
            return ErrorType.TRANSIENT

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorType.PERMANENT

        # Default to transient for unknown errors
        return ErrorType.TRANSIENT

    def _should_retry(self, error_type: ErrorType, attempts: int) -> bool:
        """Determine if an error should be retried.

        Args:
            error_type: Classified error type.
            attempts: Attempts made so far.

        Returns:
            True if should retry.
        """
        if attempts > self.config.max_retries:
            return False

        return error_type == ErrorType.TRANSIENT

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Attempt that just failed (1-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self.config.base_delay * self.config.exponential_base ** (attempt - 1)
        return max(0.0, min(delay, self.config.max_delay))

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dict of metrics.
        """
        total_ops = self.metrics.successful_operations + self.metrics.dropped_operations
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_operations": self.metrics.successful_operations,
            "dropped_operations": self.metrics.dropped_operations,
            "total_delay_seconds": self.metrics.total_delay_seconds,
            "success_rate": (
                self.metrics.successful_operations / total_ops if total_ops > 0 else 0.0
            ),
            "retries_by_type": {
                k.value: v for k, v in self.metrics.retries_by_type.items()
            },
        }
