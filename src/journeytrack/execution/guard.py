"""Active-session guard for asynchronous writers.

Every periodic or deferred writer must re-check that the session is still
active immediately before it initiates a remote write and again before it
commits local state afterwards. ``with_active_guard`` wraps the remote call
so the check runs on every retry attempt; ``ActiveGuard.run`` adds the
before-initiate and before-commit checks around the retrying executor.

A write that is already on the wire when the session ends is allowed to
finish its round trip; only the local commit is skipped.
"""

from typing import Any, Awaitable, Callable, TypeVar

import structlog

from journeytrack.execution.retry_policy import RetryPolicy
from journeytrack.utils.exceptions import SessionInactiveError

logger = structlog.get_logger()

T = TypeVar("T")


def with_active_guard(
    is_active: Callable[[], bool],
    func: Callable[[], Awaitable[T]],
    operation: str,
) -> Callable[[], Awaitable[T]]:
    """Wrap an async write so it refuses to start once the session ended.

    Args:
        is_active: Returns the current session active flag.
        func: Async write to guard.
        operation: Operation name for errors and logs.

    Returns:
        Async callable raising ``SessionInactiveError`` instead of writing
        when the flag is down.
    """

    async def guarded() -> T:
        if not is_active():
            raise SessionInactiveError(operation)
        return await func()

    return guarded


class ActiveGuard:
    """Runs guarded writes through the retry executor."""

    def __init__(self, is_active: Callable[[], bool], retry_policy: RetryPolicy):
        self.is_active = is_active
        self.retry_policy = retry_policy
        self.logger = logger.bind(service="active_guard")

    async def run(
        self,
        operation: str,
        write: Callable[[], Awaitable[T]],
        commit: Callable[[T], Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> bool:
        """Execute a guarded write.

        Args:
            operation: Operation name.
            write: Async remote write.
            commit: Optional local state mutation applied after success.
            context: Extra log context.

        Returns:
            True if the write succeeded and the session was still active
            when it completed.
        """
        if not self.is_active():
            self.logger.debug("Skipping write, session inactive", operation=operation)
            return False

        result = await self.retry_policy.execute(
            with_active_guard(self.is_active, write, operation),
            context={"operation": operation, **(context or {})},
        )

        if not result.success:
            return False

        if not self.is_active():
            self.logger.debug(
                "Session ended while write was in flight, skipping commit",
                operation=operation,
            )
            return False

        if commit is not None:
            commit(result.value)
        return True
