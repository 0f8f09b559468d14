"""Execution infrastructure for reliable journey writes.

This module provides the components for delivering tracking data:
- RetryPolicy: Exponential backoff for transient API failures
- ActiveGuard: Re-checks the session flag around every async write
- PeriodicTimer / Debouncer: Event-loop scheduling for trackers and syncs
"""

from journeytrack.execution.guard import ActiveGuard, with_active_guard
from journeytrack.execution.retry_policy import (
    ErrorType,
    RetryConfig,
    RetryMetrics,
    RetryPolicy,
    RetryResult,
)
from journeytrack.execution.timers import Debouncer, PeriodicTimer

__all__ = [
    # Guard
    "ActiveGuard",
    "with_active_guard",
    # Retry policy
    "ErrorType",
    "RetryConfig",
    "RetryMetrics",
    "RetryPolicy",
    "RetryResult",
    # Timers
    "Debouncer",
    "PeriodicTimer",
]
