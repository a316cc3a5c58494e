"""
Shared retry policy for every remote call.

Only errors accepted by the ``retryable`` predicate are retried (rate-limit
responses by default); anything else propagates on the first attempt. After
attempt ``n`` fails with a retryable error the policy waits
``base_delay * multiplier ** n`` seconds, and gives up after ``max_attempts``.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger('confluence_bookstack_migrator.importers.retry')

RATE_LIMIT_STATUS = 429


def is_rate_limited(error: BaseException) -> bool:
    """True for an HTTP error whose response status is 429."""
    response = getattr(error, 'response', None)
    return (
        isinstance(error, requests.HTTPError)
        and response is not None
        and response.status_code == RATE_LIMIT_STATUS
    )


class RetryPolicy:
    """Exponential backoff for retryable errors, immediate failure otherwise."""

    DEFAULT_MAX_ATTEMPTS = 5
    DEFAULT_BASE_DELAY = 0.3
    DEFAULT_MULTIPLIER = 2

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        multiplier: float = DEFAULT_MULTIPLIER,
        retryable: Callable[[BaseException], bool] = is_rate_limited,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            max_attempts: Total attempts, including the first
            base_delay: Base delay in seconds
            multiplier: Growth factor per attempt
            retryable: Predicate selecting errors worth retrying
            sleep: Sleep function (replaceable in tests)
            logger: Optional logger instance
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.retryable = retryable
        self.sleep = sleep
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.importers.retry')

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.base_delay * (self.multiplier ** attempt)

    def execute(self, func: Callable[..., Any], *args, context: str = '', **kwargs) -> Any:
        """
        Call ``func`` under the policy.

        Args:
            func: Callable performing one remote call
            context: Short label used in log messages
            *args, **kwargs: Passed through to ``func``

        Returns:
            Whatever ``func`` returns

        Raises:
            The last error once attempts are exhausted, or any
            non-retryable error immediately
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not self.retryable(e) or attempt == self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                label = f" ({context})" if context else ''
                self.logger.warning(
                    f"Rate limited{label}, waiting {delay:.2f}s "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                self.sleep(delay)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> 'RetryPolicy':
        """
        Create policy from the ``retry`` section of the configuration.

        Args:
            config: Configuration dictionary
            **kwargs: Overrides (e.g. ``sleep``)
        """
        retry_config = config.get('retry', {}) or {}
        return cls(
            max_attempts=retry_config.get('max_attempts', cls.DEFAULT_MAX_ATTEMPTS),
            base_delay=retry_config.get('base_delay', cls.DEFAULT_BASE_DELAY),
            multiplier=retry_config.get('multiplier', cls.DEFAULT_MULTIPLIER),
            **kwargs
        )


__all__ = ['RetryPolicy', 'is_rate_limited', 'RATE_LIMIT_STATUS']
