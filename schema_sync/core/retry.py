from typing import Any, Awaitable, Callable, Optional
import logging

from pydantic import BaseModel, Field

from .config import Settings
from .constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_RETRY_MULTIPLIER,
    MAX_RETRY_DELAY_SECONDS,
    calculate_retry_delay,
)
from .context import OperationCancelled, RunContext
from .errors import AppError, ErrorClassifier, ErrorType, interruption_error, timeout_error

logger = logging.getLogger(__name__)


class RetryConfig(BaseModel):
    """Exponential backoff policy"""
    max_attempts: int = Field(default=DEFAULT_MAX_RETRIES, ge=1)
    base_delay: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    max_delay: float = Field(default=MAX_RETRY_DELAY_SECONDS, ge=0)
    multiplier: float = Field(default=DEFAULT_RETRY_MULTIPLIER, ge=1)

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt"""
        return calculate_retry_delay(
            attempt,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            multiplier=settings.RETRY_MULTIPLIER,
        )


class RetryHandler:
    """Runs async operations under a RetryConfig"""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        ctx: Optional[RunContext] = None,
    ) -> Any:
        """
        Execute operation with retry logic.

        Only recoverable errors are retried. Cancellation surfaces as an
        interruption error and is never retried; an expired deadline surfaces
        as the timeout error. When every attempt fails the last classified
        error is raised with the attempt count in its context.
        """
        ctx = ctx or RunContext()
        last_error: Optional[AppError] = None

        for attempt in range(1, self.config.max_attempts + 1):
            if ctx.cancelled:
                raise interruption_error(f"{operation_name} cancelled", last_error)
            if ctx.deadline_exceeded:
                raise timeout_error(f"{operation_name} deadline exceeded", last_error)

            try:
                return await ctx.run(operation())
            except Exception as e:
                error = ErrorClassifier.classify(e)

            if error.error_type == ErrorType.INTERRUPTION:
                raise error
            if not error.recoverable:
                logger.error(f"{operation_name} failed with non-recoverable error: {error}")
                raise error
            if ctx.deadline_exceeded:
                logger.error(f"{operation_name} deadline exceeded: {error}")
                if error.error_type == ErrorType.TIMEOUT:
                    raise error
                raise timeout_error(f"{operation_name} deadline exceeded", error)

            last_error = error
            if attempt == self.config.max_attempts:
                break

            delay = self.config.calculate_delay(attempt)
            logger.warning(f"{operation_name} failed (attempt {attempt}/{self.config.max_attempts}): {error}")
            logger.info(f"Retrying in {delay} seconds...")
            try:
                await ctx.sleep(delay)
            except OperationCancelled as e:
                raise interruption_error(f"{operation_name} cancelled during retry backoff", e)
            except TimeoutError:
                logger.error(f"{operation_name} deadline exceeded during retry backoff")
                raise timeout_error(f"{operation_name} deadline exceeded", error)

        logger.error(f"{operation_name} failed after {self.config.max_attempts} attempts: {last_error}")
        raise last_error.with_context("attempts", self.config.max_attempts)
