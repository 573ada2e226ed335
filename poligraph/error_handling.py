"""Exception taxonomy and error handling helpers for the discovery pipeline."""

import time
import functools
from typing import Any, Dict, Optional, Callable

from .logging_config import get_logger, log_error

logger = get_logger(__name__)


class PoligraphError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}


class ExternalServiceError(PoligraphError):
    """Error from the knowledge graph, the encyclopedia or the AI service."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.status_code = status_code


class RateLimitError(ExternalServiceError):
    """The remote service asked us to slow down."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, "rate_limited", 429, context)
        self.retry_after = retry_after


class PersistenceError(PoligraphError):
    """Error raised by an affair repository."""


class DuplicateAffairError(PersistenceError):
    """A stored affair already carries the same ECLI."""

    def __init__(
        self,
        message: str,
        ecli: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, "duplicate_affair", context)
        self.ecli = ecli


class SlugExhaustedError(PersistenceError):
    """No free slug was found within the allowed number of attempts."""

    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            f"No free slug for '{base_slug}' after {attempts} attempts",
            "slug_exhausted",
            {"base_slug": base_slug, "attempts": attempts},
        )
        self.base_slug = base_slug
        self.attempts = attempts


class SlugTakenError(PersistenceError):
    """Another writer stored an affair under the same slug first."""

    def __init__(self, slug: str):
        super().__init__(f"Slug already taken: {slug}", "slug_taken", {"slug": slug})
        self.slug = slug


class AffairNotFoundError(PersistenceError):
    """No stored affair has the requested id."""

    def __init__(self, affair_id: str):
        super().__init__(f"Affair not found: {affair_id}", "affair_not_found", {"affair_id": affair_id})
        self.affair_id = affair_id


class ConfigurationError(PoligraphError):
    """Error from configuration validation and setup issues."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, "configuration_error", context)
        self.config_key = config_key


class ErrorHandler:
    """Centralized error handling with consistent logging and context."""

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        log_errors: bool = True,
        raise_on_critical: bool = True
    ):
        """Initialize error handler.

        Args:
            context: Base context to include with all errors
            log_errors: Whether to log errors when handled
            raise_on_critical: Whether to raise critical errors
        """
        self.context = context or {}
        self.log_errors = log_errors
        self.raise_on_critical = raise_on_critical

    def handle_error(
        self,
        error: Exception,
        critical: bool = False,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> Exception:
        """Log an error with the handler's context attached.

        Args:
            error: The exception to handle
            critical: Whether this is a critical error
            additional_context: Additional context for this error

        Returns:
            The error, with its context enriched when it is a PoligraphError

        Raises:
            Exception: If critical=True and raise_on_critical=True
        """
        if isinstance(error, PoligraphError):
            error.context.update(self.context)
            if additional_context:
                error.context.update(additional_context)

        if self.log_errors:
            log_error(
                __name__,
                "error_handled",
                error,
                critical=critical,
                **self.context,
                **(additional_context or {})
            )

        if critical and self.raise_on_critical:
            raise error

        return error

    def is_retryable(self, error: Exception) -> bool:
        """Determine if an error is worth retrying.

        Args:
            error: The exception to check

        Returns:
            True if the error should be retried
        """
        if isinstance(error, RateLimitError):
            return True

        if isinstance(error, ExternalServiceError):
            if error.status_code and error.status_code >= 500:
                return True
            if error.status_code and 400 <= error.status_code < 500:
                return False
            # No status code means the transport failed
            return error.status_code is None

        if isinstance(error, (ConfigurationError, PersistenceError)):
            return False

        if isinstance(error, (ConnectionError, TimeoutError)):
            return True

        # Unknown errors - be conservative and don't retry
        return False


def retry_on_error(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff_factor: float = 2.0,
    context: Optional[Dict[str, Any]] = None,
    sleep: Callable[[float], None] = time.sleep
):
    """Decorator to retry functions on retryable errors.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff_factor: Factor to multiply delay by after each attempt
        context: Additional context for error handling
        sleep: Sleep function, replaceable in tests

    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            handler = ErrorHandler(context=context)
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not handler.is_retryable(e) or attempt == max_attempts - 1:
                        raise

                    wait = current_delay
                    if isinstance(e, RateLimitError) and e.retry_after:
                        wait = max(wait, e.retry_after)

                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} of {func.__name__} "
                        f"failed, retrying in {wait}s",
                        extra={
                            "error": str(e),
                            "error_type": type(e).__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "delay": wait,
                            **(context or {})
                        }
                    )

                    sleep(wait)
                    current_delay *= backoff_factor

        return wrapper
    return decorator

