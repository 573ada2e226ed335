"""Unit tests for error handling functionality."""

import pytest
from unittest.mock import Mock

from ..error_handling import (
    ConfigurationError,
    DuplicateAffairError,
    ErrorHandler,
    ExternalServiceError,
    PersistenceError,
    PoligraphError,
    RateLimitError,
    SlugExhaustedError,
    SlugTakenError,
    retry_on_error,
)


class TestErrorTypes:
    """Test the exception hierarchy."""

    def test_rate_limit_error(self):
        """Test rate limit errors carry a 429 and the retry delay."""
        error = RateLimitError(retry_after=30.0)

        assert isinstance(error, ExternalServiceError)
        assert error.status_code == 429
        assert error.error_code == "rate_limited"
        assert error.retry_after == 30.0

    def test_duplicate_affair_error(self):
        """Test duplicate errors are persistence errors."""
        error = DuplicateAffairError("dup", ecli="E1")

        assert isinstance(error, PersistenceError)
        assert error.ecli == "E1"
        assert error.error_code == "duplicate_affair"

    def test_slug_exhausted_error(self):
        """Test slug exhaustion records the base slug."""
        error = SlugExhaustedError("recel", 500)

        assert "recel" in str(error)
        assert error.context == {"base_slug": "recel", "attempts": 500}

    def test_slug_taken_error(self):
        """Test slug collisions are persistence errors naming the slug."""
        error = SlugTakenError("recel")

        assert isinstance(error, PersistenceError)
        assert error.slug == "recel"
        assert error.error_code == "slug_taken"


class TestErrorHandler:
    """Test centralized error handling."""

    def test_handle_error_adds_context(self):
        """Test handler context is merged into the error."""
        handler = ErrorHandler(context={"phase": "text"}, log_errors=False)
        error = PoligraphError("boom")

        returned = handler.handle_error(error, additional_context={"title": "x"})

        assert returned is error
        assert error.context == {"phase": "text", "title": "x"}

    def test_critical_errors_raise(self):
        """Test critical errors are re-raised by default."""
        handler = ErrorHandler(log_errors=False)
        with pytest.raises(PoligraphError):
            handler.handle_error(PoligraphError("boom"), critical=True)

    def test_critical_errors_can_be_swallowed(self):
        """Test raise_on_critical=False returns instead."""
        handler = ErrorHandler(log_errors=False, raise_on_critical=False)
        error = ValueError("boom")
        assert handler.handle_error(error, critical=True) is error

    @pytest.mark.parametrize(
        "error,expected",
        [
            (RateLimitError(), True),
            (ExternalServiceError("x", status_code=503), True),
            (ExternalServiceError("x", status_code=404), False),
            (ExternalServiceError("x"), True),
            (SlugTakenError("x"), False),
            (ConfigurationError("x"), False),
            (DuplicateAffairError("x"), False),
            (ConnectionError("x"), True),
            (TimeoutError("x"), True),
            (KeyError("x"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        """Test retryability classification."""
        assert ErrorHandler().is_retryable(error) is expected


class TestRetryOnError:
    """Test the retry decorator."""

    def test_retries_then_succeeds(self):
        """Test a transient failure is retried with backoff."""
        sleep = Mock()
        func = Mock(side_effect=[ExternalServiceError("down", status_code=502), "ok"])
        func.__name__ = "fetch"

        wrapped = retry_on_error(max_attempts=3, delay=1.0, sleep=sleep)(func)

        assert wrapped() == "ok"
        assert func.call_count == 2
        sleep.assert_called_once_with(1.0)

    def test_gives_up_after_max_attempts(self):
        """Test the last error propagates."""
        sleep = Mock()
        func = Mock(side_effect=ConnectionError("refused"))
        func.__name__ = "fetch"

        wrapped = retry_on_error(max_attempts=3, delay=1.0, backoff_factor=2.0, sleep=sleep)(func)

        with pytest.raises(ConnectionError):
            wrapped()
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_non_retryable_raises_immediately(self):
        """Test client errors are not retried."""
        sleep = Mock()
        func = Mock(side_effect=ExternalServiceError("bad", status_code=400))
        func.__name__ = "fetch"

        with pytest.raises(ExternalServiceError):
            retry_on_error(sleep=sleep)(func)()
        assert func.call_count == 1
        sleep.assert_not_called()

    def test_honours_retry_after(self):
        """Test Retry-After extends the wait."""
        sleep = Mock()
        func = Mock(side_effect=[RateLimitError(retry_after=10.0), "ok"])
        func.__name__ = "fetch"

        assert retry_on_error(delay=1.0, sleep=sleep)(func)() == "ok"
        sleep.assert_called_once_with(10.0)


