"""Shared HTTP plumbing for the MediaWiki-based APIs (Wikidata, Wikipedia)."""

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from .error_handling import ExternalServiceError, RateLimitError, retry_on_error
from .interfaces import RateLimiter
from .models import KnowledgeGraphConfig


class MediaWikiClient:
    """Rate-limited, retrying GET client for a MediaWiki ``api.php`` endpoint."""

    service_name = "MediaWiki"

    def __init__(
        self,
        api_url: str,
        config: Optional[KnowledgeGraphConfig] = None,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the client.

        Args:
            api_url: Endpoint, e.g. https://www.wikidata.org/w/api.php
            config: Timeouts, retries and user agent
            session: Optional pre-configured requests session
            rate_limiter: Optional limiter called before every request
            sleep: Sleep function used between retries
        """
        self.api_url = api_url
        self.config = config or KnowledgeGraphConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})
        self.rate_limiter = rate_limiter
        self.logger = logging.getLogger(self.__class__.__name__)

        self._get = retry_on_error(
            max_attempts=self.config.retry_attempts,
            delay=1.0,
            context={"service": self.service_name},
            sleep=sleep,
        )(self._get_once)

    def get(self, **params) -> Dict[str, Any]:
        """Call the API with the given query parameters.

        Raises:
            RateLimitError: On HTTP 429 once retries are exhausted
            ExternalServiceError: On transport, HTTP or API-level errors
        """
        return self._get(params)

    def _get_once(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.rate_limiter is not None:
            self.rate_limiter.wait_if_needed()

        query = {"format": "json", "formatversion": "1", **params}
        try:
            response = self.session.get(self.api_url, params=query, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise ExternalServiceError(
                f"{self.service_name} request failed: {e}",
                error_code="transport_error",
                context={"action": params.get("action")},
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"{self.service_name} rate limit exceeded",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"{self.service_name} API error: {response.status_code}",
                error_code="http_error",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"{self.service_name} returned invalid JSON", error_code="invalid_response"
            ) from e
