"""
Publisher HTTP Client
=====================

Shared HTTP plumbing for the eCFR versioner API: one pooled async client with
a connection cap and per-request timeout, used by both the catalog client and
the unit fetcher.

Version: 0.1.0
"""

from dataclasses import dataclass
from typing import Any

import httpx

from shared.config import EcfrSettings, settings
from shared.logging import get_logger


logger = get_logger(__name__)


VERSIONER_PATH = "/api/versioner/v1"


@dataclass
class SourceConfig:
    """Configuration for publisher access."""

    base_url: str = "https://www.ecfr.gov"

    # Concurrency cap on outbound connections
    max_connections: int = 4

    # Timeouts
    connect_timeout: float = 10.0
    request_timeout: float = 120.0

    # Catalog index retries
    retry_count: int = 3
    retry_delay_seconds: float = 2.0

    user_agent: str = "ecfr-metrics/0.1 (+https://www.ecfr.gov/developers)"

    @classmethod
    def from_settings(cls, ecfr: EcfrSettings | None = None) -> "SourceConfig":
        """Build a config from application settings."""
        ecfr = ecfr or settings.ecfr
        return cls(
            base_url=ecfr.base_url,
            max_connections=ecfr.max_concurrency,
            connect_timeout=ecfr.connect_timeout,
            request_timeout=ecfr.request_timeout,
            retry_count=ecfr.retry_count,
            retry_delay_seconds=ecfr.retry_delay_seconds,
            user_agent=ecfr.user_agent,
        )

    @property
    def versioner_url(self) -> str:
        return self.base_url.rstrip("/") + VERSIONER_PATH


class PublisherClient:
    """
    Async HTTP client for the eCFR publisher.

    The underlying httpx client is created lazily and shared by every caller,
    so the connection limits apply to the whole run.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Publisher configuration
            transport: Optional transport override (used by tests)
        """
        self.config = config or SourceConfig.from_settings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(
                self.config.request_timeout,
                connect=self.config.connect_timeout,
            )
            limits = httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_connections,
            )

            kwargs: dict[str, Any] = {
                "timeout": timeout,
                "limits": limits,
                "headers": {"User-Agent": self.config.user_agent},
                "follow_redirects": True,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            else:
                kwargs["http2"] = True

            self._client = httpx.AsyncClient(**kwargs)

        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PublisherClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """
        GET a versioner API path and raise on non-success status.

        Args:
            path: Path relative to the versioner API root
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response

        Raises:
            httpx.HTTPStatusError: Non-2xx response
            httpx.TransportError: Network failure or timeout
        """
        client = self._get_client()
        url = f"{self.config.versioner_url}/{path.lstrip('/')}"

        response = await client.get(url, **kwargs)
        response.raise_for_status()

        logger.debug(
            "publisher_request",
            url=url,
            status=response.status_code,
            bytes=len(response.content),
        )

        return response
