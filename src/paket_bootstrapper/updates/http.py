"""
HTTP fetch capability for the package feed.

FeedClient opens one httpx client per request so that the proxy can be chosen
per URL. Before every request the ``prepare_request`` hook gets the client
and the target URL, which lets callers add authentication or headers.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx

from paket_bootstrapper.errors import InternalError, UnavailableError
from paket_bootstrapper.logging import get_logger

logger = get_logger(__name__)

PrepareRequestHook = Callable[[httpx.Client, str], None]
ProxyResolver = Callable[[str], str | None]

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "paket-bootstrapper"
CHUNK_SIZE = 64 * 1024


def _no_preparation(client: httpx.Client, url: str) -> None:
    return None


class FeedClient:
    """
    Blocking HTTP client for feed listings and package downloads.

    Attributes:
        timeout: Request timeout in seconds.
        user_agent: User-Agent header sent with every request.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        prepare_request: PrepareRequestHook | None = None,
        default_proxy_for: ProxyResolver | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize the FeedClient.

        Args:
            timeout: Request timeout in seconds.
            user_agent: User-Agent header value.
            prepare_request: Hook called with (client, url) before each request.
            default_proxy_for: Returns the proxy URL to use for a request URL,
                or None for a direct connection.
            transport: Optional httpx transport, mainly for tests.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._prepare_request = prepare_request or _no_preparation
        self._default_proxy_for = default_proxy_for
        self._transport = transport

    def _new_client(self, url: str) -> httpx.Client:
        proxy = self._default_proxy_for(url) if self._default_proxy_for else None
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            proxy=proxy,
            transport=self._transport,
        )

    def download_string(self, url: str) -> str:
        """
        Fetch a URL and return the response body as text.

        Raises:
            UnavailableError: On any transport failure or HTTP error status.
        """
        logger.debug("Fetching", extra={"url": url})
        try:
            with self._new_client(url) as client:
                self._prepare_request(client, url)
                response = client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            logger.error("Feed request failed", extra={"url": url, "error": str(e)})
            raise UnavailableError(
                f"Failed to fetch {url}: {e}",
                details={"url": url, "error": str(e)},
            ) from e

    def download_file(self, url: str, destination: Path) -> Path:
        """
        Stream a URL to ``destination``.

        Returns:
            The destination path.

        Raises:
            UnavailableError: On any transport failure or HTTP error status.
            InternalError: If ``destination`` cannot be written.
        """
        logger.debug(
            "Downloading", extra={"url": url, "destination": str(destination)}
        )
        try:
            with self._new_client(url) as client:
                self._prepare_request(client, url)
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(destination, "wb") as f:
                        for chunk in response.iter_bytes(CHUNK_SIZE):
                            f.write(chunk)
        except httpx.HTTPError as e:
            logger.error("Package download failed", extra={"url": url, "error": str(e)})
            raise UnavailableError(
                f"Failed to download {url}: {e}",
                details={"url": url, "destination": str(destination), "error": str(e)},
            ) from e
        except OSError as e:
            logger.error(
                "Writing package failed",
                extra={"destination": str(destination), "error": str(e)},
            )
            raise InternalError(
                f"Failed to write {destination}: {e}",
                details={"url": url, "destination": str(destination), "error": str(e)},
            ) from e

        return destination
