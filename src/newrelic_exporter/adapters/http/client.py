"""httpx-based client for the New Relic REST API.

Pages are followed through the ``Link`` response header and their bodies
concatenated, so callers receive every page of a resource in one payload.
"""

import logging
from dataclasses import dataclass

import httpx

from newrelic_exporter.core.errors import TransportError, UpstreamStatusError
from newrelic_exporter.core.ports import QueryParams

logger = logging.getLogger(__name__)

USER_AGENT = "NewRelic Exporter"
DEFAULT_API_SERVER = "https://api.newrelic.com"


@dataclass(frozen=True)
class APIConfig:
    """Connection settings for the upstream API.

    Attributes:
        server: Base URL of the API.
        api_key: Value sent in the ``X-Api-Key`` header.
        timeout: Per-request timeout in seconds.
        verify_tls: Verify the server certificate. Only tests turn this off;
            the command line does not expose it.
    """

    api_key: str
    server: str = DEFAULT_API_SERVER
    timeout: float = 10.0
    verify_tls: bool = True


def _next_link(response: httpx.Response) -> httpx.URL | None:
    """Return the absolute ``rel="next"`` URL of a response, if any.

    A header that cannot be parsed ends pagination instead of failing.
    """
    # @tra: Fetcher.Pagination.Malformed
    if "link" not in response.headers:
        return None
    try:
        target = response.links.get("next", {}).get("url")
        if not target:
            return None
        return response.url.join(target)
    except (httpx.InvalidURL, ValueError, TypeError) as exc:
        logger.debug("Ignoring malformed Link header %r: %s", response.headers["link"], exc)
        return None


class NewRelicAPI:
    """Paginated fetcher for New Relic API resources."""

    def __init__(
        self,
        config: APIConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the client.

        Args:
            config: Server, key, timeout and TLS settings.
            transport: Optional httpx transport, used by tests to serve
                canned responses.
        """
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.server,
            headers={"User-Agent": USER_AGENT, "X-Api-Key": config.api_key},
            timeout=config.timeout,
            verify=config.verify_tls,
            transport=transport,
        )

    async def _get(self, url: httpx.URL | str, params: QueryParams | None) -> httpx.Response:
        logger.debug("Making API call: %s", url)
        try:
            response = await self._client.get(url, params=params)
        except httpx.TransportError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        if response.status_code != 200:
            raise UpstreamStatusError(
                response.status_code, response.reason_phrase, str(response.url)
            )
        return response

    async def fetch(self, path: str, params: QueryParams = ()) -> bytes:
        """Fetch every page of ``path`` and return the concatenated bodies.

        Args:
            path: API path, e.g. ``/v2/applications.json``.
            params: Query parameters for the first page. Later pages use
                the URL from the ``next`` link as is.

        Raises:
            TransportError: The API could not be reached.
            UpstreamStatusError: A page was answered with a non-200 status.
        """
        # @tra: Fetcher.Pagination.Cycle
        response = await self._get(path, list(params) or None)
        data = bytearray(response.content)
        seen = {str(response.url)}
        next_url = _next_link(response)
        while next_url is not None and str(next_url) not in seen:
            response = await self._get(next_url, None)
            data.extend(response.content)
            seen.add(str(response.url))
            next_url = _next_link(response)
        logger.debug("Fetched %d page(s) from %s", len(seen), path)
        return bytes(data)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
