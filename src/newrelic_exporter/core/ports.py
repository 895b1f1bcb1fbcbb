"""Port interfaces for the upstream API.

The scraper depends only on this protocol, not on the httpx client.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

QueryParams = Sequence[tuple[str, str]]


@runtime_checkable
class FetcherPort(Protocol):
    """Port for fetching complete (all pages) API payloads.

    Examples: NewRelicAPI.
    """

    async def fetch(self, path: str, params: QueryParams = ()) -> bytes:
        """Fetch every page of ``path`` and return the concatenated bodies.

        Raises:
            TransportError: The API could not be reached.
            UpstreamStatusError: A page was answered with a non-200 status.
        """
        ...
