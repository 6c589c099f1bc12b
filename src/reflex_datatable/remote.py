"""Remote page loading with stale-response protection."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from reflex_datatable.exceptions import RemoteFetchError
from reflex_datatable.models import FetchRequest, FetchResponse, Row

logger = logging.getLogger(__name__)

FetchFunction = Callable[[FetchRequest], Awaitable["FetchResponse | Mapping[str, Any]"]]


class RemoteFetchAdapter:
    """Call an injected async fetch function and keep the last good page.

    Every :meth:`load` takes a new generation number.  When a response
    arrives for a generation that is no longer the latest it is dropped, so
    a slow early request can never overwrite a later one.

    A failure (the fetch raised, or returned a malformed payload) is stored
    in :attr:`last_error` and logged; :attr:`data` and :attr:`total_count`
    keep the previous page so the caller can retry.

    Inconsistent but well-formed responses (more rows than requested, or a
    total smaller than the page) are displayed as-is with a warning.
    """

    def __init__(self, fetch: FetchFunction) -> None:
        self._fetch = fetch
        self.data: tuple[Row, ...] = ()
        self.total_count = 0
        self.loading = False
        self.last_error: RemoteFetchError | None = None
        self.last_request: FetchRequest | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, request: FetchRequest) -> bool:
        """Fetch *request* and ingest the response.

        Returns:
            ``True`` if the response was applied, ``False`` if it failed or
            was superseded by a newer request.
        """
        self._generation += 1
        generation = self._generation
        self.loading = True

        try:
            raw = await self._fetch(request)
            response = FetchResponse.coerce(raw)
        except asyncio.CancelledError:
            if generation == self._generation:
                self.loading = False
            raise
        except Exception as exc:
            if generation != self._generation:
                logger.debug("Ignoring failure of superseded fetch #%d: %s", generation, exc)
                return False
            self.last_error = RemoteFetchError(f"Failed to fetch data: {exc}", request)
            self.last_error.__cause__ = exc
            self.loading = False
            logger.error("Failed to fetch page %d: %s", request.page, exc)
            return False

        if generation != self._generation:
            logger.debug(
                "Discarding stale response #%d (latest is #%d)", generation, self._generation
            )
            return False

        self._check_consistency(request, response)
        self.data = tuple(response.data)
        self.total_count = response.total_count
        self.last_request = request
        self.last_error = None
        self.loading = False
        return True

    @staticmethod
    def _check_consistency(request: FetchRequest, response: FetchResponse) -> None:
        size = len(response.data)
        if request.rows_per_page > 0 and size > request.rows_per_page:
            logger.warning(
                "Remote source returned %d rows for a page of %d", size, request.rows_per_page
            )
        if response.total_count < size:
            logger.warning(
                "Remote totalCount %d is smaller than the %d rows returned",
                response.total_count,
                size,
            )
