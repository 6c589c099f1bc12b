"""Cancel-on-next-input deferral for text fields."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_FILTER_DELAY = 0.3
_DEFAULT_SERVER_SEARCH_DELAY = 0.5


class Debouncer:
    """Hold at most one pending call; each :meth:`push` replaces it.

    The timer lives on the running asyncio loop.  Without a running loop the
    call is made immediately.  After :meth:`close`, pushes are ignored and a
    callback that still fires does nothing.
    """

    def __init__(self, callback: Callable[..., Any], delay: float = _DEFAULT_FILTER_DELAY) -> None:
        self._callback = callback
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, *args: Any) -> None:
        if self._closed:
            return
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._callback(*args)
            return
        self._handle = loop.call_later(self.delay, self._fire, args)

    def _fire(self, args: tuple[Any, ...]) -> None:
        self._handle = None
        if self._closed:
            return
        self._callback(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        self.cancel()
        self._closed = True
