"""Fire-and-forget search triggers for newly added library items."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from curatarr.clients.base import BaseClient

if TYPE_CHECKING:
    from curatarr.config import Config

logger = logging.getLogger(__name__)


class SearchHandler(Protocol):
    """Starts a release search for a library item."""

    async def __call__(self, item_id: str) -> None: ...


async def log_search_request(item_id: str) -> None:
    """Default handler: record the request without contacting anything."""
    logger.info("Search requested for library item %s", item_id)


class WebhookSearchHandler:
    """POST ``{"item_id": ...}`` to a configured webhook URL."""

    def __init__(self, url: str, *, timeout: float = 30.0, max_retries: int = 3) -> None:
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries

    async def __call__(self, item_id: str) -> None:
        parsed = httpx.URL(self.url)
        origin = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"
        async with BaseClient(
            origin, timeout=self.timeout, max_retries=self.max_retries
        ) as client:
            await client._post(parsed.raw_path.decode("ascii") or "/", json={"item_id": item_id})
        logger.debug("Search webhook accepted item %s", item_id)


class SearchQueue:
    """Background queue that runs search triggers one at a time.

    ``enqueue`` never blocks and never raises; handler failures are logged
    and the worker moves on.

    Example:
        queue = SearchQueue(log_search_request)
        await queue.start()
        queue.enqueue("item-1")
        await queue.join()
        await queue.stop()
    """

    def __init__(self, handler: SearchHandler | None = None) -> None:
        self.handler: SearchHandler = handler or log_search_request
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the worker task is active."""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """Number of queued, not yet processed requests."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the worker task if it is not running."""
        if not self.is_running:
            self._worker = asyncio.create_task(self._run(), name="curatarr-search-queue")

    async def stop(self) -> None:
        """Cancel the worker. Queued requests are dropped."""
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    def enqueue(self, item_id: str) -> None:
        """Queue a search for an item."""
        self._queue.put_nowait(item_id)
        logger.debug("Queued search for %s (%d pending)", item_id, self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued request has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            item_id = await self._queue.get()
            try:
                await self.handler(item_id)
            except httpx.HTTPError as e:
                logger.warning("Search trigger for %s failed: %s", item_id, e)
            except Exception:
                logger.exception("Search handler crashed for %s", item_id)
            finally:
                self._queue.task_done()

    @classmethod
    def from_config(cls, config: Config) -> SearchQueue:
        """Create a queue using the configured webhook, or the logging handler."""
        if config.search.webhook_url:
            return cls(WebhookSearchHandler(config.search.webhook_url, timeout=config.timeout))
        return cls()
