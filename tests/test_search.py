"""Tests for the search trigger queue."""

import json

import pytest
import respx
from httpx import Response

from curatarr.config import Config, SearchConfig
from curatarr.search import SearchQueue, WebhookSearchHandler, log_search_request


class TestSearchQueue:
    """Tests for SearchQueue."""

    @pytest.mark.asyncio
    async def test_processes_in_order(self) -> None:
        """Queued items are handled one at a time in order."""
        seen: list[str] = []

        async def handler(item_id: str) -> None:
            seen.append(item_id)

        queue = SearchQueue(handler)
        await queue.start()
        queue.enqueue("a")
        queue.enqueue("b")
        await queue.join()
        await queue.stop()

        assert seen == ["a", "b"]
        assert queue.is_running is False

    @pytest.mark.asyncio
    async def test_handler_failure_does_not_stop_worker(self) -> None:
        """A crashing handler is logged and the next item still runs."""
        seen: list[str] = []

        async def handler(item_id: str) -> None:
            if item_id == "bad":
                raise RuntimeError("boom")
            seen.append(item_id)

        queue = SearchQueue(handler)
        await queue.start()
        queue.enqueue("bad")
        queue.enqueue("good")
        await queue.join()

        assert seen == ["good"]
        assert queue.is_running is True
        await queue.stop()

    @pytest.mark.asyncio
    async def test_enqueue_without_worker(self) -> None:
        """Enqueueing never blocks, even before the worker starts."""
        queue = SearchQueue()
        queue.enqueue("a")
        assert queue.pending == 1

    def test_from_config_default_handler(self) -> None:
        """Without a webhook the logging handler is used."""
        assert SearchQueue.from_config(Config()).handler is log_search_request

    def test_from_config_webhook(self) -> None:
        """A configured webhook URL selects the webhook handler."""
        config = Config(search=SearchConfig(webhook_url="http://hook:9000/search"))
        assert isinstance(SearchQueue.from_config(config).handler, WebhookSearchHandler)


class TestWebhookSearchHandler:
    """Tests for WebhookSearchHandler."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_posts_item_id(self) -> None:
        """The item id is POSTed as JSON to the configured path."""
        route = respx.post("http://hook:9000/api/search").mock(return_value=Response(204))

        await WebhookSearchHandler("http://hook:9000/api/search")("item-1")

        assert route.called
        assert json.loads(route.calls.last.request.content) == {"item_id": "item-1"}

    @respx.mock
    @pytest.mark.asyncio
    async def test_webhook_error_is_logged_by_queue(self) -> None:
        """Webhook HTTP errors are contained by the queue worker."""
        route = respx.post("http://hook:9000/search").mock(return_value=Response(400))
        queue = SearchQueue(WebhookSearchHandler("http://hook:9000/search"))

        await queue.start()
        queue.enqueue("item-1")
        await queue.join()
        await queue.stop()

        assert route.call_count == 1
