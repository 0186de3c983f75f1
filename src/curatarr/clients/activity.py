"""Remote activity log client."""

from __future__ import annotations

from curatarr.clients.base import BaseClient
from curatarr.models.activity import ActivityEvent


class ActivityClient(BaseClient):
    """Client for a remote library's activity log endpoint.

    Inherits retry functionality from BaseClient. Activity is always fetched
    uncached since polling exists to see new entries.

    Example:
        async with ActivityClient("http://localhost:5055", "api-key") as client:
            events = await client.fetch_recent(30)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        super().__init__(
            base_url,
            headers={"X-Api-Key": api_key},
            timeout=timeout,
            max_retries=max_retries,
        )

    async def fetch_recent(self, limit: int = 50) -> list[ActivityEvent]:
        """Fetch the most recent activity events, newest first.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of ActivityEvent models
        """
        data = await self._get_uncached("/api/library/activity", params={"limit": limit})
        if isinstance(data, dict):
            data = data.get("activities", data.get("items", []))
        return [ActivityEvent.model_validate(item) for item in data or []]
