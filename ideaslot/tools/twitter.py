"""
Async X/Twitter API v2 client for pain-point research and category batches.

Uses ``httpx`` to call the recent-search endpoint.  Retries and pacing are
handled by the Twitter :class:`~ideaslot.scheduling.RequestScheduler`;
this client only turns provider responses into results or
``ProviderAPIError`` instances carrying the rate-limit reset delay and
the error title.

A missing bearer token, or a usage-cap response, leaves the client
disabled for the rest of the process.
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from ideaslot.exceptions import ProviderAPIError, SourceUnavailableError
from ideaslot.scheduling.models import Capability
from ideaslot.scheduling.request_scheduler import ErrorKind, ErrorVerdict, classify_error

logger = logging.getLogger(__name__)


def classify_twitter_error(exc: BaseException) -> ErrorVerdict:
    """Map Twitter error payloads onto scheduler verdicts."""
    verdict = classify_error(exc)
    if verdict.kind is not ErrorKind.FATAL:
        return verdict
    if isinstance(exc, ProviderAPIError) and exc.title == "Too Many Requests":
        return ErrorVerdict(ErrorKind.RATE_LIMITED, exc.retry_after)
    return verdict


class TwitterClient:
    """Async X/Twitter API v2 client.

    Args:
        bearer_token: Twitter API v2 bearer token.  Falls back to the
            ``TWITTER_BEARER_TOKEN`` environment variable.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Usage::

        client = TwitterClient()
        tweets = await client.search_recent('"fintech" lang:en -is:retweet', max_results=20)
    """

    BASE_URL: str = "https://api.twitter.com/2"

    def __init__(
        self,
        bearer_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.bearer_token: str = bearer_token or os.environ.get(
            "TWITTER_BEARER_TOKEN", ""
        )
        self._transport = transport
        if self.bearer_token:
            self.capability = Capability.ok()
        else:
            self.capability = Capability.disabled("TWITTER_BEARER_TOKEN is not set")

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self.capability.is_available

    def disable(self, reason: str) -> None:
        if self.capability.is_available:
            self.capability = Capability.disabled(reason)
            logger.error("Twitter client disabled: %s", reason)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        """Build authorization headers for API requests."""
        return {
            "Authorization": f"Bearer {self.bearer_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _error_from(response: httpx.Response) -> ProviderAPIError:
        """Build a ``ProviderAPIError`` from a non-2xx response.

        ``x-rate-limit-reset`` is an epoch timestamp; it becomes the number
        of seconds left until the window resets.
        """
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        title = body.get("title")
        detail = body.get("detail")

        retry_after: Optional[float] = None
        reset = response.headers.get("x-rate-limit-reset")
        if reset:
            try:
                retry_after = max(0.0, float(reset) - time.time())
            except ValueError:
                retry_after = None

        message = f"Twitter API error {response.status_code}"
        if title or detail:
            message += f": {title or ''}{' - ' if title and detail else ''}{detail or ''}"
        return ProviderAPIError(
            "twitter",
            message,
            status_code=response.status_code,
            title=title,
            detail=detail,
            retry_after=retry_after,
        )

    # ------------------------------------------------------------------
    # Recent search
    # ------------------------------------------------------------------

    async def search_recent(
        self,
        query: str,
        max_results: int = 10,
    ) -> List[Dict[str, Any]]:
        """Search recent tweets matching a query.

        Args:
            query: Twitter search query (supports operators like
                ``lang:en``, ``-is:retweet``).
            max_results: Number of results (10--100).

        Returns:
            List of tweet dicts with ``id``, ``text``, ``author_id``,
            and ``public_metrics`` keys.

        Raises:
            SourceUnavailableError: If the client is disabled.
            ProviderAPIError: On non-2xx responses.
        """
        if not self.capability.is_available:
            raise SourceUnavailableError("twitter", self.capability.reason or "disabled")

        # Clamp max_results to API limits
        max_results = max(10, min(max_results, 100))

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.get(
                f"{self.BASE_URL}/tweets/search/recent",
                headers=self._auth_headers(),
                params={
                    "query": query,
                    "max_results": max_results,
                    "sort_order": "recency",
                    "tweet.fields": "created_at,public_metrics,author_id,lang",
                },
            )
        if response.status_code >= 400:
            raise self._error_from(response)
        data = response.json()

        tweets = data.get("data", [])

        logger.info(
            "Twitter search: query=%r, results=%d",
            query,
            len(tweets),
        )
        return tweets
