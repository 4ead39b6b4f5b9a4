"""
Async Reddit API client for pain-point research.

Uses ``httpx`` against ``oauth.reddit.com`` with a script-app password
grant.  The client performs single requests only; pacing, retries and
backoff belong to the Reddit :class:`~ideaslot.scheduling.RequestScheduler`.

When any credential is missing the client starts disabled and every call
raises ``SourceUnavailableError`` without touching the network.
"""

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ideaslot.config import REDDIT_ENV_VARS
from ideaslot.exceptions import ProviderAPIError, SourceUnavailableError
from ideaslot.scheduling.models import Capability
from ideaslot.scheduling.request_scheduler import ErrorKind, ErrorVerdict, classify_error

logger = logging.getLogger(__name__)


def classify_reddit_error(exc: BaseException) -> ErrorVerdict:
    """Reddit reports throttling as 429 or in the error text."""
    verdict = classify_error(exc)
    if verdict.kind is ErrorKind.FATAL and "exceeded" in str(exc).lower():
        return ErrorVerdict(ErrorKind.RATE_LIMITED)
    return verdict


class RedditClient:
    """Async Reddit client.

    Args:
        client_id: OAuth app id (``REDDIT_CLIENT_ID``).
        client_secret: OAuth app secret (``REDDIT_CLIENT_SECRET``).
        user_agent: Descriptive user agent (``REDDIT_USER_AGENT``).
        username: Account name (``REDDIT_USERNAME``).
        password: Account password (``REDDIT_PASSWORD``).
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        sleep: Awaitable sleep used for the low-quota pause.

    Usage::

        client = RedditClient()
        posts = await client.search("startups", "fix for", limit=1)
        comments = await client.get_comments(posts[0]["id"], limit=2)
    """

    TOKEN_URL: str = "https://www.reddit.com/api/v1/access_token"
    BASE_URL: str = "https://oauth.reddit.com"

    # Pause when the provider says fewer than this many calls remain
    LOW_REMAINING_THRESHOLD: int = 5
    LOW_REMAINING_PAUSE: float = 5.0

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        user_agent: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        given = {
            "REDDIT_CLIENT_ID": client_id,
            "REDDIT_CLIENT_SECRET": client_secret,
            "REDDIT_USER_AGENT": user_agent,
            "REDDIT_USERNAME": username,
            "REDDIT_PASSWORD": password,
        }
        creds = {key: given[key] or os.environ.get(key, "") for key in REDDIT_ENV_VARS}
        self.client_id = creds["REDDIT_CLIENT_ID"]
        self.client_secret = creds["REDDIT_CLIENT_SECRET"]
        self.user_agent = creds["REDDIT_USER_AGENT"]
        self.username = creds["REDDIT_USERNAME"]
        self.password = creds["REDDIT_PASSWORD"]
        self._transport = transport
        self._sleep = sleep
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

        missing = [key for key, value in creds.items() if not value]
        if missing:
            self.capability = Capability.disabled(f"missing credentials: {', '.join(missing)}")
            logger.warning("Reddit API not configured (%s)", self.capability.reason)
        else:
            self.capability = Capability.ok()

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self.capability.is_available

    def disable(self, reason: str) -> None:
        if self.capability.is_available:
            self.capability = Capability.disabled(reason)
            logger.error("Reddit client disabled: %s", reason)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, transport=self._transport)

    async def _token(self, client: httpx.AsyncClient) -> str:
        """Fetch (or reuse) a password-grant bearer token."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await client.post(
            self.TOKEN_URL,
            auth=(self.client_id, self.client_secret),
            data={
                "grant_type": "password",
                "username": self.username,
                "password": self.password,
            },
            headers={"User-Agent": self.user_agent},
        )
        if response.status_code >= 400:
            raise self._error_from(response)
        data = response.json()
        if "access_token" not in data:
            raise ProviderAPIError(
                "reddit",
                f"Reddit auth failed: {data.get('error', 'no access_token in response')}",
                status_code=response.status_code,
            )
        self._access_token = data["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + float(data.get("expires_in", 3600)) - 60
        return self._access_token

    def _error_from(self, response: httpx.Response) -> ProviderAPIError:
        retry_after: Optional[float] = None
        reset = response.headers.get("x-ratelimit-reset")
        if response.status_code == 429 and reset:
            try:
                retry_after = float(reset)
            except ValueError:
                retry_after = None
        return ProviderAPIError(
            "reddit",
            f"Reddit API error {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
            retry_after=retry_after,
        )

    async def _respect_remaining(self, response: httpx.Response) -> None:
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is None:
            return
        try:
            left = float(remaining)
        except ValueError:
            return
        if left < self.LOW_REMAINING_THRESHOLD:
            logger.warning(
                "Reddit quota low (%s remaining), pausing %.0fs",
                remaining,
                self.LOW_REMAINING_PAUSE,
            )
            await self._sleep(self.LOW_REMAINING_PAUSE)

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        if not self.capability.is_available:
            raise SourceUnavailableError("reddit", self.capability.reason or "disabled")

        async with self._new_http_client() as client:
            token = await self._token(client)
            response = await client.get(
                f"{self.BASE_URL}{path}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "User-Agent": self.user_agent,
                },
                params=params,
            )
        await self._respect_remaining(response)
        if response.status_code >= 400:
            raise self._error_from(response)
        return response.json()

    # ------------------------------------------------------------------
    # Subreddit search
    # ------------------------------------------------------------------

    async def search(
        self,
        subreddit: str,
        query: str,
        limit: int = 1,
        sort: str = "new",
    ) -> List[Dict[str, Any]]:
        """Search posts inside one subreddit.

        Args:
            subreddit: Subreddit name without the ``r/`` prefix.
            query: Search phrase.
            limit: Maximum posts to return.
            sort: ``new``, ``relevance``, ``hot``, ``top`` or ``comments``.

        Returns:
            List of post dicts with ``id``, ``title`` and ``selftext`` keys.

        Raises:
            SourceUnavailableError: If the client is disabled.
            ProviderAPIError: On non-2xx responses.
        """
        data = await self._get(
            f"/r/{subreddit}/search",
            {"q": query, "restrict_sr": "on", "sort": sort, "limit": limit},
        )
        posts = [
            child.get("data", {})
            for child in data.get("data", {}).get("children", [])
        ]
        logger.debug("Reddit search: r/%s q=%r results=%d", subreddit, query, len(posts))
        return posts

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def get_comments(self, post_id: str, limit: int = 2) -> List[Dict[str, Any]]:
        """Top-level comments of a post, best first.

        Returns:
            List of comment dicts with a ``body`` key.
        """
        data = await self._get(
            f"/comments/{post_id}",
            {"limit": limit, "depth": 1, "sort": "top"},
        )
        if not isinstance(data, list) or len(data) < 2:
            return []
        comments = [
            child.get("data", {})
            for child in data[1].get("data", {}).get("children", [])
            if child.get("kind") == "t1"
        ]
        return comments[:limit]
