"""Async HTTP gateway to the remote quote collection.

The remote service exposes generic "posts": ``{id, title, body, userId}``.
A quote maps onto a post as title <- text and body <- category. The remote
never persists creates, so an id returned by a push is not guaranteed to
come back from a later list fetch.

All calls go through a tenacity retry loop (exponential backoff) and raise
TransportError once retries are exhausted.
"""

from __future__ import annotations

import random
from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from src.quotesync.config import Settings
from src.quotesync.core.exceptions import QuoteValidationError, TransportError
from src.quotesync.quotes.model import now_ms, validate_candidate
from src.quotesync.quotes.schemas import REMOTE_PREFIX, Quote

logger = structlog.get_logger(__name__)

DEFAULT_TEXT = "(no text)"
DEFAULT_CATEGORY = "General"

def _is_retryable(exc: BaseException) -> bool:
    """Retry network failures, 5xx and 429; other 4xx responses are final."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, httpx.TransportError)


def map_remote_item(item: Any, *, now: int | None = None) -> Quote | None:
    """Translate one remote post into a Quote.

    Remote items have no modification time, so ``updatedAt`` is the fetch
    time. Returns None for items without an id.
    """
    if not isinstance(item, dict) or item.get("id") in (None, ""):
        return None

    title = item.get("title")
    body = item.get("body")
    text = title.strip() if isinstance(title, str) else ""
    body_text = body.strip() if isinstance(body, str) else ""
    category = body_text.splitlines()[0] if body_text else ""

    candidate = {
        "id": f"{REMOTE_PREFIX}{item['id']}",
        "text": text or DEFAULT_TEXT,
        "category": category.strip() or DEFAULT_CATEGORY,
        "updatedAt": now if now is not None else now_ms(),
        "pending": False,
    }
    try:
        return validate_candidate(candidate, now=now)
    except QuoteValidationError:
        return None


def _extract_remote_id(data: Any) -> str | None:
    if isinstance(data, dict):
        value = data.get("id")
        if isinstance(value, (int, str)) and not isinstance(value, bool) and str(value).strip():
            return str(value).strip()
    return None


class RemoteGateway:
    """Async client for the remote quote collection.

    Args:
        base_url: Service root, e.g. https://jsonplaceholder.typicode.com.
        page_size: Cap on items returned by a list fetch.
        owner_tag: Value sent as the post's ``userId`` on create.
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts per call before giving up.
        backoff: Exponential backoff multiplier in seconds (0 disables waiting).
    """

    def __init__(
        self,
        base_url: str,
        page_size: int = 10,
        owner_tag: int = 1,
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._owner_tag = owner_tag
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff

    @classmethod
    def from_settings(cls, settings: Settings) -> RemoteGateway:
        return cls(
            base_url=settings.REMOTE_BASE_URL,
            page_size=settings.REMOTE_PAGE_SIZE,
            owner_tag=settings.REMOTE_OWNER_TAG,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
            max_attempts=settings.REMOTE_MAX_ATTEMPTS,
            backoff=settings.REMOTE_BACKOFF_SECONDS,
        )

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the configured timeout."""
        return httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=10),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )

    async def _list_items(self) -> Any:
        async for attempt in self._retrying():
            with attempt:
                async with self._client() as client:
                    response = await client.get(
                        f"{self._base_url}/posts",
                        params={"_limit": self._page_size},
                    )
                    response.raise_for_status()
                    return response.json()

    async def _create_item(self, payload: dict[str, Any]) -> Any:
        async for attempt in self._retrying():
            with attempt:
                async with self._client() as client:
                    response = await client.post(f"{self._base_url}/posts", json=payload)
                    response.raise_for_status()
                    return response.json()

    async def fetch_remote(self) -> list[Quote]:
        """Fetch the remote collection and map it to quotes.

        Raises:
            TransportError: If the list request fails after retries or the
                response is not a JSON list.
        """
        try:
            data = await self._list_items()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("remote.fetch_failed", error=str(exc))
            raise TransportError(f"Remote fetch failed: {exc}") from exc

        if not isinstance(data, list):
            logger.warning("remote.fetch_unexpected_shape", shape=type(data).__name__)
            raise TransportError(f"Remote fetch returned {type(data).__name__}, expected a list")

        fetched_at = now_ms()
        quotes: list[Quote] = []
        for item in data[: self._page_size]:
            quote = map_remote_item(item, now=fetched_at)
            if quote is not None:
                quotes.append(quote)

        logger.info("remote.fetch_complete", count=len(quotes))
        return quotes

    async def push_record(self, quote: Quote) -> str:
        """Create ``quote`` remotely and return the assigned remote id (unprefixed).

        Falls back to a random numeric id when the response omits one.

        Raises:
            TransportError: If the create request fails after retries.
        """
        payload = {"title": quote.text, "body": quote.category, "userId": self._owner_tag}
        try:
            data = await self._create_item(payload)
        except httpx.HTTPError as exc:
            logger.warning("remote.push_failed", quote_id=quote.id, error=str(exc))
            raise TransportError(f"Push failed for {quote.id}: {exc}") from exc
        except ValueError:
            data = None

        remote_id = _extract_remote_id(data)
        if remote_id is None:
            remote_id = str(random.randint(1000, 999_999))
            logger.debug("remote.push_id_generated", quote_id=quote.id, remote_id=remote_id)

        logger.info("remote.push_complete", quote_id=quote.id, remote_id=remote_id)
        return remote_id
