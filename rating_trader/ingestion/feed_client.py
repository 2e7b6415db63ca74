"""
External analyst-rating feed client.

API shape::

    GET {base_url}{list_path}[?next_page=<cursor>]
    Authorization: Bearer <token>

    200 → {"items": [{"ticker": ..., "target_from": "$4.20", ..., "time": "..."}],
           "next_page": "<cursor or empty>"}

``drain()`` follows ``next_page`` until the feed returns an empty cursor and
hands back every item in arrival order. It fails fast: the first non-2xx
response, transport error, or body that is not a feed page aborts the drain
with ``ExternalFetchError`` and nothing fetched so far is returned. A single
item that fails validation (blank ticker, bad ``time``) is logged and skipped.
A request timeout cut short by the task deadline raises ``DeadlineExceeded``.
There is no retry, backoff or rate limiting; the whole feed is held in memory.

Credential setup (.env, gitignored):
  RATING_TRADER_FEED_TOKEN=your_token_here
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from rating_trader.config import FeedConfig
from rating_trader.errors import DeadlineExceeded, ExternalFetchError
from rating_trader.models.rating import FeedPage, RatingRecord
from rating_trader.utils.time_utils import Deadline, parse_timestamp

logger = logging.getLogger(__name__)

CURSOR_PARAM = "next_page"


class RatingFeedClient:
    """Cursor-paginated client for the external rating feed.

    Usage::

        with RatingFeedClient.from_config(config.feed) as feed:
            records = feed.drain()

    Attributes:
        base_url: Feed origin without trailing slash.
        list_path: Path of the list endpoint.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        list_path: str = "/production/swechallenge/list",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialise the feed client.

        Args:
            base_url: Feed origin, e.g. ``"https://feed.example"``.
            token: Bearer token sent on every request.
            list_path: Path of the paginated list endpoint.
            timeout: Per-request timeout in seconds.
            client: Optional pre-built ``httpx.Client`` (tests inject one
                backed by ``httpx.MockTransport``). Owned by the caller.
        """
        self.base_url = base_url.rstrip("/")
        self.list_path = list_path
        self.timeout = timeout
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.Client()

    @classmethod
    def from_config(
        cls,
        config: FeedConfig,
        client: Optional[httpx.Client] = None,
    ) -> "RatingFeedClient":
        """Build a client from the ``[feed]`` config section."""
        token = config.resolve_token()
        if not token:
            logger.warning("No feed token configured; requests will be unauthenticated.")
        return cls(
            base_url=config.base_url,
            token=token,
            list_path=config.list_path,
            timeout=config.timeout_seconds,
            client=client,
        )

    def __enter__(self) -> "RatingFeedClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ── Fetching ───────────────────────────────────────────────────────────────

    def fetch_page(
        self,
        cursor: str = "",
        deadline: Optional[Deadline] = None,
    ) -> FeedPage:
        """Fetch one page of the feed.

        Args:
            cursor: Opaque cursor from the previous page; empty for the first.
            deadline: Optional task deadline. Checked before the request and
                used to cap the request timeout.

        Returns:
            The parsed :class:`FeedPage`.

        Raises:
            ExternalFetchError: Non-2xx status, transport failure, or a body
                that is not a valid feed page.
            DeadlineExceeded: If ``deadline`` is already spent, or the request
                times out after its timeout was cut short by ``deadline``.
        """
        timeout = self.timeout
        if deadline is not None:
            deadline.check("feed request")
            timeout = deadline.cap(timeout)
        deadline_bound = deadline is not None and timeout < self.timeout

        url = f"{self.base_url}{self.list_path}"
        params = {CURSOR_PARAM: cursor} if cursor else None
        try:
            resp = self._client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            if deadline is not None and (deadline_bound or deadline.expired()):
                raise DeadlineExceeded(
                    f"Deadline of {deadline.seconds:.0f}s exceeded during feed request "
                    f"to {url}."
                ) from exc
            raise ExternalFetchError(f"Request to {url} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ExternalFetchError(f"Request to {url} failed: {exc}") from exc

        if not resp.is_success:
            raise ExternalFetchError(
                f"Unexpected status code {resp.status_code} from {url}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ExternalFetchError(f"Failed to parse response from {url}: {exc}") from exc

        return _parse_page(payload)

    def drain(self, deadline: Optional[Deadline] = None) -> list[RatingRecord]:
        """Follow the cursor chain to the end and return every item.

        Args:
            deadline: Optional task deadline applied to every page request.

        Returns:
            All records in arrival order.

        Raises:
            ExternalFetchError: On the first failing page, or if the feed
                hands back a cursor it already returned.
            DeadlineExceeded: If ``deadline`` runs out mid-drain.
        """
        items: list[RatingRecord] = []
        seen_cursors: set[str] = set()
        cursor = ""
        pages = 0
        skipped = 0

        while True:
            page = self.fetch_page(cursor, deadline=deadline)
            pages += 1
            skipped += page.skipped_items
            items.extend(page.items)
            logger.debug(
                "Feed page %d: %d items | next_page=%r", pages, len(page.items), page.next_page
            )

            if not page.next_page:
                break
            if page.next_page in seen_cursors:
                raise ExternalFetchError(
                    f"Feed returned cursor {page.next_page!r} twice; aborting drain."
                )
            seen_cursors.add(page.next_page)
            cursor = page.next_page

        logger.info(
            "Feed drained: %d items across %d pages (%d malformed items skipped)",
            len(items),
            pages,
            skipped,
        )
        return items


# ── Response parsing ───────────────────────────────────────────────────────────

def _parse_page(payload: Any) -> FeedPage:
    """Validate a decoded JSON body into a :class:`FeedPage`.

    A body that is not a page aborts with ``ExternalFetchError``. Individual
    items that fail validation are logged and left out of ``items``.
    """
    if not isinstance(payload, dict):
        raise ExternalFetchError(
            f"Feed response must be a JSON object, got {type(payload).__name__}."
        )
    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise ExternalFetchError("Feed response 'items' must be a list.")

    records: list[RatingRecord] = []
    for index, raw in enumerate(raw_items):
        try:
            records.append(_parse_item(raw))
        except ValueError as exc:
            logger.warning("Skipping malformed feed item #%d: %s", index, exc)

    return FeedPage(
        items=records,
        next_page=payload.get(CURSOR_PARAM),
        skipped_items=len(raw_items) - len(records),
    )


def _parse_item(raw: Any) -> RatingRecord:
    """Convert one feed item into a :class:`RatingRecord`.

    Raises:
        ValueError: If ``raw`` is not an object, lacks a ticker, or carries
            an unparseable ``time`` (pydantic's ``ValidationError`` is a
            ``ValueError``).
    """
    if not isinstance(raw, dict):
        raise ValueError(f"expected an object, got {type(raw).__name__}")
    return RatingRecord(
        ticker=raw.get("ticker") or "",
        target_from=raw.get("target_from") or "",
        target_to=raw.get("target_to") or "",
        company=raw.get("company") or "",
        action=raw.get("action") or "",
        brokerage=raw.get("brokerage") or "",
        rating_from=raw.get("rating_from") or "",
        rating_to=raw.get("rating_to") or "",
        time=parse_timestamp(str(raw.get("time", ""))),
    )
