# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Async client for the MediaWiki action API and Wikimedia pageviews REST API.

Thin transport layer: every method either returns parsed data or raises
``LookupServiceError``.  Fallback values and caching belong to the callers
(page_classifier.py, connectivity.py), which must never let a lookup failure
abort scoring.

The ``httpx.AsyncClient`` is injectable so tests can use ``httpx.MockTransport``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from .config import DEFAULT_USER_AGENT
from .errors import LookupServiceError
from .page_names import to_wire_title

logger = logging.getLogger(__name__)

ACTION_API_URL = "https://en.wikipedia.org/w/api.php"
PAGEVIEWS_API_URL = "https://wikimedia.org/api/rest_v1/metrics/pageviews/per-article"

CATEGORY_LIMIT = 50
LINK_LIMIT = 500
ARTICLE_NAMESPACE = 0


@dataclass(frozen=True, slots=True)
class BacklinkPage:
    """One page of ``list=backlinks`` results."""

    count: int
    has_more: bool


class WikipediaClient:
    """Category, link and pageview lookups against Wikipedia."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        action_api_url: str = ACTION_API_URL,
        pageviews_api_url: str = PAGEVIEWS_API_URL,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._headers = {"User-Agent": user_agent, "Api-User-Agent": user_agent}
        self._action_api_url = action_api_url
        self._pageviews_api_url = pageviews_api_url.rstrip("/")

    async def __aenter__(self) -> WikipediaClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # -- Action API --

    async def fetch_categories(self, title: str) -> list[str]:
        """Category names (without the ``Category:`` prefix) for *title*.

        Returns an empty list when the page exists but has no categories.
        """
        data = await self._action_query(
            title,
            {
                "titles": to_wire_title(title),
                "prop": "categories",
                "cllimit": str(CATEGORY_LIMIT),
                "redirects": "1",
            },
        )
        page = _first_page(data, title)
        if page is None:
            return []
        categories = page.get("categories") or []
        if not isinstance(categories, list) or not all(isinstance(c, dict) for c in categories):
            raise LookupServiceError("malformed categories in response", title=title)
        return [str(c["title"]).removeprefix("Category:") for c in categories if c.get("title")]

    async def fetch_backlinks(self, title: str, *, limit: int = LINK_LIMIT) -> BacklinkPage:
        """First page of article-namespace backlinks plus the continuation flag."""
        data = await self._action_query(
            title,
            {
                "list": "backlinks",
                "bltitle": to_wire_title(title),
                "bllimit": str(limit),
                "blnamespace": str(ARTICLE_NAMESPACE),
            },
        )
        backlinks = _query(data, title).get("backlinks")
        if backlinks is None:
            raise LookupServiceError("backlinks missing from response", title=title)
        if not isinstance(backlinks, list):
            raise LookupServiceError("malformed backlinks in response", title=title)
        return BacklinkPage(count=len(backlinks), has_more="continue" in data)

    async def fetch_outgoing_links(self, title: str, *, limit: int = LINK_LIMIT) -> int | None:
        """Number of article-namespace links on *title*; None if the page is missing."""
        data = await self._action_query(
            title,
            {
                "titles": to_wire_title(title),
                "prop": "links",
                "pllimit": str(limit),
                "plnamespace": str(ARTICLE_NAMESPACE),
                "redirects": "1",
            },
        )
        page = _first_page(data, title)
        if page is None:
            return None
        links = page.get("links") or []
        if not isinstance(links, list):
            raise LookupServiceError("malformed links in response", title=title)
        return len(links)

    # -- Pageviews API --

    async def fetch_daily_views(self, title: str, days: int = 30, *, today: date | None = None) -> list[int]:
        """Daily view counts over the trailing *days* window (oldest first)."""
        if days <= 0:
            raise ValueError(f"days must be > 0, got {days}")
        end = today or datetime.now(UTC).date()
        start = end - timedelta(days=days)
        url = (
            f"{self._pageviews_api_url}/en.wikipedia/all-access/all-agents/"
            f"{quote(to_wire_title(title), safe='')}/daily/{start:%Y%m%d}/{end:%Y%m%d}"
        )
        data = await self._get_json(url, None, title)
        items = data.get("items")
        if not items:
            raise LookupServiceError("no pageview items in response", title=title)
        try:
            return [int(item["views"]) for item in items]
        except (KeyError, TypeError, ValueError):
            raise LookupServiceError("malformed pageview items", title=title) from None

    # -- internals --

    async def _action_query(self, title: str, params: dict[str, str]) -> dict[str, Any]:
        query = {"action": "query", "format": "json", "formatversion": "1", **params}
        return await self._get_json(self._action_api_url, query, title)

    async def _get_json(self, url: str, params: dict[str, str] | None, title: str) -> dict[str, Any]:
        try:
            response = await self._client.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as e:
            raise LookupServiceError(f"request failed: {e!r}", title=title) from e
        if response.status_code != 200:
            raise LookupServiceError(
                f"unexpected status {response.status_code}",
                title=title,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise LookupServiceError("response is not valid JSON", title=title) from e
        if not isinstance(data, dict):
            raise LookupServiceError("response JSON is not an object", title=title)
        if "error" in data:
            info = data["error"].get("info", "") if isinstance(data["error"], dict) else data["error"]
            raise LookupServiceError(f"API error: {info}", title=title)
        return data


def _query(data: dict[str, Any], title: str) -> dict[str, Any]:
    query = data.get("query") or {}
    if not isinstance(query, dict):
        raise LookupServiceError("malformed query in response", title=title)
    return query


def _first_page(data: dict[str, Any], title: str) -> dict[str, Any] | None:
    """First entry of ``query.pages``; None for a missing page (id -1)."""
    pages = _query(data, title).get("pages")
    if not pages:
        raise LookupServiceError("pages missing from response", title=title)
    if not isinstance(pages, dict):
        raise LookupServiceError("malformed pages in response", title=title)
    page_id, page = next(iter(pages.items()))
    if not isinstance(page, dict):
        raise LookupServiceError("malformed page in response", title=title)
    if str(page_id) == "-1" or "missing" in page:
        return None
    return page
