# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Connectivity oracle — link/traffic metrics as a difficulty signal.

Backlink count is a proxy for "how many paths lead to the target"; page views
only fine-tune.  A heavily viewed but poorly linked page (breaking news,
viral topics) therefore rates *harder*, not easier.

Every metric has a conservative default so difficulty never fails outright:
  backlinks  → 100 (estimated 100, no continuation)
  page views → total 10000, average 333
  out-links  → 50

Successful fetches are memoized for ``ttl`` seconds (1 hour default);
failures are not cached so the next call retries.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from .errors import LookupServiceError
from .page_names import normalize_page_name
from .ttl_cache import TTLCache
from .wikipedia_client import WikipediaClient

logger = logging.getLogger(__name__)

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 4.0

DEFAULT_VIEW_DAYS = 30


@dataclass(frozen=True, slots=True)
class BacklinkStats:
    count: int
    estimated_total: int
    has_more: bool


@dataclass(frozen=True, slots=True)
class PageViews:
    total: int
    average: int


DEFAULT_BACKLINKS = BacklinkStats(count=100, estimated_total=100, has_more=False)
DEFAULT_PAGE_VIEWS = PageViews(total=10000, average=333)
DEFAULT_OUTGOING_LINKS = 50


@dataclass(frozen=True, slots=True)
class ConnectivityMetrics:
    target_views: int
    target_backlinks: int
    start_backlinks: int  # recorded, not part of the formula
    backlink_difficulty: float
    popularity_modifier: float


@dataclass(frozen=True, slots=True)
class ConnectivityDifficulty:
    """Difficulty in [1.0, 4.0] plus the metrics it was derived from."""

    value: float
    metrics: ConnectivityMetrics


@dataclass(frozen=True, slots=True)
class PageConnectivity:
    """Per-page summary produced by ``batch_connectivity``."""

    page: str
    views: int
    backlinks: int
    ease: float = field(default=0.0)


# ---------------------------------------------------------------------------
# Pure scoring curves
# ---------------------------------------------------------------------------


def backlink_difficulty(estimated_total: int) -> float:
    """Five-bucket piecewise-linear scale; fewer backlinks ⇒ higher difficulty."""
    n = max(estimated_total, 0)
    if n >= 5000:
        return 1.0
    if n >= 1000:
        return 1.0 + (5000 - n) / 4000 * 0.5
    if n >= 100:
        return 1.5 + (1000 - n) / 900 * 1.0
    if n >= 10:
        return 2.5 + (100 - n) / 90 * 1.0
    return 3.5 + (10 - n) / 10 * 0.5


def views_modifier(average_daily_views: int) -> float:
    """Four-step adjustment from average daily views."""
    if average_daily_views >= 10000:
        return 0.0
    if average_daily_views >= 1000:
        return 0.2
    if average_daily_views >= 100:
        return 0.4
    return 0.6


def connectivity_difficulty(backlinks: int, average_views: int) -> float:
    raw = backlink_difficulty(backlinks) + views_modifier(average_views)
    return round(max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, raw)), 2)


def ease_score(views: int, backlinks: int) -> float:
    """Log-scale reachability used to rank candidate pages (higher = easier)."""
    return math.log10(max(views, 0) + 10) + math.log10(max(backlinks, 0) + 10)


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------


class ConnectivityOracle:
    """Cached backlink / view / out-link metrics with never-failing defaults."""

    def __init__(self, client: WikipediaClient, *, ttl: float = 3600.0) -> None:
        self._client = client
        self._cache: TTLCache[object] = TTLCache(ttl, name="connectivity_cache")

    async def backlink_count(self, page_name: str) -> BacklinkStats:
        key = f"backlinks:{normalize_page_name(page_name)}"
        cached = self._cache.get(key)
        if isinstance(cached, BacklinkStats):
            return cached
        try:
            page = await self._client.fetch_backlinks(page_name)
        except LookupServiceError as e:
            logger.warning("Backlink lookup failed for %r, using default: %s", page_name, e)
            return DEFAULT_BACKLINKS
        # A continuation means the first page was truncated; double as a rough estimate.
        result = BacklinkStats(
            count=page.count,
            estimated_total=page.count * 2 if page.has_more else page.count,
            has_more=page.has_more,
        )
        self._cache.set(key, result)
        return result

    async def page_views(self, page_name: str, days: int = DEFAULT_VIEW_DAYS) -> PageViews:
        key = f"views:{normalize_page_name(page_name)}:{days}"
        cached = self._cache.get(key)
        if isinstance(cached, PageViews):
            return cached
        try:
            daily = await self._client.fetch_daily_views(page_name, days)
        except (LookupServiceError, ValueError) as e:
            logger.warning("Pageview lookup failed for %r, using default: %s", page_name, e)
            return DEFAULT_PAGE_VIEWS
        total = sum(daily)
        result = PageViews(total=total, average=math.floor(total / len(daily) + 0.5))
        self._cache.set(key, result)
        return result

    async def outgoing_link_count(self, page_name: str) -> int:
        key = f"outlinks:{normalize_page_name(page_name)}"
        cached = self._cache.get(key)
        if isinstance(cached, int):
            return cached
        try:
            count = await self._client.fetch_outgoing_links(page_name)
        except LookupServiceError as e:
            logger.warning("Outgoing-link lookup failed for %r, using default: %s", page_name, e)
            return DEFAULT_OUTGOING_LINKS
        if count is None:
            return 0  # missing page; not cached
        self._cache.set(key, count)
        return count

    async def difficulty(self, start_page: str, target_page: str) -> ConnectivityDifficulty:
        """Route difficulty in [1.0, 4.0] driven by the target's connectivity."""
        target_views, target_backlinks, start_backlinks = await asyncio.gather(
            self.page_views(target_page),
            self.backlink_count(target_page),
            self.backlink_count(start_page),
        )
        link_part = backlink_difficulty(target_backlinks.estimated_total)
        view_part = views_modifier(target_views.average)
        value = round(max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, link_part + view_part)), 2)
        logger.debug(
            "Connectivity difficulty %s -> %s: backlinks=%d views=%d value=%.2f",
            start_page,
            target_page,
            target_backlinks.estimated_total,
            target_views.average,
            value,
        )
        return ConnectivityDifficulty(
            value=value,
            metrics=ConnectivityMetrics(
                target_views=target_views.average,
                target_backlinks=target_backlinks.estimated_total,
                start_backlinks=start_backlinks.estimated_total,
                backlink_difficulty=round(link_part, 2),
                popularity_modifier=view_part,
            ),
        )

    async def batch_connectivity(
        self,
        page_names: Sequence[str],
        *,
        batch_size: int = 5,
        pause: float = 0.2,
    ) -> list[PageConnectivity]:
        """Views/backlinks/ease for many pages, a few at a time to stay polite."""
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        results: list[PageConnectivity] = []
        for i in range(0, len(page_names), batch_size):
            batch = page_names[i : i + batch_size]
            results.extend(await asyncio.gather(*(self._summarize(name) for name in batch)))
            if pause > 0 and i + batch_size < len(page_names):
                await asyncio.sleep(pause)
        return results

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache(self) -> TTLCache[object]:
        return self._cache

    async def _summarize(self, page_name: str) -> PageConnectivity:
        views, backlinks = await asyncio.gather(self.page_views(page_name), self.backlink_count(page_name))
        return PageConnectivity(
            page=page_name,
            views=views.average,
            backlinks=backlinks.estimated_total,
            ease=ease_score(views.average, backlinks.estimated_total),
        )
