# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for ConnectivityOracle — backlink/view curves, defaults, caching."""

from __future__ import annotations

import math

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from wikirace.connectivity import (
    DEFAULT_BACKLINKS,
    DEFAULT_OUTGOING_LINKS,
    DEFAULT_PAGE_VIEWS,
    BacklinkStats,
    ConnectivityOracle,
    PageViews,
    backlink_difficulty,
    connectivity_difficulty,
    ease_score,
    views_modifier,
)

from tests._helpers import json_response


class FakeWiki:
    """Routes MediaWiki / pageviews requests to per-title canned metrics."""

    def __init__(self, metrics: dict[str, tuple[int, bool, int]], fail: set[str] | None = None) -> None:
        # title -> (backlink count on first page, has continuation, daily views)
        self.metrics = metrics
        self.fail = fail or set()
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if "pageviews" in request.url.path:
            title = request.url.path.split("/all-agents/")[1].split("/")[0]
            self.calls.append(f"views:{title}")
            if title in self.fail:
                return httpx.Response(404)
            views = self.metrics[title][2]
            return json_response({"items": [{"views": views}] * 30})
        params = request.url.params
        if params.get("list") == "backlinks":
            title = params["bltitle"]
            self.calls.append(f"backlinks:{title}")
            if title in self.fail:
                return httpx.Response(500)
            count, more, _ = self.metrics[title]
            body: dict = {"query": {"backlinks": [{"title": "x"}] * count}}
            if more:
                body["continue"] = {"blcontinue": "0|1"}
            return json_response(body)
        title = params["titles"]
        self.calls.append(f"outlinks:{title}")
        if title in self.fail:
            return httpx.Response(500)
        return json_response({"query": {"pages": {"7": {"pageid": 7, "links": [{"title": "y"}] * 73}}}})


# ---------------------------------------------------------------------------
# Pure curves
# ---------------------------------------------------------------------------


class TestBacklinkDifficulty:
    @pytest.mark.parametrize(
        "backlinks,expected",
        [
            (5000, 1.0),
            (20000, 1.0),
            (3000, 1.25),
            (1000, 1.5),
            (550, 2.0),
            (100, 2.5),
            (55, 3.0),
            (10, 3.5),
            (5, 3.75),
            (0, 4.0),
        ],
    )
    def test_buckets(self, backlinks, expected):
        assert backlink_difficulty(backlinks) == pytest.approx(expected)

    @settings(max_examples=200, deadline=None)
    @given(st.integers(min_value=0, max_value=20000), st.integers(min_value=0, max_value=20000))
    def test_non_increasing(self, a, b):
        lo, hi = sorted((a, b))
        assert backlink_difficulty(lo) >= backlink_difficulty(hi)

    def test_strictly_decreasing_inside_bucket(self):
        assert backlink_difficulty(150) > backlink_difficulty(151)
        assert backlink_difficulty(1200) > backlink_difficulty(4999)


class TestViewsModifier:
    @pytest.mark.parametrize(
        "views,expected",
        [(50000, 0.0), (10000, 0.0), (9999, 0.2), (1000, 0.2), (999, 0.4), (100, 0.4), (99, 0.6), (0, 0.6)],
    )
    def test_steps(self, views, expected):
        assert views_modifier(views) == expected


class TestConnectivityDifficulty:
    @settings(max_examples=200, deadline=None)
    @given(st.integers(min_value=0, max_value=10**7), st.integers(min_value=0, max_value=10**7))
    def test_bounds(self, backlinks, views):
        assert 1.0 <= connectivity_difficulty(backlinks, views) <= 4.0

    def test_backlink_inversion(self):
        well_linked_quiet = connectivity_difficulty(3500, 8000)
        poorly_linked_popular = connectivity_difficulty(20, 50000)
        assert 1.0 <= well_linked_quiet <= 1.5
        assert poorly_linked_popular > 3.0
        assert well_linked_quiet < poorly_linked_popular

    def test_ease_score(self):
        assert ease_score(0, 0) == pytest.approx(2.0)
        assert ease_score(990, 90) == pytest.approx(math.log10(1000) + math.log10(100))


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------


class TestOracleMetrics:
    async def test_backlinks_estimate_doubles_on_continuation(self, wikipedia_factory):
        wiki = FakeWiki({"Paris": (500, True, 20000)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        assert await oracle.backlink_count("Paris") == BacklinkStats(500, 1000, True)

    async def test_backlinks_exact_without_continuation(self, wikipedia_factory):
        wiki = FakeWiki({"Hamlet_(village)": (37, False, 12)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        assert await oracle.backlink_count("Hamlet (village)") == BacklinkStats(37, 37, False)

    async def test_page_views_average(self, wikipedia_factory):
        wiki = FakeWiki({"Mars": (500, True, 4321)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        assert await oracle.page_views("Mars") == PageViews(total=4321 * 30, average=4321)

    async def test_outgoing_links(self, wikipedia_factory):
        wiki = FakeWiki({"Mars": (1, False, 1)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        assert await oracle.outgoing_link_count("Mars") == 73

    async def test_defaults_on_failure(self, wikipedia_factory):
        wiki = FakeWiki({}, fail={"Broken"})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        assert await oracle.backlink_count("Broken") == DEFAULT_BACKLINKS
        assert await oracle.page_views("Broken") == DEFAULT_PAGE_VIEWS
        assert await oracle.outgoing_link_count("Broken") == DEFAULT_OUTGOING_LINKS
        assert DEFAULT_BACKLINKS == BacklinkStats(100, 100, False)
        assert DEFAULT_PAGE_VIEWS == PageViews(10000, 333)

    async def test_transport_error_uses_defaults(self, wikipedia_factory):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        oracle = ConnectivityOracle(wikipedia_factory(handler))
        result = await oracle.difficulty("A", "B")
        # defaults: 100 backlinks -> 2.5, 333 views -> +0.4
        assert result.value == 2.9

    async def test_malformed_payload_uses_defaults(self, wikipedia_factory):
        oracle = ConnectivityOracle(wikipedia_factory(lambda r: json_response({"query": {"backlinks": 7}})))
        assert await oracle.backlink_count("A") == DEFAULT_BACKLINKS
        assert (await oracle.difficulty("A", "B")).value == 2.9


class TestOracleCaching:
    async def test_hits_bypass_network(self, wikipedia_factory):
        wiki = FakeWiki({"Mars": (500, True, 4321)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        await oracle.backlink_count("Mars")
        await oracle.backlink_count("mars")
        await oracle.page_views("Mars")
        await oracle.page_views("Mars")
        assert wiki.calls == ["backlinks:Mars", "views:Mars"]

    async def test_failures_not_cached(self, wikipedia_factory):
        wiki = FakeWiki({}, fail={"Broken"})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        await oracle.backlink_count("Broken")
        await oracle.backlink_count("Broken")
        assert wiki.calls.count("backlinks:Broken") == 2

    async def test_expiry_forces_refetch(self, wikipedia_factory, clock):
        wiki = FakeWiki({"Mars": (500, True, 4321)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki), ttl=3600)
        oracle.cache._clock = clock
        await oracle.backlink_count("Mars")
        clock.advance(3600)
        await oracle.backlink_count("Mars")
        assert wiki.calls.count("backlinks:Mars") == 2

    async def test_clear_cache(self, wikipedia_factory):
        wiki = FakeWiki({"Mars": (500, True, 4321)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        await oracle.backlink_count("Mars")
        oracle.clear_cache()
        await oracle.backlink_count("Mars")
        assert wiki.calls.count("backlinks:Mars") == 2


class TestOracleDifficulty:
    async def test_inversion_with_mock_metrics(self, wikipedia_factory):
        wiki = FakeWiki(
            {
                "Start": (500, True, 10000),
                "Well_Linked": (3500, False, 8000),
                "Viral_Topic": (20, False, 50000),
            }
        )
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        easy = await oracle.difficulty("Start", "Well_Linked")
        hard = await oracle.difficulty("Start", "Viral_Topic")
        assert 1.0 <= easy.value <= 1.5
        assert hard.value > 3.0
        assert easy.metrics.target_backlinks == 3500
        assert easy.metrics.start_backlinks == 1000
        assert hard.metrics.target_views == 50000

    async def test_value_rounded_to_two_places(self, wikipedia_factory):
        wiki = FakeWiki({"S": (1, False, 1), "T": (333, False, 500)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        result = await oracle.difficulty("S", "T")
        assert result.value == round(result.value, 2)
        assert 1.0 <= result.value <= 4.0


class TestBatchConnectivity:
    async def test_batches(self, wikipedia_factory):
        wiki = FakeWiki({f"P{i}": (i * 10, False, i * 100) for i in range(7)})
        oracle = ConnectivityOracle(wikipedia_factory(wiki))
        results = await oracle.batch_connectivity([f"P{i}" for i in range(7)], batch_size=3, pause=0)
        assert [r.page for r in results] == [f"P{i}" for i in range(7)]
        assert results[3].backlinks == 30
        assert results[3].views == 300
        assert results[6].ease > results[1].ease

    async def test_rejects_bad_batch_size(self, wikipedia_factory):
        oracle = ConnectivityOracle(wikipedia_factory(FakeWiki({})))
        with pytest.raises(ValueError):
            await oracle.batch_connectivity(["A"], batch_size=0)
