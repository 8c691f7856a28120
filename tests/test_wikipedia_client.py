# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for WikipediaClient — request shape and failure mapping (MockTransport)."""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from wikirace.errors import LookupServiceError
from wikirace.wikipedia_client import BacklinkPage, WikipediaClient

from tests._helpers import json_response, mock_client


def _pages(page_id: str, page: dict) -> dict:
    return {"batchcomplete": "", "query": {"pages": {page_id: page}}}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class TestFetchCategories:
    async def test_strips_prefix_and_sends_query(self, wikipedia_factory):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response(
                _pages(
                    "5843419",
                    {
                        "pageid": 5843419,
                        "title": "France",
                        "categories": [
                            {"ns": 14, "title": "Category:Countries in Europe"},
                            {"ns": 14, "title": "Category:Member states of the European Union"},
                        ],
                    },
                )
            )

        client = wikipedia_factory(handler)
        tags = await client.fetch_categories("France")
        assert tags == ["Countries in Europe", "Member states of the European Union"]

        params = seen[0].url.params
        assert params["action"] == "query"
        assert params["prop"] == "categories"
        assert params["titles"] == "France"
        assert params["redirects"] == "1"
        assert params["format"] == "json"
        assert "WikiRace" in seen[0].headers["User-Agent"]

    async def test_wire_title(self, wikipedia_factory):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params["titles"])
            return json_response(_pages("1", {"pageid": 1, "title": "Albert Einstein"}))

        client = wikipedia_factory(handler)
        assert await client.fetch_categories(" Albert Einstein ") == []
        assert seen == ["Albert_Einstein"]

    async def test_missing_page_is_empty(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response(_pages("-1", {"title": "Nope", "missing": ""})))
        assert await client.fetch_categories("Nope") == []


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class TestFetchLinks:
    async def test_backlinks_with_continuation(self, wikipedia_factory):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response(
                {
                    "continue": {"blcontinue": "0|123", "continue": "-||"},
                    "query": {"backlinks": [{"pageid": i, "ns": 0, "title": f"P{i}"} for i in range(500)]},
                }
            )

        client = wikipedia_factory(handler)
        page = await client.fetch_backlinks("Physics")
        assert page == BacklinkPage(count=500, has_more=True)
        params = seen[0].url.params
        assert params["list"] == "backlinks"
        assert params["bltitle"] == "Physics"
        assert params["bllimit"] == "500"
        assert params["blnamespace"] == "0"

    async def test_backlinks_complete(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response({"query": {"backlinks": [{"title": "A"}] * 12}}))
        assert await client.fetch_backlinks("Obscure") == BacklinkPage(count=12, has_more=False)

    async def test_backlinks_malformed(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response({"query": {}}))
        with pytest.raises(LookupServiceError):
            await client.fetch_backlinks("X")

    async def test_outgoing_links(self, wikipedia_factory):
        links = [{"ns": 0, "title": f"L{i}"} for i in range(42)]
        client = wikipedia_factory(lambda r: json_response(_pages("9", {"pageid": 9, "title": "X", "links": links})))
        assert await client.fetch_outgoing_links("X") == 42

    async def test_outgoing_links_missing_page(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response(_pages("-1", {"title": "X", "missing": ""})))
        assert await client.fetch_outgoing_links("X") is None


# ---------------------------------------------------------------------------
# Page views
# ---------------------------------------------------------------------------


class TestFetchDailyViews:
    async def test_url_and_values(self, wikipedia_factory):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response({"items": [{"views": 100}, {"views": 250}, {"views": 50}]})

        client = wikipedia_factory(handler)
        views = await client.fetch_daily_views("New York City", 30, today=date(2024, 1, 31))
        assert views == [100, 250, 50]
        path = seen[0].url.path
        assert "/per-article/en.wikipedia/all-access/all-agents/New_York_City/daily/20240101/20240131" in path

    async def test_empty_items_is_error(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response({"items": []}))
        with pytest.raises(LookupServiceError):
            await client.fetch_daily_views("X")

    async def test_rejects_non_positive_days(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response({"items": [{"views": 1}]}))
        with pytest.raises(ValueError):
            await client.fetch_daily_views("X", 0)


# ---------------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_http_status(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(LookupServiceError) as exc_info:
            await client.fetch_categories("France")
        assert exc_info.value.status_code == 503
        assert exc_info.value.title == "France"

    async def test_transport_error(self, wikipedia_factory):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = wikipedia_factory(handler)
        with pytest.raises(LookupServiceError, match="request failed"):
            await client.fetch_backlinks("France")

    async def test_invalid_json(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(LookupServiceError, match="not valid JSON"):
            await client.fetch_categories("France")

    async def test_api_error_payload(self, wikipedia_factory):
        client = wikipedia_factory(
            lambda r: json_response({"error": {"code": "invalidtitle", "info": "Bad title"}})
        )
        with pytest.raises(LookupServiceError, match="Bad title"):
            await client.fetch_categories("<>")

    @pytest.mark.parametrize(
        "payload",
        [
            {"query": ["x"]},
            {"query": {"pages": ["1"]}},
            {"query": {"pages": {"1": "France"}}},
            {"query": {"pages": {"1": {"pageid": 1, "categories": ["Countries"]}}}},
            {"query": {"pages": {"1": {"pageid": 1, "categories": "Countries"}}}},
        ],
    )
    async def test_malformed_category_payload(self, wikipedia_factory, payload):
        client = wikipedia_factory(lambda r: json_response(payload))
        with pytest.raises(LookupServiceError, match="malformed"):
            await client.fetch_categories("France")

    @pytest.mark.parametrize("payload", [{"query": {"backlinks": 7}}, {"query": {"backlinks": {"a": 1}}}, {"query": 3}])
    async def test_malformed_backlinks_payload(self, wikipedia_factory, payload):
        client = wikipedia_factory(lambda r: json_response(payload))
        with pytest.raises(LookupServiceError, match="malformed"):
            await client.fetch_backlinks("France")

    async def test_malformed_links_payload(self, wikipedia_factory):
        client = wikipedia_factory(lambda r: json_response(_pages("9", {"pageid": 9, "links": 42})))
        with pytest.raises(LookupServiceError, match="malformed"):
            await client.fetch_outgoing_links("X")


class TestLifecycle:
    async def test_injected_client_not_closed(self):
        http = mock_client(lambda r: json_response({}))
        async with WikipediaClient(http):
            pass
        assert not http.is_closed
        await http.aclose()

    async def test_owned_client_closed(self):
        client = WikipediaClient()
        await client.close()
        assert client._client.is_closed
