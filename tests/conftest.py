# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import wikirace  # noqa: F401
except ImportError:
    raise ImportError("wikirace is not installed. Run: pip install -e '.[dev]'") from None

import httpx
import pytest

from wikirace import Category, Tier
from wikirace.corpus import StaticCorpus
from wikirace.page_classifier import PageClassifier
from wikirace.wikipedia_client import WikipediaClient

from tests._helpers import FakeClock, Handler, mock_client


@pytest.fixture(autouse=True)
def _block_real_network(monkeypatch):
    """Safety net: an ``httpx.AsyncClient`` without a transport would hit the network.

    Tests must inject ``httpx.MockTransport``; forgetting to do so fails
    loudly instead of calling Wikipedia or GitHub.
    """

    async def _no_network(self, request):
        raise RuntimeError(f"Test tried to reach the network: {request.method} {request.url}")

    monkeypatch.setattr(httpx.AsyncHTTPTransport, "handle_async_request", _no_network)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def corpus() -> StaticCorpus:
    """Small corpus covering every tier."""
    return StaticCorpus(
        {
            Tier.MEGA: {"United_States": Category.CORE, "World_War_II": Category.CORE},
            Tier.EASY: {
                "France": Category.GEOGRAPHY,
                "Germany": Category.GEOGRAPHY,
                "Physics": Category.SCIENCE,
                "Albert_Einstein": Category.PEOPLE,
                "Jazz": Category.CULTURE,
                "Mystery_Page": None,
            },
            Tier.HARD: {"Hypatia": Category.PEOPLE, "Battle_of_Marathon": Category.HISTORY},
            Tier.EXPERT: {"Anaximander": Category.PHILOSOPHY, "Diophantus": Category.PEOPLE},
        }
    )


@pytest.fixture
def offline_classifier(corpus) -> PageClassifier:
    return PageClassifier(corpus)


@pytest.fixture
async def wikipedia_factory():
    """Build ``WikipediaClient`` instances over a MockTransport handler; closes them afterwards."""
    created: list[httpx.AsyncClient] = []

    def _make(handler: Handler) -> WikipediaClient:
        client = mock_client(handler)
        created.append(client)
        return WikipediaClient(client)

    yield _make
    for client in created:
        await client.aclose()
