# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared helpers for wikirace tests: fake clock, canned HTTP responses, entry builders."""

from __future__ import annotations

from collections.abc import Callable

import httpx

from wikirace import GameMode
from wikirace.leaderboard import ScoreEntry

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedDifficulty:
    """Difficulty strategy stub returning a constant and recording calls."""

    def __init__(self, value: float = 1.0) -> None:
        self.value = value
        self.calls: list[tuple[str, str, bool]] = []

    async def estimate(self, start_page: str, target_page: str, use_external_lookup: bool = True) -> float:
        self.calls.append((start_page, target_page, use_external_lookup))
        return self.value


def json_response(payload: object, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_entry(score: int, *, mode: GameMode = GameMode.NORMAL, player: str = "Player", **overrides) -> ScoreEntry:
    defaults = {
        "player_name": player,
        "start_page": "France",
        "target_page": "Germany",
        "clicks": 5,
        "time": 75,
        "score": score,
        "difficulty": 1.0,
        "mode": mode,
        "timestamp": 1_700_000_000_000,
    }
    defaults.update(overrides)
    return ScoreEntry(**defaults)
