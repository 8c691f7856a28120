# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""WikiRace: difficulty-aware scoring for Wikipedia link races.

A completed run (start page, target page, clicks, elapsed seconds, game mode)
is turned into a single reproducible score:
- pages are classified into tiers/categories (static corpora + Wikipedia categories)
- the page pair yields a bounded difficulty multiplier
- clicks, time and difficulty combine into an integer score (higher is better)
- scores land on a mode-partitioned leaderboard
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Tier(StrEnum):
    """Ordered page tier: mega < easy < hard < expert."""

    MEGA = "mega"
    EASY = "easy"
    HARD = "hard"
    EXPERT = "expert"

    @property
    def ordinal(self) -> int:
        return _TIER_ORDINALS[self]


_TIER_ORDINALS: dict[Tier, int] = {Tier.MEGA: 0, Tier.EASY: 1, Tier.HARD: 2, Tier.EXPERT: 3}

# Corpus membership is tested in this order; first hit wins.
TIER_PRIORITY: tuple[Tier, ...] = (Tier.MEGA, Tier.EASY, Tier.HARD, Tier.EXPERT)

TIER_POPULARITY: dict[Tier, int] = {
    Tier.MEGA: 100,
    Tier.EASY: 85,
    Tier.HARD: 35,
    Tier.EXPERT: 15,
}

DEFAULT_POPULARITY = 50  # uncatalogued pages


class Category(StrEnum):
    CORE = "core"
    GEOGRAPHY = "geography"
    HISTORY = "history"
    PEOPLE = "people"
    SCIENCE = "science"
    CULTURE = "culture"
    SPACE = "space"
    TECHNOLOGY = "technology"
    NATURE = "nature"
    SPORTS = "sports"
    FOOD = "food"
    MEDIA = "media"
    LANDMARKS = "landmarks"
    MYTHOLOGY = "mythology"
    PHILOSOPHY = "philosophy"
    UNKNOWN = "unknown"


class GameMode(StrEnum):
    NORMAL = "normal"
    HARD = "hard"
    ULTRA = "ultra"

    @property
    def multiplier(self) -> float:
        return MODE_MULTIPLIERS[self]

    @classmethod
    def parse(cls, value: str | None) -> GameMode:
        """Lenient parse for persisted data: missing or unknown modes are ``normal``."""
        if not value:
            return cls.NORMAL
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NORMAL


MODE_MULTIPLIERS: dict[GameMode, float] = {
    GameMode.NORMAL: 1.0,
    GameMode.HARD: 1.5,
    GameMode.ULTRA: 2.0,
}


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Derived classification of a single page."""

    tier: Tier
    category: Category
    popularity: int  # 0-100, higher = more connected
    category_source: str = "none"  # external, corpus, keyword, heuristic, none

    def same_classification(self, other: PageMetadata) -> bool:
        return (self.tier, self.category, self.popularity) == (other.tier, other.category, other.popularity)


@dataclass(frozen=True, slots=True)
class RunRecord:
    """A completed race, alive only for the duration of scoring."""

    start_page: str
    target_page: str
    clicks: int
    time_seconds: int
    mode: GameMode = GameMode.NORMAL

    def __post_init__(self) -> None:
        if self.clicks < 1:
            raise ValueError(f"clicks must be >= 1, got {self.clicks}")
        if self.time_seconds < 0:
            raise ValueError(f"time_seconds must be >= 0, got {self.time_seconds}")
        if not self.start_page.strip() or not self.target_page.strip():
            raise ValueError("start_page and target_page must be non-empty")
        if not isinstance(self.mode, GameMode):
            object.__setattr__(self, "mode", GameMode(self.mode))
