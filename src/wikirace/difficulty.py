# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Route difficulty — one bounded multiplier per (start, target) pair.

Tier strategy (canonical), range [0.7, 3.0]::

    clamp(tier_difficulty × category_relationship × popularity_modifier, 0.7, 3.0)

Connectivity strategy (opt-in), range [1.0, 4.0]: delegates to
``ConnectivityOracle.difficulty``.  The two strategies are alternatives and
are never averaged.

Each modifier is a pure function of the two ``PageMetadata`` values, so the
tier estimate is deterministic for a given classifier output.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from . import Category, PageMetadata, Tier
from .connectivity import ConnectivityOracle
from .page_classifier import PageClassifier

logger = logging.getLogger(__name__)

MIN_TIER_DIFFICULTY = 0.7
MAX_TIER_DIFFICULTY = 3.0

# (upper bound on mean tier ordinal, base difficulty); ≤2.5 and ≤3.0 both map to 2.0.
_TIER_STEPS: tuple[tuple[float, float], ...] = (
    (0.5, 0.7),
    (1.0, 0.9),
    (1.5, 1.2),
    (2.0, 1.5),
    (2.5, 2.0),
    (3.0, 2.0),
    (3.5, 2.4),
)
_TIER_STEP_CEILING = 2.8

SAME_CATEGORY = 0.85
SHARED_CLUSTER = 0.95
CORE_CATEGORY = 0.90
UNKNOWN_CATEGORY = 1.10
UNRELATED_CATEGORY = 1.05

CATEGORY_CLUSTERS: tuple[frozenset[Category], ...] = (
    frozenset({Category.GEOGRAPHY, Category.HISTORY, Category.PEOPLE}),
    frozenset({Category.SCIENCE, Category.SPACE, Category.PEOPLE}),
    frozenset({Category.SCIENCE, Category.TECHNOLOGY, Category.NATURE}),
    frozenset({Category.CULTURE, Category.MEDIA, Category.PHILOSOPHY, Category.MYTHOLOGY}),
    frozenset({Category.SPORTS, Category.PEOPLE, Category.CULTURE}),
)

# (minimum mean popularity, modifier), checked top-down.
_POPULARITY_STEPS: tuple[tuple[float, float], ...] = (
    (75, 0.90),
    (50, 0.95),
    (40, 1.00),
    (25, 1.08),
)
_POPULARITY_FLOOR_MODIFIER = 1.15


def tier_difficulty(start: Tier, target: Tier) -> float:
    mean = (start.ordinal + target.ordinal) / 2
    for bound, value in _TIER_STEPS:
        if mean <= bound:
            return value
    return _TIER_STEP_CEILING


def category_relationship(start: Category, target: Category) -> float:
    """Closer categories make the route easier (smaller modifier)."""
    if start is target:
        return SAME_CATEGORY
    if any(start in cluster and target in cluster for cluster in CATEGORY_CLUSTERS):
        return SHARED_CLUSTER
    if Category.CORE in (start, target):
        return CORE_CATEGORY
    if Category.UNKNOWN in (start, target):
        return UNKNOWN_CATEGORY
    return UNRELATED_CATEGORY


def popularity_modifier(start_popularity: int, target_popularity: int) -> float:
    mean = (start_popularity + target_popularity) / 2
    for threshold, value in _POPULARITY_STEPS:
        if mean >= threshold:
            return value
    return _POPULARITY_FLOOR_MODIFIER


def combine(start: PageMetadata, target: PageMetadata) -> float:
    """Tier-strategy difficulty from two classifications (pure)."""
    raw = (
        tier_difficulty(start.tier, target.tier)
        * category_relationship(start.category, target.category)
        * popularity_modifier(start.popularity, target.popularity)
    )
    return max(MIN_TIER_DIFFICULTY, min(MAX_TIER_DIFFICULTY, raw))


@runtime_checkable
class DifficultyStrategy(Protocol):
    """Anything that turns a page pair into a difficulty multiplier."""

    async def estimate(self, start_page: str, target_page: str, use_external_lookup: bool = True) -> float: ...


class DifficultyEstimator:
    """Tier / category / popularity difficulty backed by a ``PageClassifier``."""

    def __init__(self, classifier: PageClassifier) -> None:
        self._classifier = classifier

    async def estimate(self, start_page: str, target_page: str, use_external_lookup: bool = True) -> float:
        start, target = await self._classifier.classify_pair(start_page, target_page, use_external_lookup)
        value = combine(start, target)
        logger.debug(
            "Tier difficulty %s (%s/%s) -> %s (%s/%s) = %.3f",
            start_page,
            start.tier,
            start.category,
            target_page,
            target.tier,
            target.category,
            value,
        )
        return value

    @property
    def classifier(self) -> PageClassifier:
        return self._classifier


class ConnectivityDifficultyEstimator:
    """Adapts ``ConnectivityOracle`` to the ``estimate()`` signature (range 1.0-4.0).

    ``use_external_lookup`` is accepted for signature compatibility; the
    oracle always consults the metrics service and falls back to defaults.
    """

    def __init__(self, oracle: ConnectivityOracle) -> None:
        self._oracle = oracle

    async def estimate(self, start_page: str, target_page: str, use_external_lookup: bool = True) -> float:
        result = await self._oracle.difficulty(start_page, target_page)
        return result.value

    @property
    def oracle(self) -> ConnectivityOracle:
        return self._oracle
