# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Score calculation — clicks, time and difficulty into one integer.

    click_efficiency = 1000 / clicks                      (hyperbolic)
    time_bonus       = band(clicks × 15 / seconds)        (0.5 .. 3.0)
    base_score       = round(click_efficiency × difficulty × time_bonus)
    score            = round(base_score × mode_multiplier)

Higher is better.  Rounding is half-up so scores match the browser client
bit-for-bit (``Math.round``), not Python's banker's rounding.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from . import GameMode, RunRecord
from .difficulty import DifficultyStrategy

logger = logging.getLogger(__name__)

CLICK_EFFICIENCY_NUMERATOR = 1000.0
EXPECTED_SECONDS_PER_CLICK = 15
MAX_TIME_BONUS = 3.0
MIN_TIME_BONUS = 0.5


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def click_efficiency(clicks: int) -> float:
    return CLICK_EFFICIENCY_NUMERATOR / max(clicks, 1)


def speed_ratio(clicks: int, time_seconds: int) -> float:
    return (clicks * EXPECTED_SECONDS_PER_CLICK) / max(time_seconds, 1)


def time_bonus(clicks: int, time_seconds: int) -> float:
    """Speed bonus in [0.5, 3.0]; continuous and non-decreasing in speed ratio.

    Bands (ratio = expected / actual):
      ≥ 2.0 → 2.5 .. 3.0 (growth capped at ratio 4.0)
      ≥ 1.5 → 2.0 .. 2.5
      ≥ 1.0 → 1.5 .. 2.0
      ≥ 0.5 → 1.0 .. 1.5
      < 0.5 → max(0.5, 2 × ratio)
    """
    ratio = speed_ratio(clicks, time_seconds)
    if ratio >= 2.0:
        return min(MAX_TIME_BONUS, 2.5 + 0.25 * min(ratio - 2.0, 2.0))
    if ratio >= 1.5:
        return 2.0 + (ratio - 1.5)
    if ratio >= 1.0:
        return 1.5 + (ratio - 1.0)
    if ratio >= 0.5:
        return 1.0 + (ratio - 0.5)
    return max(MIN_TIME_BONUS, ratio * 2.0)


def format_time(seconds: int) -> str:
    """``MM:SS``; minutes are not wrapped into hours."""
    seconds = max(int(seconds), 0)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Every intermediate term of one score computation."""

    click_efficiency: float
    time_bonus: float
    difficulty: float
    base_score: int
    mode_multiplier: float
    score: int


def compose(clicks: int, time_seconds: int, difficulty: float, mode: GameMode) -> ScoreBreakdown:
    """Pure score arithmetic for a known difficulty."""
    efficiency = click_efficiency(clicks)
    bonus = time_bonus(clicks, time_seconds)
    base = round_half_up(efficiency * difficulty * bonus)
    multiplier = mode.multiplier
    return ScoreBreakdown(
        click_efficiency=efficiency,
        time_bonus=bonus,
        difficulty=difficulty,
        base_score=base,
        mode_multiplier=multiplier,
        score=round_half_up(base * multiplier),
    )


class ScoreCalculator:
    """Scores completed runs using an injected difficulty strategy."""

    def __init__(self, estimator: DifficultyStrategy) -> None:
        self._estimator = estimator

    async def score(
        self,
        clicks: int,
        time_seconds: int,
        start_page: str,
        target_page: str,
        mode: GameMode | str = GameMode.NORMAL,
        use_external_lookup: bool = True,
    ) -> int:
        run = RunRecord(
            start_page=start_page,
            target_page=target_page,
            clicks=clicks,
            time_seconds=time_seconds,
            mode=GameMode(mode),
        )
        breakdown = await self.evaluate(run, use_external_lookup)
        return breakdown.score

    async def evaluate(self, run: RunRecord, use_external_lookup: bool = True) -> ScoreBreakdown:
        """Full breakdown; difficulty is computed exactly once per run."""
        difficulty = await self._estimator.estimate(run.start_page, run.target_page, use_external_lookup)
        breakdown = compose(run.clicks, run.time_seconds, difficulty, run.mode)
        logger.debug(
            "Scored run %s -> %s: clicks=%d time=%s difficulty=%.3f bonus=%.3f mode=%s score=%d",
            run.start_page,
            run.target_page,
            run.clicks,
            format_time(run.time_seconds),
            difficulty,
            breakdown.time_bonus,
            run.mode,
            breakdown.score,
        )
        return breakdown
