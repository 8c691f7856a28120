# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Leaderboard — score entries, ranking and the submit pipeline.

``LeaderboardStore.submit`` runs insert → stable sort (descending score) →
rank → truncate → persist.  Rank is the 1-based position of the new entry
among entries of the *same mode*, taken after sorting and before truncation,
so a run that falls off a full board still learns where it would have placed.

Reads go through a short TTL cache (30 s default); submissions always bypass
it.  Persistence failures are returned as ``SubmitResult(success=False)``:
a failed read means nothing is written, a failed write leaves the cache
invalidated so the next fetch re-reads the backend.

Dependencies: scoring.py (ScoreCalculator), repository.py (LeaderboardBackend,
type-only to keep the import graph acyclic).
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from . import GameMode, RunRecord
from .errors import PersistenceError, SubmissionRateError
from .scoring import ScoreBreakdown, ScoreCalculator
from .ttl_cache import TTLCache

if TYPE_CHECKING:
    from .repository import LeaderboardBackend

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_NAME = "Anonymous"
MAX_PLAYER_NAME_LENGTH = 20
DEFAULT_CAP = 100
DEFAULT_CACHE_TTL = 30.0
DEFAULT_MIN_SUBMIT_INTERVAL = 2.0

_CACHE_KEY = "entries"


def _new_entry_id() -> str:
    return uuid.uuid4().hex[:16]


def _now_ms() -> int:
    return int(time.time() * 1000)


def clean_player_name(value: object) -> str:
    """Strip, cap at 20 characters, default to ``Anonymous``."""
    if value is None:
        return DEFAULT_PLAYER_NAME
    name = str(value).strip()[:MAX_PLAYER_NAME_LENGTH].strip()
    return name or DEFAULT_PLAYER_NAME


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


class ScoreEntry(BaseModel):
    """One submitted run.  Immutable; persisted with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel, extra="ignore")

    id: str = Field(default_factory=_new_entry_id)
    player_name: str = DEFAULT_PLAYER_NAME
    start_page: str
    target_page: str
    clicks: int = Field(ge=1)
    time: int = Field(ge=0, description="Elapsed seconds")
    score: int = Field(ge=0)
    difficulty: float
    # Older leaderboards stored the mode as ``gameMode``.
    mode: GameMode = Field(GameMode.NORMAL, validation_alias=AliasChoices("mode", "gameMode"))
    timestamp: int = Field(default_factory=_now_ms, description="Submission time, epoch milliseconds")

    @field_validator("player_name", mode="before")
    @classmethod
    def _clean_name(cls, value: object) -> str:
        return clean_player_name(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _lenient_mode(cls, value: object) -> GameMode:
        return GameMode.parse(None if value is None else str(value))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> str:
        # Legacy ids were numeric millisecond timestamps.
        return str(value) if value not in (None, "") else _new_entry_id()


def parse_entries(payload: object, *, source: str = "leaderboard") -> list[ScoreEntry]:
    """``{"entries": [...]}`` (or a bare list) → entries; invalid items are skipped."""
    if payload is None:
        return []
    if isinstance(payload, dict):
        raw = payload.get("entries", [])
    else:
        raw = payload
    if not isinstance(raw, list):
        logger.warning("%s: malformed leaderboard payload (%s), treating as empty", source, type(raw).__name__)
        return []
    entries: list[ScoreEntry] = []
    for i, item in enumerate(raw):
        try:
            entries.append(ScoreEntry.model_validate(item))
        except ValidationError as e:
            logger.warning("%s: skipping invalid entry #%d: %d error(s)", source, i, e.error_count())
    return entries


def dump_entries(entries: Iterable[ScoreEntry]) -> dict[str, Any]:
    return {"entries": [entry.model_dump(mode="json", by_alias=True) for entry in entries]}


def sort_entries(entries: Iterable[ScoreEntry]) -> list[ScoreEntry]:
    """Descending by score; stable, so ties keep insertion order."""
    return sorted(entries, key=lambda e: e.score, reverse=True)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SubmitResult:
    success: bool
    rank: int | None = None
    entry: ScoreEntry | None = None
    error: str | None = None
    on_board: bool = False  # False when the entry ranked below the cap
    breakdown: ScoreBreakdown | None = None


@dataclass(frozen=True, slots=True)
class RankedEntry:
    rank: int
    entry: ScoreEntry


@dataclass(frozen=True, slots=True)
class PlayerContext:
    """A player's best entry, its rank, and the entries around it."""

    rank: int
    entry: ScoreEntry
    surrounding: list[RankedEntry]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class LeaderboardStore:
    """Mode-partitioned, capped leaderboard over a pluggable backend."""

    def __init__(
        self,
        backend: LeaderboardBackend,
        calculator: ScoreCalculator,
        *,
        cap: int = DEFAULT_CAP,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        min_submit_interval: float = DEFAULT_MIN_SUBMIT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cap <= 0:
            raise ValueError(f"cap must be > 0, got {cap}")
        self._backend = backend
        self._calculator = calculator
        self._cap = cap
        self._min_submit_interval = min_submit_interval
        self._clock = clock
        self._cache: TTLCache[list[ScoreEntry]] | None = (
            TTLCache(cache_ttl, max_entries=1, clock=clock, name="leaderboard_cache") if cache_ttl > 0 else None
        )
        self._lock = asyncio.Lock()
        self._last_submit: float | None = None

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def backend(self) -> LeaderboardBackend:
        return self._backend

    async def fetch(self) -> list[ScoreEntry]:
        """Current collection, served from the TTL cache when fresh.

        Raises:
            PersistenceError: If the backend read fails.
        """
        if self._cache is not None:
            cached = self._cache.get(_CACHE_KEY)
            if cached is not None:
                return list(cached)
        entries = sort_entries(await self._backend.read())
        self._remember(entries)
        return list(entries)

    async def submit(
        self,
        run: RunRecord,
        player_name: str | None = DEFAULT_PLAYER_NAME,
        use_external_lookup: bool = True,
    ) -> SubmitResult:
        """Score *run*, insert it, persist, and report its same-mode rank."""
        async with self._lock:
            now = self._clock()
            if self._last_submit is not None and now - self._last_submit < self._min_submit_interval:
                retry_after = self._min_submit_interval - (now - self._last_submit)
                error = SubmissionRateError("Please wait before submitting another score", retry_after=retry_after)
                logger.info("Submission rejected: retry in %.2fs", retry_after)
                return SubmitResult(success=False, error=str(error))
            self._last_submit = now

            breakdown = await self._calculator.evaluate(run, use_external_lookup)
            entry = ScoreEntry(
                player_name=player_name,
                start_page=run.start_page,
                target_page=run.target_page,
                clicks=run.clicks,
                time=run.time_seconds,
                score=breakdown.score,
                difficulty=breakdown.difficulty,
                mode=run.mode,
            )

            try:
                current = await self._backend.read()
            except PersistenceError as e:
                self.clear_cache()
                logger.warning("Leaderboard read failed, submission not saved: %s", e)
                return SubmitResult(success=False, entry=entry, error=str(e), breakdown=breakdown)

            ordered = sort_entries([*current, entry])
            same_mode = [e for e in ordered if e.mode is entry.mode]
            rank = next(i for i, e in enumerate(same_mode, start=1) if e.id == entry.id)
            kept = ordered[: self._cap]
            on_board = any(e.id == entry.id for e in kept)

            try:
                await self._backend.write(kept)
            except PersistenceError as e:
                self.clear_cache()
                logger.warning("Leaderboard write failed: %s", e)
                return SubmitResult(success=False, entry=entry, error=str(e), breakdown=breakdown)

            self._remember(kept)
            logger.info(
                "Score submitted: player=%s mode=%s score=%d rank=%d on_board=%s",
                entry.player_name,
                entry.mode,
                entry.score,
                rank,
                on_board,
            )
            return SubmitResult(success=True, rank=rank, entry=entry, on_board=on_board, breakdown=breakdown)

    async def top_scores(self, limit: int = 10, mode: GameMode | str = GameMode.NORMAL) -> list[ScoreEntry]:
        """Best *limit* entries for *mode*; ``[]`` if the backend is unreadable."""
        wanted = GameMode.parse(mode)
        try:
            entries = await self.fetch()
        except PersistenceError as e:
            logger.warning("Leaderboard read failed: %s", e)
            return []
        return [e for e in entries if e.mode is wanted][: max(limit, 0)]

    async def player_context(
        self,
        player_name: str,
        limit: int = 5,
        mode: GameMode | str | None = None,
    ) -> PlayerContext | None:
        """Best entry for *player_name* (case-insensitive) with a window of neighbours.

        Ranks are positions within the whole board, or within *mode* when given.
        Returns None when the player has no entry or the board is unreadable.
        """
        try:
            entries = await self.fetch()
        except PersistenceError as e:
            logger.warning("Leaderboard read failed: %s", e)
            return None
        if mode is not None:
            wanted = GameMode.parse(mode)
            entries = [e for e in entries if e.mode is wanted]

        needle = clean_player_name(player_name).lower()
        index = next((i for i, e in enumerate(entries) if e.player_name.lower() == needle), None)
        if index is None:
            return None
        rank = index + 1
        start = max(0, rank - limit // 2 - 1)
        end = min(len(entries), start + limit)
        return PlayerContext(
            rank=rank,
            entry=entries[index],
            surrounding=[RankedEntry(rank=start + i + 1, entry=e) for i, e in enumerate(entries[start:end])],
        )

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def _remember(self, entries: list[ScoreEntry]) -> None:
        if self._cache is not None:
            self._cache.set(_CACHE_KEY, list(entries))
