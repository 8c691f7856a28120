# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""RaceEngine — the surface a game session or CLI talks to.

Wires every collaborator from one ``EngineConfig``::

    httpx.AsyncClient ─┬─ WikipediaClient ─┬─ PageClassifier ── DifficultyEstimator ─┐
                       │                   └─ ConnectivityOracle ── Connectivity…  ─┤ (one, per config)
                       │                                                            └─ ScoreCalculator
                       └─ GistBackend ─ FallbackBackend ─┐
                                                         └─ LeaderboardStore

``submit_run`` and ``query_top`` are the two operations a game needs; the
rest (classify, estimate_difficulty, score_run, player_context) serve the CLI
and diagnostics.
"""

from __future__ import annotations

import logging
from types import TracebackType

import httpx

from . import GameMode, PageMetadata, RunRecord
from .config import EngineConfig
from .connectivity import ConnectivityDifficulty, ConnectivityOracle
from .corpus import Corpus, load_corpus
from .difficulty import ConnectivityDifficultyEstimator, DifficultyEstimator, DifficultyStrategy
from .leaderboard import DEFAULT_PLAYER_NAME, LeaderboardStore, PlayerContext, ScoreEntry, SubmitResult
from .logging_config import run_context
from .page_classifier import PageClassifier
from .repository import FallbackBackend, GistBackend, InMemoryBackend, JsonFileBackend, LeaderboardBackend
from .repository_sqlite import SqliteBackend
from .scoring import ScoreBreakdown, ScoreCalculator
from .wikipedia_client import WikipediaClient

logger = logging.getLogger(__name__)


async def build_backend(config: EngineConfig, client: httpx.AsyncClient | None = None) -> LeaderboardBackend:
    """Leaderboard backend selected by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryBackend()
    if config.backend == "file":
        return JsonFileBackend(config.leaderboard_path)
    if config.backend == "sqlite":
        return await SqliteBackend.create(config.db_path)
    # gist: remote primary, local JSON file as mirror and stand-in
    gist = GistBackend(config.gist_id, token=config.github_token, client=client, timeout=config.http_timeout)
    return FallbackBackend(gist, JsonFileBackend(config.leaderboard_path))


class RaceEngine:
    """Scoring, difficulty and leaderboard operations behind one object.

    Build with ``await RaceEngine.from_config(config)``; release with
    ``await engine.close()`` or ``async with``.
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        classifier: PageClassifier,
        oracle: ConnectivityOracle,
        estimator: DifficultyStrategy,
        calculator: ScoreCalculator,
        store: LeaderboardStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._classifier = classifier
        self._oracle = oracle
        self._estimator = estimator
        self._calculator = calculator
        self._store = store
        self._http_client = http_client  # owned; closed in close()
        self._closed = False

    @classmethod
    async def from_config(
        cls,
        config: EngineConfig | None = None,
        *,
        corpus: Corpus | None = None,
        backend: LeaderboardBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> RaceEngine:
        """Assemble an engine.  Injected collaborators are used as-is and not closed."""
        config = config or EngineConfig.from_env()
        owned_client: httpx.AsyncClient | None = None
        if http_client is None:
            owned_client = httpx.AsyncClient(
                timeout=config.http_timeout,
                follow_redirects=True,
                headers={"User-Agent": config.user_agent},
            )
            http_client = owned_client

        try:
            corpus = corpus if corpus is not None else load_corpus(config.corpus_path)
            wikipedia = WikipediaClient(http_client, timeout=config.http_timeout, user_agent=config.user_agent)
            classifier = PageClassifier(corpus, wikipedia, category_cache_ttl=config.category_cache_ttl)
            oracle = ConnectivityOracle(wikipedia, ttl=config.metrics_cache_ttl)
            estimator: DifficultyStrategy
            if config.difficulty_strategy == "connectivity":
                estimator = ConnectivityDifficultyEstimator(oracle)
            else:
                estimator = DifficultyEstimator(classifier)
            calculator = ScoreCalculator(estimator)
            if backend is None:
                backend = await build_backend(config, http_client)
        except BaseException:
            if owned_client is not None:
                await owned_client.aclose()
            raise

        store = LeaderboardStore(
            backend,
            calculator,
            cap=config.leaderboard_cap,
            cache_ttl=config.leaderboard_cache_ttl,
            min_submit_interval=config.min_submit_interval,
        )
        logger.debug(
            "Engine ready: strategy=%s backend=%s external_lookup=%s",
            config.difficulty_strategy,
            config.backend,
            config.use_external_lookup,
        )
        return cls(
            config,
            classifier=classifier,
            oracle=oracle,
            estimator=estimator,
            calculator=calculator,
            store=store,
            http_client=owned_client,
        )

    async def __aenter__(self) -> RaceEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- game surface --

    async def submit_run(self, run: RunRecord, player_name: str | None = DEFAULT_PLAYER_NAME) -> SubmitResult:
        """Score *run* and insert it into the leaderboard."""
        with run_context(start_page=run.start_page, target_page=run.target_page, mode=str(run.mode)):
            return await self._store.submit(run, player_name, self._config.use_external_lookup)

    async def query_top(self, mode: GameMode | str = GameMode.NORMAL, limit: int = 10) -> list[ScoreEntry]:
        return await self._store.top_scores(limit, mode)

    # -- diagnostics --

    async def classify(self, page_name: str, use_external_lookup: bool | None = None) -> PageMetadata:
        return await self._classifier.classify(page_name, self._lookup(use_external_lookup))

    async def estimate_difficulty(
        self, start_page: str, target_page: str, use_external_lookup: bool | None = None
    ) -> float:
        return await self._estimator.estimate(start_page, target_page, self._lookup(use_external_lookup))

    async def connectivity(self, start_page: str, target_page: str) -> ConnectivityDifficulty:
        """Connectivity difficulty with its metrics, regardless of the configured strategy."""
        return await self._oracle.difficulty(start_page, target_page)

    async def score_run(self, run: RunRecord, use_external_lookup: bool | None = None) -> ScoreBreakdown:
        """Score without touching the leaderboard."""
        return await self._calculator.evaluate(run, self._lookup(use_external_lookup))

    async def player_context(
        self, player_name: str, limit: int = 5, mode: GameMode | str | None = None
    ) -> PlayerContext | None:
        return await self._store.player_context(player_name, limit, mode)

    def clear_caches(self) -> None:
        self._classifier.clear_cache()
        self._oracle.clear_cache()
        self._store.clear_cache()

    async def close(self) -> None:
        """Release the backend and the HTTP client (idempotent)."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._store.backend.close()
        finally:
            if self._http_client is not None:
                await self._http_client.aclose()

    # -- accessors --

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> LeaderboardStore:
        return self._store

    @property
    def estimator(self) -> DifficultyStrategy:
        return self._estimator

    def _lookup(self, override: bool | None) -> bool:
        return self._config.use_external_lookup if override is None else override
