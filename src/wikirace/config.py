# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Engine configuration: immutable dataclass + ``WIKIRACE_*`` environment overrides.

Leaf module — no wikirace imports.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path

DIFFICULTY_STRATEGIES = frozenset({"tier", "connectivity"})
BACKENDS = frozenset({"memory", "file", "sqlite", "gist"})

DEFAULT_USER_AGENT = "WikiRace/1.0 (https://github.com/wikirace/wikirace; scoring engine)"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Immutable configuration for the scoring engine and leaderboard."""

    use_external_lookup: bool = True
    difficulty_strategy: str = "tier"  # canonical; "connectivity" is opt-in
    leaderboard_cap: int = 100
    leaderboard_cache_ttl: float = 30.0
    metrics_cache_ttl: float = 3600.0  # 1 hour
    category_cache_ttl: float = 3600.0
    min_submit_interval: float = 2.0
    http_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    corpus_path: Path | None = None  # None = bundled sample corpus
    backend: str = "memory"
    leaderboard_path: Path = Path("~/.wikirace/leaderboard.json")
    db_path: Path = Path("~/.wikirace/leaderboard.db")
    gist_id: str = ""
    github_token: str = ""

    def __post_init__(self) -> None:
        if self.difficulty_strategy not in DIFFICULTY_STRATEGIES:
            raise ValueError(
                f"difficulty_strategy must be one of {sorted(DIFFICULTY_STRATEGIES)}, got {self.difficulty_strategy!r}"
            )
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {sorted(BACKENDS)}, got {self.backend!r}")
        if self.leaderboard_cap <= 0:
            raise ValueError(f"leaderboard_cap must be > 0, got {self.leaderboard_cap}")
        if self.leaderboard_cache_ttl < 0:
            raise ValueError(f"leaderboard_cache_ttl must be >= 0, got {self.leaderboard_cache_ttl}")
        if self.metrics_cache_ttl <= 0:
            raise ValueError(f"metrics_cache_ttl must be > 0, got {self.metrics_cache_ttl}")
        if self.category_cache_ttl <= 0:
            raise ValueError(f"category_cache_ttl must be > 0, got {self.category_cache_ttl}")
        if self.min_submit_interval < 0:
            raise ValueError(f"min_submit_interval must be >= 0, got {self.min_submit_interval}")
        if self.http_timeout <= 0:
            raise ValueError(f"http_timeout must be > 0, got {self.http_timeout}")
        if self.backend == "gist" and not self.gist_id:
            raise ValueError("backend 'gist' requires gist_id")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> EngineConfig:
        """Build a config from ``WIKIRACE_<FIELD>`` variables; explicit overrides win."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(f"WIKIRACE_{f.name.upper()}", "").strip()
            if not raw:
                continue
            values[f.name] = _coerce(f.name, raw)
        values.update(overrides)
        return cls(**values)


_BOOL_FIELDS = frozenset({"use_external_lookup"})
_INT_FIELDS = frozenset({"leaderboard_cap"})
_FLOAT_FIELDS = frozenset(
    {"leaderboard_cache_ttl", "metrics_cache_ttl", "category_cache_ttl", "min_submit_interval", "http_timeout"}
)
_PATH_FIELDS = frozenset({"corpus_path", "leaderboard_path", "db_path"})


def _coerce(name: str, raw: str) -> object:
    if name in _BOOL_FIELDS:
        return raw.lower() in ("1", "true", "yes", "on")
    if name in _INT_FIELDS:
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"WIKIRACE_{name.upper()} must be an integer, got {raw!r}") from None
    if name in _FLOAT_FIELDS:
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"WIKIRACE_{name.upper()} must be a number, got {raw!r}") from None
    if name in _PATH_FIELDS:
        return Path(raw)
    return raw.lower() if name in ("difficulty_strategy", "backend") else raw
