# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Static page corpora — the tier ground truth for classification.

Corpora are an injected capability (``Corpus`` protocol) rather than compiled-in
constants, so the classifier can be tested with a handful of pages and
deployments can swap in the full lists.  ``load_corpus()`` reads the YAML
layout::

    mega:
      core: [United_States, World_War_II]
    easy:
      geography: [France, Germany]
      unknown: [Some_Page]        # member of the tier without a declared category

Dependencies: __init__.py (Tier, Category), page_names.py.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from importlib import resources
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml

from . import TIER_PRIORITY, Category, Tier
from .page_names import normalize_page_name

logger = logging.getLogger(__name__)

_BUNDLED_CORPUS = "corpus.yaml"


@runtime_checkable
class Corpus(Protocol):
    """Tier membership lookup over normalized page names."""

    def contains(self, tier: Tier, page_name: str) -> bool: ...

    def tier_of(self, page_name: str) -> Tier | None: ...

    def category_of(self, page_name: str) -> Category | None: ...


class StaticCorpus:
    """In-memory corpus built from ``{tier: {page: category | None}}``.

    Page names are normalized on construction; lookups normalize too, so
    ``United_States``, ``united states`` and ``UNITED_STATES`` all match.
    """

    def __init__(self, tiers: Mapping[Tier, Mapping[str, Category | None]] | None = None) -> None:
        self._tiers: dict[Tier, dict[str, Category | None]] = {tier: {} for tier in TIER_PRIORITY}
        for tier, pages in (tiers or {}).items():
            bucket = self._tiers[Tier(tier)]
            for page, category in pages.items():
                key = normalize_page_name(page)
                if key:
                    bucket[key] = None if category in (None, Category.UNKNOWN) else Category(category)

    @classmethod
    def from_lists(
        cls,
        *,
        mega: Iterable[str] = (),
        easy: Iterable[str] = (),
        hard: Iterable[str] = (),
        expert: Iterable[str] = (),
        mega_category: Category | None = Category.CORE,
    ) -> StaticCorpus:
        """Build from plain page lists (mega hubs default to the ``core`` category)."""
        return cls(
            {
                Tier.MEGA: dict.fromkeys(mega, mega_category),
                Tier.EASY: dict.fromkeys(easy),
                Tier.HARD: dict.fromkeys(hard),
                Tier.EXPERT: dict.fromkeys(expert),
            }
        )

    def contains(self, tier: Tier, page_name: str) -> bool:
        return normalize_page_name(page_name) in self._tiers[tier]

    def tier_of(self, page_name: str) -> Tier | None:
        """First tier (mega, easy, hard, expert) that lists the page."""
        key = normalize_page_name(page_name)
        for tier in TIER_PRIORITY:
            if key in self._tiers[tier]:
                return tier
        return None

    def category_of(self, page_name: str) -> Category | None:
        """Category declared by the winning tier, if any."""
        key = normalize_page_name(page_name)
        for tier in TIER_PRIORITY:
            if key in self._tiers[tier]:
                return self._tiers[tier][key]
        return None

    def pages(self, tier: Tier) -> frozenset[str]:
        return frozenset(self._tiers[tier])

    def size(self, tier: Tier | None = None) -> int:
        if tier is not None:
            return len(self._tiers[tier])
        return sum(len(bucket) for bucket in self._tiers.values())


def parse_corpus(data: object, *, source: str = "<memory>") -> StaticCorpus:
    """Validate the ``{tier: {category: [pages]}}`` structure and build a corpus."""
    if data is None:
        return StaticCorpus()
    if not isinstance(data, dict):
        raise ValueError(f"{source}: corpus root must be a mapping of tiers, got {type(data).__name__}")

    tiers: dict[Tier, dict[str, Category | None]] = {}
    for raw_tier, groups in data.items():
        try:
            tier = Tier(str(raw_tier).lower())
        except ValueError:
            raise ValueError(f"{source}: unknown tier {raw_tier!r}") from None
        if groups is None:
            continue
        if not isinstance(groups, dict):
            raise ValueError(f"{source}: tier {tier.value!r} must map categories to page lists")
        bucket = tiers.setdefault(tier, {})
        for raw_category, pages in groups.items():
            try:
                category = Category(str(raw_category).lower())
            except ValueError:
                raise ValueError(f"{source}: unknown category {raw_category!r} in tier {tier.value!r}") from None
            if not isinstance(pages, list):
                raise ValueError(f"{source}: {tier.value}.{category.value} must be a list of page names")
            for page in pages:
                bucket[str(page)] = category
    return StaticCorpus(tiers)


def load_corpus(path: str | Path | None = None) -> StaticCorpus:
    """Load a YAML corpus from *path*, or the bundled sample corpus when None."""
    if path is None:
        text = resources.files("wikirace.data").joinpath(_BUNDLED_CORPUS).read_text(encoding="utf-8")
        source = f"wikirace.data/{_BUNDLED_CORPUS}"
    else:
        p = Path(path).expanduser()
        text = p.read_text(encoding="utf-8")
        source = str(p)
    corpus = parse_corpus(yaml.safe_load(text), source=source)
    logger.debug(
        "Corpus loaded: source=%s mega=%d easy=%d hard=%d expert=%d",
        source,
        corpus.size(Tier.MEGA),
        corpus.size(Tier.EASY),
        corpus.size(Tier.HARD),
        corpus.size(Tier.EXPERT),
    )
    return corpus
