# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page classifier — tier, category and popularity for a Wikipedia page.

Three sources, in order of authority:
  1. External  – Wikipedia category tags for the page  (optional, cached)
  2. Corpus    – category declared by the static corpus (e.g. mega hubs → core)
  3. Keywords  – rule table matched against the page name, then the
                 multi-word-name heuristic (→ people)

Tier and popularity come only from corpus membership; pages outside every
corpus are treated as moderately easy rather than penalized.

Category rules form a single declarative registry evaluated in a fixed
priority order; first match wins.  Each rule carries two keyword sets: one
for free-text category tags, one for page names.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field

from . import DEFAULT_POPULARITY, TIER_POPULARITY, Category, PageMetadata, Tier
from .corpus import Corpus
from .errors import LookupServiceError
from .page_names import name_tokens, normalize_page_name
from .ttl_cache import TTLCache
from .wikipedia_client import WikipediaClient

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Rule registry
# ---------------------------------------------------------------------------


def _word_pattern(words: tuple[str, ...]) -> re.Pattern[str] | None:
    if not words:
        return None
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b")


@dataclass(frozen=True, slots=True)
class CategoryRule:
    """A category and the keywords that select it."""

    category: Category
    tag_keywords: tuple[str, ...]  # matched against joined Wikipedia category tags
    name_keywords: tuple[str, ...]  # matched against the normalized page name
    _tag_re: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)
    _name_re: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_tag_re", _word_pattern(self.tag_keywords))
        object.__setattr__(self, "_name_re", _word_pattern(self.name_keywords))

    def matches_tags(self, text: str) -> bool:
        return self._tag_re is not None and self._tag_re.search(text) is not None

    def matches_name(self, text: str) -> bool:
        return self._name_re is not None and self._name_re.search(text) is not None


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        Category.GEOGRAPHY,
        ("countries", "cities", "geography", "continents", "rivers", "mountains", "islands", "capitals"),
        ("country", "city", "state", "river", "mountain", "ocean", "island", "lake", "sea", "desert"),
    ),
    CategoryRule(
        Category.HISTORY,
        ("history", "historical", "wars", "battles", "empires", "dynasties", "revolutions"),
        ("war", "battle", "empire", "dynasty", "revolution", "siege", "treaty", "kingdom"),
    ),
    CategoryRule(
        Category.SCIENCE,
        ("science", "physics", "chemistry", "biology", "mathematics", "scientific"),
        ("physics", "chemistry", "biology", "mathematics", "theorem", "equation", "theory"),
    ),
    CategoryRule(
        Category.PEOPLE,
        ("births", "deaths", "people", "politicians", "artists", "writers", "philosophers"),
        ("king", "queen", "emperor", "pope", "saint", "sir"),
    ),
    CategoryRule(
        Category.CULTURE,
        ("culture", "art", "music", "literature", "religion", "philosophy"),
        ("art", "music", "literature", "philosophy", "religion", "poetry", "dance"),
    ),
    CategoryRule(
        Category.SPACE,
        ("astronomy", "planets", "stars", "galaxies", "space"),
        ("planet", "star", "galaxy", "moon", "sun", "comet", "nebula", "asteroid"),
    ),
    CategoryRule(
        Category.TECHNOLOGY,
        ("technology", "computing", "computers", "software", "internet"),
        ("computer", "internet", "technology", "software", "algorithm", "programming"),
    ),
    CategoryRule(
        Category.NATURE,
        ("animals", "plants", "nature", "wildlife", "ecology"),
        ("animal", "plant", "tree", "flower", "bird", "fish", "insect", "species"),
    ),
    CategoryRule(
        Category.SPORTS,
        ("sports", "athletes", "football", "basketball", "olympics"),
        ("sport", "football", "basketball", "tennis", "olympic", "cricket", "baseball"),
    ),
    CategoryRule(
        Category.FOOD,
        ("food", "cuisine", "dishes", "ingredients", "beverages"),
        ("food", "cuisine", "dish", "bread", "cheese", "wine", "soup"),
    ),
    CategoryRule(
        Category.MEDIA,
        ("films", "movies", "television", "books", "novels", "albums"),
        ("film", "movie", "television", "novel", "album", "series"),
    ),
    CategoryRule(
        Category.LANDMARKS,
        ("buildings", "monuments", "landmarks", "museums", "bridges"),
        ("tower", "bridge", "cathedral", "palace", "temple", "monument", "museum"),
    ),
    CategoryRule(
        Category.MYTHOLOGY,
        ("mythology", "mythological", "deities", "gods"),
        ("mythology", "myth", "god", "goddess", "deity"),
    ),
)


def category_from_tags(tags: list[str], rules: tuple[CategoryRule, ...] = CATEGORY_RULES) -> Category:
    """Map free-text Wikipedia category tags to one Category (first matching rule)."""
    if not tags:
        return Category.UNKNOWN
    text = " ".join(tags).lower()
    for rule in rules:
        if rule.matches_tags(text):
            return rule.category
    return Category.UNKNOWN


def _name_category(page_name: str, rules: tuple[CategoryRule, ...]) -> tuple[Category, str]:
    """Category and its source tag from the page name alone."""
    normalized = normalize_page_name(page_name)
    for rule in rules:
        if rule.matches_name(normalized):
            return rule.category, "keyword"
    if len(name_tokens(normalized)) >= 2:
        return Category.PEOPLE, "heuristic"
    return Category.UNKNOWN, "none"


def category_from_name(page_name: str, rules: tuple[CategoryRule, ...] = CATEGORY_RULES) -> Category:
    """Keyword match on the page name; unmatched multi-word names are people."""
    category, _ = _name_category(page_name, rules)
    return category


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class PageClassifier:
    """Classify pages against a corpus, optionally enriched by Wikipedia categories."""

    def __init__(
        self,
        corpus: Corpus,
        client: WikipediaClient | None = None,
        *,
        category_cache_ttl: float = 3600.0,
        rules: tuple[CategoryRule, ...] = CATEGORY_RULES,
    ) -> None:
        self._corpus = corpus
        self._client = client
        self._rules = rules
        self._tag_cache: TTLCache[list[str]] = TTLCache(category_cache_ttl, name="category_cache")

    async def classify(self, page_name: str, use_external_lookup: bool = True) -> PageMetadata:
        """Classify *page_name*; external lookup failures degrade to static rules."""
        external = Category.UNKNOWN
        if use_external_lookup and self._client is not None:
            external = await self.external_category(page_name)
        return self._resolve(page_name, external)

    def classify_static(self, page_name: str) -> PageMetadata:
        """Corpus + keyword classification only.  Pure: no I/O, no cache."""
        return self._resolve(page_name, Category.UNKNOWN)

    async def classify_pair(
        self, start_page: str, target_page: str, use_external_lookup: bool = True
    ) -> tuple[PageMetadata, PageMetadata]:
        """Classify both ends of a route concurrently."""
        start, target = await asyncio.gather(
            self.classify(start_page, use_external_lookup),
            self.classify(target_page, use_external_lookup),
        )
        return start, target

    async def external_category(self, page_name: str) -> Category:
        """Category derived from Wikipedia tags, or UNKNOWN on any failure."""
        if self._client is None:
            return Category.UNKNOWN
        key = normalize_page_name(page_name)
        if not key:
            return Category.UNKNOWN
        tags = self._tag_cache.get(key)
        if tags is None:
            try:
                tags = await self._client.fetch_categories(page_name)
            except LookupServiceError as e:
                logger.warning("Category lookup failed for %r: %s", page_name, e)
                return Category.UNKNOWN
            self._tag_cache.set(key, tags)
        return category_from_tags(tags, self._rules)

    def clear_cache(self) -> None:
        self._tag_cache.clear()

    # -- internals --

    def _resolve(self, page_name: str, external: Category) -> PageMetadata:
        category, source = self._pick_category(page_name, external)
        tier = self._corpus.tier_of(page_name)
        if tier is None:
            return PageMetadata(tier=Tier.EASY, category=category, popularity=DEFAULT_POPULARITY, category_source=source)
        return PageMetadata(tier=tier, category=category, popularity=TIER_POPULARITY[tier], category_source=source)

    def _pick_category(self, page_name: str, external: Category) -> tuple[Category, str]:
        if external is not Category.UNKNOWN:
            return external, "external"
        declared = self._corpus.category_of(page_name)
        if declared is not None and declared is not Category.UNKNOWN:
            return declared, "corpus"
        return _name_category(page_name, self._rules)
