# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page-name normalization.

Two representations circulate: the wire format used by Wikipedia URLs and the
APIs (``United_States``) and the comparison format used for every lookup and
equality check (``united states``).
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_page_name(name: str) -> str:
    """Comparison format: underscores to spaces, collapsed whitespace, lowercase."""
    return _WHITESPACE_RE.sub(" ", name.replace("_", " ")).strip().lower()


def to_wire_title(name: str) -> str:
    """Wire format for API calls: spaces to underscores, case preserved."""
    return _WHITESPACE_RE.sub(" ", name.replace("_", " ")).strip().replace(" ", "_")


def display_title(name: str) -> str:
    return to_wire_title(name).replace("_", " ")


def name_tokens(name: str) -> list[str]:
    normalized = normalize_page_name(name)
    return normalized.split(" ") if normalized else []
