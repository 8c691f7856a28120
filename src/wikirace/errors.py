# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""WikiRace exception hierarchy.

All WikiRace-specific errors inherit from WikiRaceError, allowing callers
to catch the base class for any failure or specific subclasses for targeted
handling.  Lookup errors never escape the scoring core; persistence errors
surface to callers as structured ``SubmitResult`` failures.
"""

from __future__ import annotations


class WikiRaceError(Exception):
    """Base exception for all WikiRace errors."""


class LookupServiceError(WikiRaceError):
    """Wikipedia category/metrics lookup failed (network, HTTP status, or payload)."""

    def __init__(self, message: str, *, title: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.title = title
        self.status_code = status_code


class PersistenceError(WikiRaceError):
    """Leaderboard backend read or write failure."""

    def __init__(self, message: str, *, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class SubmissionRateError(WikiRaceError):
    """Score submitted before the minimum submit interval elapsed."""

    def __init__(self, message: str, *, retry_after: float = 0.0) -> None:
        super().__init__(message)
        self.retry_after = retry_after
