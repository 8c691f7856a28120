# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Leaderboard persistence — protocol-based backends.

Defines ``LeaderboardBackend`` (``read`` / ``write`` / ``close``) and the
concrete stores:

  InMemoryBackend   – tests and single-process use
  JsonFileBackend   – ``{"entries": [...]}`` on disk, atomic replace on write
  GistBackend       – ``leaderboard.json`` inside a GitHub Gist (httpx)
  FallbackBackend   – primary with a mirrored secondary (gist → local file)

The aiosqlite store lives in repository_sqlite.py.

Every backend raises ``PersistenceError`` for I/O or transport failures.
Unparseable stored data is not a failure: it reads as an empty collection.

Dependencies: leaderboard.py (ScoreEntry, parse/dump helpers), errors.py.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from .errors import PersistenceError
from .leaderboard import ScoreEntry, dump_entries, parse_entries

logger = logging.getLogger(__name__)

GIST_API_URL = "https://api.github.com/gists"
GIST_FILENAME = "leaderboard.json"
_GITHUB_ACCEPT = "application/vnd.github.v3+json"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class LeaderboardBackend(Protocol):
    """Interface for leaderboard storage — memory, file, gist, or SQLite."""

    async def read(self) -> list[ScoreEntry]: ...

    async def write(self, entries: Sequence[ScoreEntry]) -> None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryBackend:
    """In-memory leaderboard.  Suitable for tests and throwaway sessions."""

    def __init__(self, entries: Sequence[ScoreEntry] = ()) -> None:
        self._entries: list[ScoreEntry] = list(entries)
        self.writes = 0

    async def read(self) -> list[ScoreEntry]:
        return list(self._entries)

    async def write(self, entries: Sequence[ScoreEntry]) -> None:
        self._entries = list(entries)
        self.writes += 1

    async def close(self) -> None:
        """No-op for in-memory backend."""

    @property
    def entries(self) -> list[ScoreEntry]:
        """Read-only access to stored entries (testing/debugging)."""
        return list(self._entries)


# ---------------------------------------------------------------------------
# JSON file implementation
# ---------------------------------------------------------------------------


class JsonFileBackend:
    """``{"entries": [...]}`` JSON document on local disk.

    Missing file reads as empty; a corrupt file is logged and reads as empty.
    Writes go to a temp file in the same directory and are swapped in with
    ``os.replace`` so a crash never leaves a half-written leaderboard.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> list[ScoreEntry]:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, entries: Sequence[ScoreEntry]) -> None:
        payload = json.dumps(dump_entries(entries), ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write_sync, payload)

    async def close(self) -> None:
        """No-op; files are opened per operation."""

    def _read_sync(self) -> list[ScoreEntry]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise PersistenceError(f"cannot read {self._path}: {e}", backend="file") from e
        except UnicodeDecodeError as e:
            logger.warning("Corrupt leaderboard file %s (%s), treating as empty", self._path, e)
            return []
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt leaderboard file %s (%s), treating as empty", self._path, e)
            return []
        return parse_entries(payload, source=str(self._path))

    def _write_sync(self, payload: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".leaderboard-", suffix=".tmp", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"cannot write {self._path}: {e}", backend="file") from e


# ---------------------------------------------------------------------------
# GitHub Gist implementation
# ---------------------------------------------------------------------------


class GistBackend:
    """Leaderboard stored as ``leaderboard.json`` in a GitHub Gist.

    Reads are anonymous; writes need a token with gist scope.  The injected
    ``httpx.AsyncClient`` is not closed by ``close()``.
    """

    def __init__(
        self,
        gist_id: str,
        *,
        token: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        api_url: str = GIST_API_URL,
    ) -> None:
        if not gist_id:
            raise ValueError("gist_id must be non-empty")
        self._url = f"{api_url.rstrip('/')}/{gist_id}"
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def read(self) -> list[ScoreEntry]:
        response = await self._request("GET", headers={"Accept": _GITHUB_ACCEPT})
        try:
            gist = response.json()
        except ValueError as e:
            raise PersistenceError("gist response is not valid JSON", backend="gist") from e
        files = gist.get("files") if isinstance(gist, dict) else None
        if not isinstance(files, dict):
            raise PersistenceError("gist response has no files object", backend="gist")
        file = files.get(GIST_FILENAME)
        if file is None:
            raise PersistenceError(f"{GIST_FILENAME} not found in gist", backend="gist")
        content = file.get("content") if isinstance(file, dict) else None
        if not isinstance(content, str):
            logger.warning("Malformed gist file entry for %s, treating as empty", GIST_FILENAME)
            return []
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt gist leaderboard (%s), treating as empty", e)
            return []
        return parse_entries(payload, source="gist")

    async def write(self, entries: Sequence[ScoreEntry]) -> None:
        if not self._token:
            raise PersistenceError("gist writes need a GitHub token", backend="gist")
        content = json.dumps(dump_entries(entries), ensure_ascii=False, indent=2)
        await self._request(
            "PATCH",
            headers={"Accept": _GITHUB_ACCEPT, "Authorization": f"token {self._token}"},
            json={"files": {GIST_FILENAME: {"content": content}}},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, **kwargs: object) -> httpx.Response:
        try:
            response = await self._client.request(method, self._url, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as e:
            raise PersistenceError(f"gist {method} failed: {e!r}", backend="gist") from e
        if response.status_code >= 400:
            detail = ""
            with suppress(ValueError):
                body = response.json()
                if isinstance(body, dict):
                    detail = str(body.get("message", ""))
            raise PersistenceError(
                f"GitHub API error: {response.status_code}{' - ' + detail if detail else ''}",
                backend="gist",
            )
        return response


# ---------------------------------------------------------------------------
# Primary + mirror
# ---------------------------------------------------------------------------


class FallbackBackend:
    """Read/write *primary*; keep *secondary* as a mirror and stand-in.

    A successful primary read is mirrored into the secondary.  When the
    primary fails, the operation is served by the secondary instead, so the
    player still gets a result.  Only a failure of both raises.
    """

    def __init__(self, primary: LeaderboardBackend, secondary: LeaderboardBackend) -> None:
        self._primary = primary
        self._secondary = secondary

    async def read(self) -> list[ScoreEntry]:
        try:
            entries = await self._primary.read()
        except PersistenceError as e:
            logger.warning("Primary leaderboard read failed, using fallback: %s", e)
            return await self._secondary.read()
        try:
            await self._secondary.write(entries)
        except PersistenceError as e:
            logger.warning("Leaderboard mirror write failed: %s", e)
        return entries

    async def write(self, entries: Sequence[ScoreEntry]) -> None:
        try:
            await self._primary.write(entries)
        except PersistenceError as e:
            logger.warning("Primary leaderboard write failed, saved to fallback only: %s", e)
            await self._secondary.write(entries)
            return
        try:
            await self._secondary.write(entries)
        except PersistenceError as e:
            logger.warning("Leaderboard mirror write failed: %s", e)

    async def close(self) -> None:
        try:
            await self._primary.close()
        finally:
            await self._secondary.close()
