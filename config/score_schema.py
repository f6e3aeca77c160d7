"""
DONTCLOSETHIS — Score & Leaderboard Schema

Pydantic models for everything that crosses a persistence or network
boundary: local score records, the pending-submission queue, and the remote
leaderboard API payloads.

Field names are snake_case in Python; aliases carry the camelCase names used
in local storage and on the wire, so stored JSON from older sessions and the
server's responses load unchanged.

Usage:
    from config.score_schema import ScoreRecord
    record = ScoreRecord(player_tag="AAA", level_reached=5, attempts=2, elapsed_seconds=61)
    record.model_dump(by_alias=True)
    # {"initials": "AAA", "level": 5, "attempts": 2, "timeElapsed": 61, "timestamp": ...}
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ═══════════════════════════════════════════════════════════════
# Local records
# ═══════════════════════════════════════════════════════════════

class ScoreRecord(_Wire):
    """One finished run (victory or defeat). Append-only."""
    player_tag: str = Field(alias="initials", min_length=1, max_length=10)
    level_reached: int = Field(alias="level", ge=0)
    attempts: int = Field(default=0, ge=0)
    elapsed_seconds: Optional[int] = Field(default=None, alias="timeElapsed", ge=0)
    timestamp: int = Field(default_factory=_now_ms)


class Progress(_Wire):
    """Persisted progress under the `dontCloseThis` key."""
    attempts: int = Field(default=0, ge=0)
    highest_level: int = Field(default=0, alias="highestLevel", ge=0)


class RemoteSubmission(_Wire):
    """A score waiting in the retry queue."""
    player_name: str = Field(alias="playerName", min_length=1, max_length=10)
    level: int = Field(ge=1)
    time_elapsed: int = Field(alias="timeElapsed", ge=0)
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    queued_at: int = Field(default_factory=_now_ms, alias="timestamp")


# ═══════════════════════════════════════════════════════════════
# Remote API payloads
# ═══════════════════════════════════════════════════════════════

class SubmitResult(_Wire):
    """Outcome of POST /api/scores as seen by the client.

    offline=True means the request never produced a usable answer (network
    error, 5xx, malformed body, or cooldown) and is worth retrying. A plain
    success=False with `error` is a rejection and is not retried.
    """
    success: bool = False
    rank: Optional[int] = None
    is_top_ten: bool = Field(default=False, alias="isTopTen")
    message: Optional[str] = None
    error: Optional[str] = None
    offline: bool = False
    min_time: Optional[int] = Field(default=None, alias="minTime")


class LeaderboardEntry(_Wire):
    rank: int
    player_name: str = Field(alias="playerName")
    level: int
    time_elapsed: Optional[int] = Field(default=None, alias="timeElapsed")


class LeaderboardStats(_Wire):
    total_players: int = Field(default=0, alias="totalPlayers")
    total_scores: int = Field(default=0, alias="totalScores")


class LeaderboardSnapshot(_Wire):
    """Response of GET /api/scores."""
    global_top: list[LeaderboardEntry] = Field(default_factory=list, alias="globalTop")
    player_rank: Optional[LeaderboardEntry] = Field(default=None, alias="playerRank")
    stats: LeaderboardStats = Field(default_factory=LeaderboardStats)


class AttemptEvent(_Wire):
    """Body of POST /api/attempt."""
    session_id: str = Field(alias="sessionId")
    level: int = Field(ge=1)
    success: bool
    time_spent: int = Field(alias="timeSpent", ge=0)
