"""
DONTCLOSETHIS — Session

One play-through: which level is showing, how many runs this player has
finished, and when the clock started. A Session is created by
Sequencer.start() and dropped when the run ends in victory or defeat.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Session:
    level_count: int
    current_level: int = 1              # 1-based
    total_attempts: int = 0             # finished runs, seeded from saved progress
    start_time: float = 0.0             # clock seconds at session start
    player_tag: str = "AAA"
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    level_started_at: float = 0.0

    def elapsed_seconds(self, now: float) -> int:
        return max(0, int(now - self.start_time))

    def to_dict(self, now: float) -> dict:
        return {
            "session_id": self.session_id,
            "current_level": self.current_level,
            "level_count": self.level_count,
            "total_attempts": self.total_attempts,
            "elapsed_seconds": self.elapsed_seconds(now),
            "player_tag": self.player_tag,
        }


@dataclass
class SessionOutcome:
    """What on_end listeners receive when a run finishes."""
    kind: str                           # "victory" | "defeat"
    player_tag: str
    level_reached: int
    level_count: int
    attempts: int
    elapsed_seconds: int
    session_id: str
    record: Optional[dict] = None       # the ScoreRecord as stored

    @property
    def victory(self) -> bool:
        return self.kind == "victory"
