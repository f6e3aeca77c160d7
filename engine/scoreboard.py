"""
DONTCLOSETHIS — Local Scoreboard

Authoritative local record of finished runs, the saved progress, and the
one-shot messages the landing screen shows after a run (game over, victory
time, top-ten). Everything lives in a KeyValueStore under the keys in
GameConfig.

The score list is append-only. A player's best run is worked out at read time:
higher level wins, then the lower time. Runs with no recorded time sort last.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from config.settings import GameConfig
from config.score_schema import Progress, ScoreRecord
from engine.errors import InvalidPlayerTag
from engine.storage import KeyValueStore

logger = logging.getLogger("dontclosethis.scoreboard")

MISSING_TIME = 999999


def validate_player_tag(raw) -> str:
    """Trim and uppercase a player tag. Raises InvalidPlayerTag."""
    if not isinstance(raw, str) or len(raw.strip()) < GameConfig.MIN_NAME_LENGTH:
        raise InvalidPlayerTag("Please enter your name")
    trimmed = raw.strip()
    if len(trimmed) > GameConfig.MAX_NAME_LENGTH:
        raise InvalidPlayerTag(f"Name must be {GameConfig.MAX_NAME_LENGTH} characters or less")
    return trimmed.upper()


def _sort_time(record: ScoreRecord) -> int:
    return MISSING_TIME if record.elapsed_seconds is None else record.elapsed_seconds


def is_score_better(new: ScoreRecord, old: ScoreRecord) -> bool:
    if new.level_reached != old.level_reached:
        return new.level_reached > old.level_reached
    return _sort_time(new) < _sort_time(old)


class Scoreboard:
    """Reads and writes scores, progress and landing flags in a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ── Player ────────────────────────────────────────────────

    def player_tag(self) -> str:
        raw = self.store.get(GameConfig.PLAYER_KEY)
        if not raw:
            return GameConfig.DEFAULT_INITIALS
        try:
            return validate_player_tag(raw)
        except InvalidPlayerTag as e:
            logger.warning(f"Stored player tag {raw!r} is invalid ({e}), using default")
            return GameConfig.DEFAULT_INITIALS

    def set_player_tag(self, raw: str) -> str:
        tag = validate_player_tag(raw)
        self.store.set(GameConfig.PLAYER_KEY, tag)
        return tag

    # ── Scores ────────────────────────────────────────────────

    def records(self) -> list[ScoreRecord]:
        raw = self.store.get_json(GameConfig.SCORES_KEY, [])
        if not isinstance(raw, list):
            logger.warning(f"{GameConfig.SCORES_KEY} is not a list, ignoring it")
            return []
        records = []
        for item in raw:
            try:
                records.append(ScoreRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed score entry {item!r}: {e.error_count()} error(s)")
        return records

    def append(self, record: ScoreRecord) -> dict:
        raw = self.store.get_json(GameConfig.SCORES_KEY, [])
        if not isinstance(raw, list):
            raw = []
        stored = record.model_dump(by_alias=True)
        raw.append(stored)
        self.store.set_json(GameConfig.SCORES_KEY, raw)
        return stored

    def best_by_player(self) -> dict[str, ScoreRecord]:
        best: dict[str, ScoreRecord] = {}
        for record in self.records():
            current = best.get(record.player_tag)
            if current is None or is_score_better(record, current):
                best[record.player_tag] = record
        return best

    def top(self, limit: int = GameConfig.MAX_DISPLAY) -> list[ScoreRecord]:
        ranked = sorted(self.best_by_player().values(),
                        key=lambda r: (-r.level_reached, _sort_time(r)))
        return ranked[:limit]

    def clear_scores(self):
        self.store.delete(GameConfig.SCORES_KEY)

    # ── Progress ──────────────────────────────────────────────

    def progress(self) -> Progress:
        raw = self.store.get_json(GameConfig.STORAGE_KEY, {})
        try:
            return Progress.model_validate(raw if isinstance(raw, dict) else {})
        except ValidationError:
            logger.warning(f"Malformed progress {raw!r}, starting fresh")
            return Progress()

    def save_progress(self, attempts: int, level: int) -> Progress:
        saved = self.progress()
        progress = Progress(attempts=attempts, highest_level=max(level, saved.highest_level))
        self.store.set_json(GameConfig.STORAGE_KEY, progress.model_dump(by_alias=True))
        return progress

    def clear_progress(self):
        self.store.delete(GameConfig.STORAGE_KEY)

    # ── Landing messages ──────────────────────────────────────

    def mark_death(self):
        self.store.set_flag(GameConfig.JUST_DIED_KEY, True)

    def mark_victory(self, elapsed_seconds: int, total_levels: int):
        self.store.set_flag(GameConfig.HAS_WON_KEY, True)
        self.store.set(GameConfig.VICTORY_TIME_KEY, elapsed_seconds)
        self.store.set(GameConfig.TOTAL_LEVELS_KEY, total_levels)

    def mark_remote_result(self, is_top_ten: bool, rank: Optional[int]):
        if is_top_ten:
            self.store.set_flag(GameConfig.TOP_TEN_KEY, True)
        if rank is not None:
            self.store.set(GameConfig.GLOBAL_RANK_KEY, rank)

    def take_landing_messages(self) -> list[str]:
        """Messages for the landing screen. Each is shown once."""
        messages = []
        if self.store.get_flag(GameConfig.JUST_DIED_KEY):
            messages.append("Your tab closed. Game over.")
            self.store.set_flag(GameConfig.JUST_DIED_KEY, False)
        if self.store.get_flag(GameConfig.HAS_WON_KEY):
            elapsed = self.store.get(GameConfig.VICTORY_TIME_KEY) or "?"
            total = self.store.get(GameConfig.TOTAL_LEVELS_KEY) or "?"
            messages.append(f"You beat all {total} levels in {elapsed}s!")
            self.store.set_flag(GameConfig.HAS_WON_KEY, False)
        if self.store.get_flag(GameConfig.TOP_TEN_KEY):
            rank = self.store.get(GameConfig.GLOBAL_RANK_KEY)
            messages.append(f"You made the global top 10 (rank #{rank})!" if rank
                            else "You made the global top 10!")
            self.store.set_flag(GameConfig.TOP_TEN_KEY, False)
        return messages
