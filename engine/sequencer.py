"""
DONTCLOSETHIS — Level Sequencer

The state machine that runs a session:

    IDLE ──start()──► LEVEL_ACTIVE(i) ──advance──► LEVEL_ACTIVE(i+1)
                            │                └──(i == last)──► VICTORY
                            └──fail──► DEFEAT

Each level activation gets its own Activation and LevelContext. The advance /
fail callbacks handed to the challenge are bound to that activation: the
first call settles it, anything after that (a second button, a late timer, a
callback from a level that is already gone) is dropped.

Every transition out of a level tears it down in a fixed order: the
challenge's cleanup, then the LevelTimers view is closed, then every
level-owned timer is cancelled. Only then is the next level set up.

Terminal states persist locally first (progress, score record, landing
flags), then notify on_end listeners. Reporter calls always go out on a
later scheduler tick.

Usage:
    seq = Sequencer(store=SqliteStore(GameConfig.STATE_DB_PATH), reporter=reporter)
    seq.on_end(lambda outcome: print(outcome.kind))
    seq.start()
    seq.board.click("BEGIN")
"""

import logging
import random
from typing import Callable, Optional

from config.settings import GameConfig
from config.score_schema import ScoreRecord
from challenges import default_levels
from challenges.base import Activation, Challenge, LevelContext
from engine.board import Board
from engine.errors import InvalidLevelIndex, InvalidPlayerTag, SequencerStateError
from engine.reporter import OutcomeReporter
from engine.scoreboard import Scoreboard, validate_player_tag
from engine.session import Session, SessionOutcome
from engine.storage import KeyValueStore, MemoryStore
from engine.timers import LevelTimers, Scheduler, TimerRegistry

logger = logging.getLogger("dontclosethis.engine")

IDLE = "idle"
LEVEL_ACTIVE = "level_active"
VICTORY = "victory"
DEFEAT = "defeat"


class Sequencer:
    """Runs one session at a time through an ordered list of challenges."""

    def __init__(self, levels: list[Challenge] = None, store: KeyValueStore = None,
                 scheduler: Scheduler = None, reporter: OutcomeReporter = None,
                 rng: random.Random = None, board: Board = None):
        self.levels = list(levels) if levels is not None else default_levels()
        if not self.levels:
            raise ValueError("Sequencer needs at least one level")
        self.store = store if store is not None else MemoryStore()
        self.scheduler = scheduler or Scheduler()
        self.clock = self.scheduler.clock
        self.registry = TimerRegistry()
        self.reporter = reporter
        self.rng = rng or random.Random()
        self.board = board or Board()
        self.scoreboard = Scoreboard(self.store)

        self.state = IDLE
        self.session: Optional[Session] = None
        self.activation: Optional[Activation] = None
        self.outcome: Optional[SessionOutcome] = None
        self.last_submit = None
        self.elapsed_display = 0
        self._timers: Optional[LevelTimers] = None
        self._cleanup = None
        self._listeners: list[Callable[[SessionOutcome], None]] = []

    # ═══════════════════════════════════════════════════════════
    # Introspection
    # ═══════════════════════════════════════════════════════════

    @property
    def level_count(self) -> int:
        return len(self.levels)

    @property
    def current_level(self) -> Optional[int]:
        return self.session.current_level if self.session else None

    @property
    def active(self) -> bool:
        return self.state == LEVEL_ACTIVE

    def current_challenge(self) -> Optional[Challenge]:
        if not self.active:
            return None
        return self.levels[self.session.current_level - 1]

    def elapsed_seconds(self) -> int:
        return self.session.elapsed_seconds(self.clock.now()) if self.session else 0

    def snapshot(self) -> dict:
        """Plain-dict view for front ends."""
        out = {"state": self.state, "level_count": self.level_count}
        if self.session:
            out.update(self.session.to_dict(self.clock.now()))
            challenge = self.current_challenge()
            if challenge:
                out["challenge"] = challenge.get_metadata()
        return out

    def on_end(self, listener: Callable[[SessionOutcome], None]):
        """Register a callable run once per finished session."""
        self._listeners.append(listener)

    def check_level(self, level) -> int:
        if isinstance(level, bool) or not isinstance(level, int) or not 1 <= level <= self.level_count:
            raise InvalidLevelIndex(level, self.level_count)
        return level

    # ═══════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════

    def start(self, initial_level: int = 1, player_tag: str = None) -> Session:
        """Begin a session at `initial_level` (1-based). Out-of-range falls back to 1."""
        if self.active:
            raise SequencerStateError("A session is already running")
        try:
            level = self.check_level(initial_level)
        except InvalidLevelIndex as e:
            logger.warning(f"{e}; starting at level 1")
            level = 1

        tag = self.scoreboard.player_tag()
        if player_tag is not None:
            try:
                tag = validate_player_tag(player_tag)
            except InvalidPlayerTag as e:
                logger.warning(f"{e}; playing as {tag}")

        progress = self.scoreboard.progress()
        self.session = Session(
            level_count=self.level_count,
            current_level=level,
            total_attempts=progress.attempts,
            start_time=self.clock.now(),
            player_tag=tag,
        )
        self.outcome = None
        self.last_submit = None
        self.elapsed_display = 0
        logger.info(f"Session {self.session.session_id[:8]} started at level {level} "
                    f"as {self.session.player_tag} ({progress.attempts} previous attempts)")

        self.registry.register_persistent(self.scheduler.call_every(
            GameConfig.ELAPSED_TICK, self._tick_elapsed, label="session.elapsed"))
        if self.reporter:
            sid = self.session.session_id
            self.scheduler.call_soon(lambda: self.reporter.start_session(sid),
                                     label="reporter.session")
        self._enter(level)
        return self.session

    def _tick_elapsed(self):
        self.elapsed_display = self.elapsed_seconds()

    def _enter(self, level: int):
        session = self.session
        now = self.clock.now()
        session.current_level = level
        session.level_started_at = now

        activation = Activation(level=level, started_at=now)
        timers = LevelTimers(self.scheduler, self.registry)
        self.board.reset(level)
        ctx = LevelContext(
            level=level, board=self.board, timers=timers, rng=self.rng,
            clock=self.clock, activation=activation,
            on_advance=lambda: self._settle(activation, "advance"),
            on_fail=lambda: self._settle(activation, "fail"),
        )
        self.activation = activation
        self._timers = timers
        self._cleanup = None
        self.state = LEVEL_ACTIVE

        challenge = self.levels[level - 1]
        logger.debug(f"Level {level}/{self.level_count}: {challenge.title}")
        cleanup = challenge.setup(ctx)
        if activation is self.activation and not activation.settled:
            self._cleanup = cleanup
        else:
            # Settled during setup: its teardown has already run without this cleanup.
            self._run_cleanup(cleanup, level)

    def _settle(self, activation: Activation, outcome: str):
        if activation is not self.activation or activation.settled:
            logger.debug(f"Ignored {outcome} from level {activation.level} "
                         f"(already {activation.outcome or 'replaced'})")
            return
        activation.outcome = outcome
        if outcome == "advance":
            self._advance()
        else:
            self._fail()

    def _run_cleanup(self, cleanup: Optional[Callable[[], None]], level: int):
        if cleanup is None:
            return
        try:
            cleanup()
        except Exception:
            logger.exception(f"Cleanup for level {level} failed")

    def _teardown(self):
        cleanup, self._cleanup = self._cleanup, None
        self._run_cleanup(cleanup, self.session.current_level)
        if self._timers is not None:
            self._timers.close()
            self._timers = None
        self.registry.clear_active()

    def _advance(self):
        level = self.session.current_level
        self._teardown()
        self._report_attempt(level, True)
        if level >= self.level_count:
            self._victory()
        else:
            self._enter(level + 1)

    def _fail(self):
        level = self.session.current_level
        self._teardown()
        self._report_attempt(level, False)
        self._defeat(level)

    # ═══════════════════════════════════════════════════════════
    # Terminal states
    # ═══════════════════════════════════════════════════════════

    def _record(self, level_reached: int) -> tuple[int, dict]:
        session = self.session
        session.total_attempts += 1
        elapsed = self.elapsed_seconds()
        self.scoreboard.save_progress(session.total_attempts, level_reached)
        stored = self.scoreboard.append(ScoreRecord(
            player_tag=session.player_tag,
            level_reached=level_reached,
            attempts=session.total_attempts,
            elapsed_seconds=elapsed,
        ))
        return elapsed, stored

    def _defeat(self, level: int):
        elapsed, stored = self._record(level)
        self.scoreboard.mark_death()
        self.state = DEFEAT
        logger.info(f"Defeat at level {level} after {elapsed}s")
        self._finish(DEFEAT, level, elapsed, stored)

    def _victory(self):
        elapsed, stored = self._record(self.level_count)
        self.scoreboard.mark_victory(elapsed, self.level_count)
        self.state = VICTORY
        logger.info(f"Victory: all {self.level_count} levels in {elapsed}s")
        self._finish(VICTORY, self.level_count, elapsed, stored)

    def _finish(self, kind: str, level: int, elapsed: int, stored: dict):
        session = self.session
        self.registry.clear_all()
        self.board.reset(0)
        self.activation = None
        self.outcome = SessionOutcome(
            kind=kind, player_tag=session.player_tag, level_reached=level,
            level_count=self.level_count, attempts=session.total_attempts,
            elapsed_seconds=elapsed, session_id=session.session_id, record=stored,
        )
        self.session = None

        if self.reporter:
            outcome = self.outcome
            self.scheduler.call_soon(lambda: self._submit(outcome), label="reporter.score")

        for listener in list(self._listeners):
            try:
                listener(self.outcome)
            except Exception:
                logger.exception("Session end listener failed")

    # ═══════════════════════════════════════════════════════════
    # Reporter hand-off (always on a later tick)
    # ═══════════════════════════════════════════════════════════

    def _report_attempt(self, level: int, success: bool):
        if not self.reporter:
            return
        sid = self.session.session_id
        spent = int(self.clock.now() - self.session.level_started_at)
        self.scheduler.call_soon(
            lambda: self.reporter.record_attempt(level, success, spent, session_id=sid),
            label="reporter.attempt")

    def _submit(self, outcome: SessionOutcome):
        result = self.reporter.report_score(outcome.player_tag, outcome.level_reached,
                                            outcome.elapsed_seconds,
                                            session_id=outcome.session_id)
        self.last_submit = result
        if result.success:
            self.scoreboard.mark_remote_result(result.is_top_ten, result.rank)
        elif result.offline:
            logger.info("Leaderboard offline, score saved locally and queued")

    # ═══════════════════════════════════════════════════════════
    # Player / operator actions
    # ═══════════════════════════════════════════════════════════

    def _require_active(self, action: str):
        if not self.active:
            raise SequencerStateError(f"Cannot {action} in state {self.state}")

    def advance(self):
        """Advance the current level as if the challenge had passed."""
        self._require_active("advance")
        self._settle(self.activation, "advance")

    def fail(self):
        """Fail the current level as if the challenge had failed."""
        self._require_active("fail")
        self._settle(self.activation, "fail")

    def skip(self):
        self.advance()

    def force_fail(self):
        self.fail()

    def force_victory(self):
        """Jump straight to VICTORY from whatever level is showing."""
        self._require_active("force victory")
        self.activation.outcome = "advance"
        self._teardown()
        self._victory()

    def goto(self, level: int) -> bool:
        """Replace the current level with `level`. Starts a session if none is running."""
        try:
            level = self.check_level(level)
        except InvalidLevelIndex as e:
            logger.warning(f"goto ignored: {e}")
            return False
        if not self.active:
            self.start(level)
            return True
        self.activation.outcome = "replaced"
        self._teardown()
        self._enter(level)
        return True

    def clear_scores(self):
        self.scoreboard.clear_scores()

    def clear_progress(self):
        self.scoreboard.clear_progress()
        if self.session:
            self.session.total_attempts = 0
        if self.active:
            self.goto(1)

    def clear_all(self):
        for key in (GameConfig.SCORES_KEY, GameConfig.STORAGE_KEY, GameConfig.JUST_DIED_KEY,
                    GameConfig.HAS_WON_KEY, GameConfig.VICTORY_TIME_KEY,
                    GameConfig.TOTAL_LEVELS_KEY, GameConfig.TOP_TEN_KEY,
                    GameConfig.GLOBAL_RANK_KEY):
            self.store.delete(key)
        self.clear_progress()

    def reset_clock(self):
        if self.session:
            self.session.start_time = self.clock.now()

    def adjust_clock(self, seconds: float = GameConfig.DEBUG_TIME_STEP):
        """Add `seconds` to the elapsed time (negative to remove)."""
        if self.session:
            self.session.start_time -= seconds
