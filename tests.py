#!/usr/bin/env python3
"""
DONTCLOSETHIS — Engine Test Suite

Run: python tests.py
     python tests.py -v                 # verbose
     python tests.py TestSequencer      # run specific class

Test categories:
  TestScheduler     — ordering, intervals, frames, ManualClock
  TestTimerRegistry — active/persistent sets, LevelTimers after close
  TestDecoys        — pattern and numeric decoys, bounded generation
  TestStorage       — MemoryStore / SqliteStore, malformed values
  TestScoreboard    — best-per-player, top 10, progress, landing flags
  TestSequencer     — transitions, idempotency, teardown, operator actions
"""

import os
import random
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import GameConfig
from config.score_schema import ScoreRecord, SubmitResult
from challenges.base import Challenge
from engine.decoys import (
    build_options, mutate_pattern, numeric_decoys, pattern_decoys,
    pick_distinct, random_pattern, shuffled, weighted_choice,
)
from engine.errors import InvalidPlayerTag, SequencerStateError
from engine.scoreboard import Scoreboard, is_score_better, validate_player_tag
from engine.sequencer import DEFEAT, IDLE, LEVEL_ACTIVE, VICTORY, Sequencer
from engine.storage import MemoryStore, SqliteStore
from engine.timers import (
    FRAME_INTERVAL, LevelTimers, ManualClock, Scheduler, TimerRegistry,
)


class SpyChallenge(Challenge):
    """PASS / FAIL buttons plus one of each timer kind, counting calls."""

    shape = "binary"

    def __init__(self, key: str = "spy"):
        self.key = key
        self.title = key
        self.setups = 0
        self.cleanups = 0
        self.ctx = None
        self.handles = []

    def setup(self, ctx):
        self.setups += 1
        self.ctx = ctx
        ctx.board.add_button("PASS", ctx.advance)
        ctx.board.add_button("FAIL", ctx.fail)
        self.handles = [
            ctx.timers.call_later(30, ctx.fail, label="spy.timeout"),
            ctx.timers.call_every(1, lambda: None, label="spy.interval"),
            ctx.timers.request_frame(lambda: None, label="spy.frame"),
        ]

        def cleanup():
            self.cleanups += 1
        return cleanup


class InstantChallenge(Challenge):
    """Advances from inside setup() and still hands back a cleanup."""

    key = "instant"
    title = "instant"
    shape = "binary"

    def __init__(self):
        self.cleanups = 0

    def setup(self, ctx):
        ctx.advance()

        def cleanup():
            self.cleanups += 1
        return cleanup


def make_sequencer(count: int = 3, store=None, reporter=None):
    scheduler = Scheduler(ManualClock())
    levels = [SpyChallenge(f"spy{i}") for i in range(1, count + 1)]
    seq = Sequencer(levels=levels, store=store or MemoryStore(), scheduler=scheduler,
                    reporter=reporter, rng=random.Random(1))
    return seq, levels


# ============================================================
# Scheduler
# ============================================================

class TestScheduler(unittest.TestCase):

    def setUp(self):
        self.clock = ManualClock()
        self.scheduler = Scheduler(self.clock)

    def test_fires_in_due_then_creation_order(self):
        fired = []
        self.scheduler.call_later(2, lambda: fired.append("b"))
        self.scheduler.call_later(1, lambda: fired.append("a"))
        self.scheduler.call_later(2, lambda: fired.append("c"))
        self.scheduler.advance(2)
        self.assertEqual(fired, ["a", "b", "c"])

    def test_callback_sees_its_own_due_time(self):
        seen = []
        self.scheduler.call_later(1.5, lambda: seen.append(self.clock.now()))
        self.scheduler.advance(10)
        self.assertEqual(seen, [1.5])
        self.assertEqual(self.clock.now(), 10)

    def test_interval_repeats_until_cancelled(self):
        count = []
        handle = self.scheduler.call_every(1, lambda: count.append(1))
        self.scheduler.advance(3.5)
        self.assertEqual(len(count), 3)
        handle.cancel()
        self.scheduler.advance(5)
        self.assertEqual(len(count), 3)
        self.assertFalse(handle.active)

    def test_timeout_is_inactive_after_firing(self):
        handle = self.scheduler.call_later(1, lambda: None)
        self.assertTrue(handle.active)
        self.scheduler.advance(1)
        self.assertFalse(handle.active)
        self.assertEqual(self.scheduler.pending(), 0)

    def test_frames(self):
        frames = []

        def frame():
            frames.append(self.clock.now())
            if len(frames) < 5:
                self.scheduler.request_frame(frame)

        self.scheduler.request_frame(frame)
        self.scheduler.run_frames(10)
        self.assertEqual(len(frames), 5)
        self.assertAlmostEqual(frames[0], FRAME_INTERVAL)

    def test_call_soon_runs_on_next_tick(self):
        fired = []
        self.scheduler.call_soon(lambda: fired.append(1))
        self.assertEqual(fired, [])
        self.scheduler.run_due()
        self.assertEqual(fired, [1])

    def test_failing_callback_does_not_stop_the_loop(self):
        fired = []

        def boom():
            raise RuntimeError("boom")

        self.scheduler.call_later(1, boom, label="boom")
        self.scheduler.call_later(2, lambda: fired.append(1))
        with self.assertLogs("dontclosethis.timers", level="ERROR"):
            self.scheduler.advance(3)
        self.assertEqual(fired, [1])

    def test_manual_clock_cannot_go_backwards(self):
        self.clock.advance(5)
        with self.assertRaises(ValueError):
            self.clock.set(4)

    def test_zero_or_negative_interval_rejected(self):
        with self.assertRaises(ValueError):
            self.scheduler.call_every(0, lambda: None)


# ============================================================
# Timer registry
# ============================================================

class TestTimerRegistry(unittest.TestCase):

    def setUp(self):
        self.scheduler = Scheduler(ManualClock())
        self.registry = TimerRegistry()

    def test_clear_active_leaves_persistent(self):
        timers = LevelTimers(self.scheduler, self.registry)
        level = timers.call_every(1, lambda: None)
        session = self.registry.register_persistent(self.scheduler.call_every(1, lambda: None))
        self.assertEqual(self.registry.clear_active(), 1)
        self.assertFalse(level.active)
        self.assertTrue(session.active)
        self.assertEqual(self.registry.active_handles, ())

    def test_clear_all(self):
        timers = LevelTimers(self.scheduler, self.registry)
        timers.call_later(1, lambda: None)
        self.registry.register_persistent(self.scheduler.call_every(1, lambda: None))
        self.assertEqual(self.registry.clear_all(), 2)
        self.assertEqual(self.scheduler.pending(), 0)

    def test_closed_level_timers_hand_out_dead_handles(self):
        fired = []
        timers = LevelTimers(self.scheduler, self.registry)
        timers.close()
        handles = [
            timers.call_later(1, lambda: fired.append(1)),
            timers.call_every(1, lambda: fired.append(1)),
            timers.request_frame(lambda: fired.append(1)),
        ]
        self.scheduler.advance(5)
        self.assertEqual(fired, [])
        self.assertTrue(all(not h.active for h in handles))
        self.assertEqual(self.registry.active_handles, ())


# ============================================================
# Decoys
# ============================================================

class TestDecoys(unittest.TestCase):

    def test_pattern_decoys_distinct_for_all_sizes(self):
        """Wrong patterns are pairwise distinct and never the answer."""
        rng = random.Random(1234)
        for length in range(4, 9):
            for alphabet_size in range(3, 9):
                alphabet = "ABCDEFGH"[:alphabet_size]
                for _ in range(5):
                    correct = random_pattern(alphabet, length, rng)
                    decoys = pattern_decoys(correct, alphabet, 7, rng)
                    self.assertEqual(len(decoys), 7)
                    self.assertEqual(len(set(decoys)), 7)
                    self.assertNotIn(correct, decoys)
                    self.assertTrue(all(len(d) == length for d in decoys))

    def test_change_one_only(self):
        rng = random.Random(5)
        decoys = pattern_decoys("ABCDEF", "ABCDEF", 7, rng, strategies=("change_one",))
        for decoy in decoys:
            diffs = sum(1 for a, b in zip(decoy, "ABCDEF") if a != b)
            self.assertEqual(diffs, 1)

    def test_small_space_falls_back(self):
        # Three mutation tries cannot fill 4; the single substitutions can.
        decoys = pattern_decoys("AAAA", "AB", 4, random.Random(0), max_attempts=3)
        self.assertEqual(len(set(decoys)), 4)
        self.assertNotIn("AAAA", decoys)

    def test_mutations(self):
        rng = random.Random(3)
        self.assertEqual(mutate_pattern("ABCD", "ABCD", "reverse", rng), "DCBA")
        rotated = mutate_pattern("ABCD", "ABCD", "rotate", rng)
        self.assertEqual(sorted(rotated), sorted("ABCD"))
        with self.assertRaises(ValueError):
            mutate_pattern("ABCD", "ABCD", "explode", rng)

    def test_numeric_decoys(self):
        rng = random.Random(9)
        for correct in (-40, 0, 37, 100):
            decoys = numeric_decoys(correct, 5, 8, rng)
            self.assertEqual(len(set(decoys)), 5)
            self.assertNotIn(correct, decoys)
            self.assertTrue(all(correct - 8 <= d < correct + 8 for d in decoys))

    def test_numeric_decoys_fill_past_the_variation(self):
        decoys = numeric_decoys(10, 6, 1, random.Random(0))
        self.assertEqual(len(set(decoys)), 6)
        self.assertNotIn(10, decoys)

    def test_shuffle_and_options(self):
        rng = random.Random(2)
        items = [1, 2, 3, 4, 5]
        out = shuffled(items, rng)
        self.assertEqual(items, [1, 2, 3, 4, 5])
        self.assertEqual(sorted(out), items)
        options = build_options(9, [1, 2], rng)
        self.assertEqual(sorted(options), [1, 2, 9])

    def test_pick_distinct_excludes(self):
        picked = pick_distinct(["a", "b", "b", "c"], 5, random.Random(1), exclude=["a"])
        self.assertEqual(sorted(picked), ["b", "c"])

    def test_weighted_choice(self):
        rng = random.Random(4)
        self.assertEqual(weighted_choice([("x", 0), ("y", 1)], rng), "y")
        with self.assertRaises(ValueError):
            weighted_choice([], rng)


# ============================================================
# Storage
# ============================================================

class TestStorage(unittest.TestCase):

    def test_memory_json_and_flags(self):
        store = MemoryStore()
        store.set_json("k", {"a": 1})
        self.assertEqual(store.get_json("k"), {"a": 1})
        store.set_flag("f", True)
        self.assertTrue(store.get_flag("f"))
        store.delete("k")
        self.assertEqual(store.get_json("k", []), [])

    def test_malformed_json_returns_default(self):
        store = MemoryStore({"k": "{not json"})
        with self.assertLogs("dontclosethis.storage", level="WARNING"):
            self.assertEqual(store.get_json("k", {"x": 1}), {"x": 1})

    def test_unencodable_value_is_not_written(self):
        store = MemoryStore()
        with self.assertLogs("dontclosethis.storage", level="ERROR"):
            self.assertFalse(store.set_json("k", {1, 2}))
        self.assertIsNone(store.get("k"))

    def test_read_errors_are_swallowed(self):
        store = MemoryStore()
        store._read = MagicMock(side_effect=OSError("disk gone"))
        with self.assertLogs("dontclosethis.storage", level="ERROR"):
            self.assertIsNone(store.get("k"))

    def test_sqlite_survives_reopen(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "state.db")
            store = SqliteStore(path)
            store.set("playerInitials", "ACE")
            store.set("playerInitials", "BOB")
            store.close()
            store = SqliteStore(path)
            self.assertEqual(store.get("playerInitials"), "BOB")
            store.delete("playerInitials")
            self.assertIsNone(store.get("playerInitials"))
            store.close()


# ============================================================
# Scoreboard
# ============================================================

class TestScoreboard(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.board = Scoreboard(self.store)

    def _add(self, tag, level, time=None):
        self.board.append(ScoreRecord(player_tag=tag, level_reached=level, elapsed_seconds=time))

    def test_best_score_dedup(self):
        self._add("AAA", 3, 50)
        self._add("AAA", 5, 80)
        self._add("AAA", 5, 60)
        best = self.board.best_by_player()["AAA"]
        self.assertEqual((best.level_reached, best.elapsed_seconds), (5, 60))

    def test_top_orders_by_level_then_time(self):
        self._add("BOB", 4, 30)
        self._add("ACE", 7, 90)
        self._add("CAT", 7, 45)
        self._add("DAN", 7)
        tags = [r.player_tag for r in self.board.top()]
        self.assertEqual(tags, ["CAT", "ACE", "DAN", "BOB"])

    def test_top_is_limited(self):
        for i in range(15):
            self._add(f"P{i}", i + 1, 10)
        top = self.board.top()
        self.assertEqual(len(top), GameConfig.MAX_DISPLAY)
        self.assertEqual(top[0].player_tag, "P14")

    def test_zero_time_beats_missing_time(self):
        a = ScoreRecord(player_tag="A", level_reached=3, elapsed_seconds=0)
        b = ScoreRecord(player_tag="A", level_reached=3)
        self.assertTrue(is_score_better(a, b))
        self.assertFalse(is_score_better(b, a))

    def test_stored_in_wire_format(self):
        self._add("AAA", 2, 12)
        raw = self.store.get_json(GameConfig.SCORES_KEY)
        self.assertEqual(raw[0]["initials"], "AAA")
        self.assertEqual(raw[0]["level"], 2)
        self.assertEqual(raw[0]["timeElapsed"], 12)

    def test_malformed_entries_skipped(self):
        self.store.set_json(GameConfig.SCORES_KEY, [
            {"initials": "AAA", "level": 2, "timeElapsed": 5},
            {"initials": "", "level": "x"},
            "garbage",
        ])
        with self.assertLogs("dontclosethis.scoreboard", level="WARNING"):
            records = self.board.records()
        self.assertEqual(len(records), 1)

    def test_validate_player_tag(self):
        self.assertEqual(validate_player_tag("  ace "), "ACE")
        self.assertEqual(validate_player_tag("abcdefghij"), "ABCDEFGHIJ")
        for bad in ("", "   ", "abcdefghijk", None):
            with self.assertRaises(InvalidPlayerTag):
                validate_player_tag(bad)

    def test_player_tag_default_and_invalid(self):
        self.assertEqual(self.board.player_tag(), "AAA")
        self.store.set(GameConfig.PLAYER_KEY, "x" * 20)
        with self.assertLogs("dontclosethis.scoreboard", level="WARNING"):
            self.assertEqual(self.board.player_tag(), "AAA")
        self.assertEqual(self.board.set_player_tag("zed"), "ZED")
        self.assertEqual(self.board.player_tag(), "ZED")

    def test_progress_keeps_highest_level(self):
        self.board.save_progress(1, 6)
        progress = self.board.save_progress(2, 3)
        self.assertEqual((progress.attempts, progress.highest_level), (2, 6))
        self.assertEqual(self.store.get_json(GameConfig.STORAGE_KEY),
                         {"attempts": 2, "highestLevel": 6})

    def test_landing_messages_shown_once(self):
        self.board.mark_death()
        self.board.mark_victory(120, 17)
        self.board.mark_remote_result(True, 4)
        messages = self.board.take_landing_messages()
        self.assertEqual(len(messages), 3)
        self.assertIn("120s", messages[1])
        self.assertIn("#4", messages[2])
        self.assertEqual(self.board.take_landing_messages(), [])


# ============================================================
# Sequencer
# ============================================================

class TestSequencer(unittest.TestCase):

    def test_fail_records_exactly_one_attempt_at_every_level(self):
        seq, _ = make_sequencer(4)
        for level in range(1, 5):
            before = seq.scoreboard.progress().attempts
            count = len(seq.scoreboard.records())
            seq.start(level)
            seq.fail()
            self.assertEqual(seq.state, DEFEAT)
            self.assertEqual(seq.scoreboard.progress().attempts, before + 1)
            records = seq.scoreboard.records()
            self.assertEqual(len(records), count + 1)
            self.assertEqual(records[-1].level_reached, level)

    def test_advance_sets_up_next_level_once(self):
        seq, levels = make_sequencer(3)
        seq.start()
        for i in range(1, 3):
            self.assertEqual(seq.current_level, i)
            seq.board.click("PASS")
            self.assertEqual(seq.state, LEVEL_ACTIVE)
            self.assertEqual(seq.current_level, i + 1)
            self.assertEqual(levels[i].setups, 1)

    def test_advance_on_last_level_is_victory(self):
        seq, levels = make_sequencer(2)
        seq.start(2)
        seq.advance()
        self.assertEqual(seq.state, VICTORY)
        self.assertIsNone(seq.current_level)
        self.assertTrue(seq.outcome.victory)
        self.assertEqual(seq.outcome.level_reached, 2)
        self.assertEqual(seq.scoreboard.records()[-1].level_reached, 2)
        self.assertTrue(seq.store.get_flag(GameConfig.HAS_WON_KEY))

    def test_first_outcome_wins(self):
        seq, levels = make_sequencer(3)
        seq.start()
        ctx = levels[0].ctx
        ctx.advance()
        ctx.fail()
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        self.assertEqual(seq.current_level, 2)
        self.assertEqual(seq.scoreboard.records(), [])

        ctx2 = levels[1].ctx
        ctx2.fail()
        ctx2.advance()
        self.assertEqual(seq.state, DEFEAT)
        self.assertEqual(seq.outcome.level_reached, 2)
        self.assertEqual(len(seq.scoreboard.records()), 1)
        self.assertEqual(levels[2].setups, 0)

    def test_late_timer_from_old_level_is_dropped(self):
        seq, levels = make_sequencer(3)
        seq.start()
        ctx = levels[0].ctx
        seq.advance()
        # A callback captured before teardown still points at level 1.
        ctx.fail()
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        self.assertEqual(seq.current_level, 2)

    def test_teardown_cancels_every_level_timer(self):
        for outcome in ("advance", "fail", "goto", "victory"):
            seq, levels = make_sequencer(3)
            seq.start()
            old = list(levels[0].handles)
            old_timers = levels[0].ctx.timers
            if outcome == "advance":
                seq.advance()
            elif outcome == "fail":
                seq.fail()
            elif outcome == "goto":
                seq.goto(3)
            else:
                seq.force_victory()
            self.assertTrue(all(not h.active for h in old), outcome)
            self.assertEqual(levels[0].cleanups, 1, outcome)
            self.assertTrue(old_timers.closed, outcome)
            self.assertFalse(old_timers.call_later(0, seq.fail).active, outcome)
            self.assertFalse(any(h in seq.registry.active_handles for h in old), outcome)

    def test_stale_button_cannot_be_clicked(self):
        seq, levels = make_sequencer(3)
        seq.start()
        stale = seq.board.buttons[1]
        seq.advance()
        self.assertFalse(seq.board.click(stale))
        self.assertEqual(seq.state, LEVEL_ACTIVE)

    def test_level_timeout_fails_the_level(self):
        seq, _ = make_sequencer(2)
        seq.start()
        seq.scheduler.advance(30)
        self.assertEqual(seq.state, DEFEAT)

    def test_elapsed_ticker_survives_levels(self):
        seq, _ = make_sequencer(3)
        seq.start()
        ticker = seq.registry.persistent_handles[0]
        seq.scheduler.advance(2.5)
        seq.advance()
        seq.scheduler.advance(1)
        self.assertTrue(ticker.active)
        self.assertEqual(seq.elapsed_display, 3)
        seq.fail()
        self.assertFalse(ticker.active)

    def test_start_validation(self):
        seq, levels = make_sequencer(3)
        with self.assertLogs("dontclosethis.engine", level="WARNING"):
            seq.start(99)
        self.assertEqual(seq.current_level, 1)
        with self.assertRaises(SequencerStateError):
            seq.start()

    def test_invalid_player_tag_falls_back_to_saved_tag(self):
        seq, _ = make_sequencer(2)
        seq.scoreboard.set_player_tag("zed")
        with self.assertLogs("dontclosethis.engine", level="WARNING"):
            seq.start(player_tag="ABCDEFGHIJKLMNOP")
        self.assertEqual(seq.session.player_tag, "ZED")
        seq.fail()
        self.assertEqual(seq.state, DEFEAT)
        self.assertEqual([(r.player_tag, r.level_reached) for r in seq.scoreboard.records()],
                         [("ZED", 1)])
        self.assertEqual(seq.scoreboard.progress().attempts, 1)

    def test_player_tag_is_normalised(self):
        seq, _ = make_sequencer(1)
        seq.start(player_tag=" ace ")
        self.assertEqual(seq.session.player_tag, "ACE")

    def test_cleanup_runs_when_setup_settles_the_level(self):
        instant = InstantChallenge()
        spy = SpyChallenge("spy2")
        seq = Sequencer(levels=[instant, spy], store=MemoryStore(),
                        scheduler=Scheduler(ManualClock()), rng=random.Random(1))
        seq.start()
        self.assertEqual(instant.cleanups, 1)
        self.assertEqual(seq.current_level, 2)
        self.assertEqual(spy.setups, 1)
        self.assertEqual(spy.cleanups, 0)

    def test_actions_outside_a_level_raise(self):
        seq, _ = make_sequencer(2)
        self.assertEqual(seq.state, IDLE)
        with self.assertRaises(SequencerStateError):
            seq.advance()
        with self.assertRaises(SequencerStateError):
            seq.force_victory()

    def test_goto(self):
        seq, levels = make_sequencer(5)
        self.assertTrue(seq.goto(3))
        self.assertEqual(seq.current_level, 3)
        with self.assertLogs("dontclosethis.engine", level="WARNING"):
            self.assertFalse(seq.goto(0))
            self.assertFalse(seq.goto(6))
            self.assertFalse(seq.goto(True))
        self.assertEqual(seq.current_level, 3)
        self.assertTrue(seq.goto(1))
        self.assertEqual(levels[0].setups, 1)
        self.assertEqual(seq.scoreboard.records(), [])

    def test_attempts_carry_across_sessions(self):
        store = MemoryStore()
        seq, _ = make_sequencer(2, store=store)
        seq.start()
        seq.fail()
        seq2, _ = make_sequencer(2, store=store)
        session = seq2.start()
        self.assertEqual(session.total_attempts, 1)
        self.assertTrue(store.get_flag(GameConfig.JUST_DIED_KEY))

    def test_clock_adjustments(self):
        seq, _ = make_sequencer(2)
        seq.start()
        seq.scheduler.advance(5)
        seq.adjust_clock()
        self.assertEqual(seq.elapsed_seconds(), 15)
        seq.adjust_clock(-20)
        self.assertEqual(seq.elapsed_seconds(), 0)
        seq.reset_clock()
        seq.scheduler.advance(2)
        self.assertEqual(seq.elapsed_seconds(), 2)

    def test_clear_actions(self):
        seq, _ = make_sequencer(3)
        seq.start()
        seq.fail()
        seq.start(2)
        seq.clear_scores()
        self.assertEqual(seq.scoreboard.records(), [])
        seq.clear_progress()
        self.assertEqual(seq.current_level, 1)
        self.assertEqual(seq.session.total_attempts, 0)
        self.assertEqual(seq.scoreboard.progress().attempts, 0)
        seq.store.set(GameConfig.PLAYER_KEY, "ZED")
        seq.clear_all()
        self.assertIsNone(seq.store.get(GameConfig.JUST_DIED_KEY))
        self.assertEqual(seq.store.get(GameConfig.PLAYER_KEY), "ZED")

    def test_listeners_run_once_and_failures_are_logged(self):
        seq, _ = make_sequencer(2)
        seen = []
        seq.on_end(lambda outcome: seen.append(outcome.kind))

        def broken(outcome):
            raise RuntimeError("listener")

        seq.on_end(broken)
        seq.start()
        with self.assertLogs("dontclosethis.engine", level="ERROR"):
            seq.fail()
        self.assertEqual(seen, [DEFEAT])

    def test_reporter_calls_wait_for_the_next_tick(self):
        reporter = MagicMock()
        reporter.report_score.return_value = SubmitResult(success=True, rank=3, is_top_ten=True)
        seq, _ = make_sequencer(2, reporter=reporter)
        seq.start()
        reporter.start_session.assert_not_called()
        seq.advance()
        seq.fail()
        reporter.record_attempt.assert_not_called()
        reporter.report_score.assert_not_called()
        # Local persistence is already done.
        self.assertEqual(len(seq.scoreboard.records()), 1)

        seq.scheduler.advance(0)
        reporter.start_session.assert_called_once()
        self.assertEqual(reporter.record_attempt.call_count, 2)
        self.assertEqual([c.args[1] for c in reporter.record_attempt.call_args_list],
                         [True, False])
        reporter.report_score.assert_called_once()
        self.assertEqual(reporter.report_score.call_args.args[1], 2)
        self.assertTrue(seq.last_submit.success)
        self.assertEqual(seq.store.get(GameConfig.GLOBAL_RANK_KEY), "3")

    def test_snapshot(self):
        seq, _ = make_sequencer(2)
        self.assertEqual(seq.snapshot()["state"], IDLE)
        seq.start(player_tag="ACE")
        snap = seq.snapshot()
        self.assertEqual(snap["current_level"], 1)
        self.assertEqual(snap["player_tag"], "ACE")
        self.assertEqual(snap["challenge"]["key"], "spy1")

    def test_default_catalogue(self):
        seq = Sequencer(scheduler=Scheduler(ManualClock()))
        self.assertEqual(seq.level_count, 17)
        seq.start()
        self.assertEqual(seq.current_challenge().key, "intro")
        seq.board.click("BEGIN")
        self.assertEqual(seq.current_challenge().key, "pong")


if __name__ == "__main__":
    unittest.main(verbosity=2)
