#!/usr/bin/env python3
"""
DONTCLOSETHIS — Challenge Test Suite

Every level is played through the Sequencer on a ManualClock, so the tests
see exactly the transitions a player would.

Run: python tests_challenges.py
     python tests_challenges.py TestPong
"""

import random
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import httpx

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import LevelConfig
from challenges import LEVEL_ORDER, default_levels, get_challenge
from challenges.base import Activation, LevelContext
from challenges.choice import (
    HardMathChallenge, IntroChallenge, ManyButtonsChallenge, PositionLabelChallenge,
    ReversePsychologyChallenge, YesNoChallenge,
)
from challenges.memory import CupMonteChallenge, PatternMemoryChallenge
from challenges.physics import Ball, Paddle, PongChallenge, step_ball
from challenges.puzzles import (
    FrogsToadsChallenge, LightsOutChallenge, PipeRotationChallenge, build_pipe_grid,
    frog_move_valid, generate_pipe_path, path_connected, pipe_connections,
    scramble_pipes, toggle_light,
)
from challenges.remote import (
    DogBreedChallenge, breed_from_image_url, flatten_breeds, format_breed,
)
from challenges.sequence import AlphabeticalChallenge
from challenges.timing import PreciseTimingChallenge, TrafficLightChallenge
from challenges.tracking import TripwireMazeChallenge, build_maze, segment_distance
from engine.board import Board
from engine.sequencer import DEFEAT, LEVEL_ACTIVE, VICTORY, Sequencer
from engine.timers import LevelTimers, ManualClock, Scheduler, TimerRegistry


def play(challenge, seed: int = 1) -> Sequencer:
    """Start a one-level session on a ManualClock."""
    seq = Sequencer(levels=[challenge], scheduler=Scheduler(ManualClock()),
                    rng=random.Random(seed))
    seq.start()
    return seq


def make_ctx(seed: int = 1):
    """A bare LevelContext with mock outcome callbacks."""
    clock = ManualClock()
    scheduler = Scheduler(clock)
    ctx = LevelContext(
        level=1, board=Board(), timers=LevelTimers(scheduler, TimerRegistry()),
        rng=random.Random(seed), clock=clock, activation=Activation(level=1),
        on_advance=MagicMock(), on_fail=MagicMock(),
    )
    return ctx, scheduler


# ============================================================
# Catalogue
# ============================================================

class TestCatalogue(unittest.TestCase):

    def test_seventeen_levels_in_order(self):
        levels = default_levels()
        self.assertEqual(len(levels), 17)
        self.assertEqual([c.key for c in levels], LEVEL_ORDER)
        self.assertEqual(LEVEL_ORDER[0], "intro")
        self.assertEqual(LEVEL_ORDER[-1], "dog_breed")

    def test_fresh_instances(self):
        self.assertIsNot(get_challenge("pong"), get_challenge("pong"))
        self.assertIsInstance(get_challenge("PONG"), PongChallenge)

    def test_unknown_key(self):
        with self.assertRaises(ValueError):
            get_challenge("minesweeper")


# ============================================================
# Binary and timed choice
# ============================================================

class TestChoice(unittest.TestCase):

    def test_yes_no_no_path_only_fails(self):
        ctx, _ = make_ctx()
        YesNoChallenge().setup(ctx)
        ctx.board.click("NO")
        ctx.on_fail.assert_called_once()
        ctx.on_advance.assert_not_called()

    def test_yes_no_yes_path(self):
        seq = play(YesNoChallenge())
        seq.board.click("YES")
        self.assertEqual(seq.state, VICTORY)

    def test_reverse_psychology_yes_still_advances(self):
        seq = play(ReversePsychologyChallenge())
        self.assertIn("Don't click YES", seq.board.prompt)
        seq.board.click("YES")
        self.assertEqual(seq.state, VICTORY)

    def test_intro(self):
        seq = play(IntroChallenge())
        self.assertEqual([b.label for b in seq.board.buttons], ["BEGIN"])
        seq.board.click(1)
        self.assertEqual(seq.state, VICTORY)

    def test_position_label(self):
        for seed in range(5):
            seq = play(PositionLabelChallenge(), seed=seed)
            target = seq.board.view["target_position"]
            self.assertEqual(len(seq.board.buttons), 10)
            wrong = 1 if target != 1 else 2
            seq.board.click(target)
            self.assertEqual(seq.state, VICTORY)

            seq = play(PositionLabelChallenge(), seed=seed)
            seq.board.click(wrong)
            self.assertEqual(seq.state, DEFEAT)

    def test_hard_math(self):
        seq = play(HardMathChallenge(), seed=3)
        answer = seq.board.view["answer"]
        labels = [b.label for b in seq.board.buttons]
        self.assertEqual(len(labels), LevelConfig.MATH_QUIZ["ANSWER_COUNT"])
        self.assertEqual(len(set(labels)), len(labels))
        self.assertIn(str(answer), labels)
        seq.board.click(str(answer))
        self.assertEqual(seq.state, VICTORY)

    def test_many_buttons_layout(self):
        seq = play(ManyButtonsChallenge(), seed=4)
        labels = [b.label for b in seq.board.buttons]
        cfg = LevelConfig.MANY_BUTTONS
        self.assertTrue(cfg["MIN_BUTTONS"] <= len(labels) <= cfg["MAX_BUTTONS"])
        self.assertEqual(labels.count("YES"), 1)
        seq.board.click("YES")
        self.assertEqual(seq.state, VICTORY)

    def test_many_buttons_expires(self):
        seq = play(ManyButtonsChallenge())
        seq.scheduler.advance(2.5)
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        seq.scheduler.advance(0.7)
        self.assertEqual(seq.state, DEFEAT)

    def test_many_buttons_wrong_button(self):
        seq = play(ManyButtonsChallenge())
        seq.board.click("NO")
        self.assertEqual(seq.state, DEFEAT)


# ============================================================
# Timing
# ============================================================

class TestPreciseTiming(unittest.TestCase):

    def _click_at(self, elapsed: float) -> Sequencer:
        seq = play(PreciseTimingChallenge(window_start=8.0))
        seq.scheduler.advance(elapsed)
        seq.board.click("YES")
        seq.scheduler.advance(2.0)
        return seq

    def test_inside_window_advances(self):
        self.assertEqual(self._click_at(8.5).state, VICTORY)

    def test_after_window_fails(self):
        self.assertEqual(self._click_at(9.5).state, DEFEAT)

    def test_before_window_fails(self):
        self.assertEqual(self._click_at(7.9).state, DEFEAT)

    def test_window_passing_without_click_fails(self):
        seq = play(PreciseTimingChallenge(window_start=8.0))
        seq.scheduler.advance(8.9)
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        seq.scheduler.advance(0.3)
        self.assertEqual(seq.state, DEFEAT)

    def test_timer_hidden_before_window(self):
        seq = play(PreciseTimingChallenge(window_start=8.0))
        seq.scheduler.advance(2.5)
        self.assertFalse(seq.board.view["hidden"])
        self.assertLessEqual(float(seq.board.status), 2.5)
        seq.scheduler.advance(1.0)
        self.assertTrue(seq.board.view["hidden"])
        self.assertEqual(seq.board.status, "???")

    def test_second_click_ignored(self):
        seq = play(PreciseTimingChallenge(window_start=8.0))
        seq.scheduler.advance(8.2)
        button = seq.board.buttons[0]
        seq.board.click(button)
        self.assertTrue(button.disabled)
        self.assertFalse(seq.board.click(button))
        self.assertEqual(seq.board.view["result"], "hit")

    def test_random_window_range(self):
        cfg = LevelConfig.PRECISE_TIMING
        for seed in range(10):
            seq = play(PreciseTimingChallenge(), seed=seed)
            start, end = seq.board.view["window"]
            self.assertTrue(cfg["MIN_TARGET_START"] <= start <= cfg["MAX_TARGET_START"])
            self.assertAlmostEqual(end - start, cfg["WINDOW_SIZE"])


class TestTrafficLight(unittest.TestCase):

    def test_click_before_first_change_is_ignored(self):
        seq = play(TrafficLightChallenge())
        seq.board.click("CLICK ME")
        self.assertEqual(seq.state, LEVEL_ACTIVE)

    def test_click_on_other_colour_fails(self):
        seq = play(TrafficLightChallenge())
        speed = seq.board.view["cycle_speed"]
        seq.scheduler.advance(speed * 1.5)
        self.assertNotEqual(seq.board.view["color"], seq.board.view["safe"])
        seq.board.click("CLICK ME")
        self.assertEqual(seq.state, DEFEAT)

    def test_click_on_safe_colour_advances(self):
        seq = play(TrafficLightChallenge(), seed=6)
        view = seq.board.view
        cfg = LevelConfig.TRAFFIC_LIGHT
        self.assertTrue(cfg["MIN_COLORS"] <= len(view["colors"]) <= cfg["MAX_COLORS"])
        self.assertTrue(cfg["MIN_CYCLE_SPEED"] <= view["cycle_speed"] <= cfg["MAX_CYCLE_SPEED"])
        speed = view["cycle_speed"]
        seq.scheduler.advance(speed * len(view["colors"]) + speed / 2)
        self.assertEqual(view["color"], view["safe"])
        seq.board.click("CLICK ME")
        self.assertEqual(seq.state, VICTORY)


# ============================================================
# Sequence and memory
# ============================================================

class TestAlphabetical(unittest.TestCase):

    def test_in_order(self):
        seq = play(AlphabeticalChallenge())
        for letter in "ABCD":
            seq.board.click(letter)
            self.assertEqual(seq.state, LEVEL_ACTIVE)
        self.assertFalse(seq.board.click("A"))
        seq.board.click("E")
        self.assertEqual(seq.state, VICTORY)

    def test_out_of_order(self):
        seq = play(AlphabeticalChallenge())
        seq.board.click("A")
        seq.board.click("C")
        self.assertEqual(seq.state, DEFEAT)


class TestPatternMemory(unittest.TestCase):

    def test_options_appear_after_display(self):
        seq = play(PatternMemoryChallenge(pattern="ABCDEF"))
        self.assertEqual(seq.board.buttons, [])
        seq.scheduler.advance(2.5)
        options = seq.board.view["options"]
        self.assertEqual(len(options), 8)
        self.assertEqual(len(set(options)), 8)
        self.assertIn("ABCDEF", options)
        seq.board.click("ABCDEF")
        self.assertEqual(seq.state, VICTORY)

    def test_wrong_option_fails(self):
        seq = play(PatternMemoryChallenge(pattern="ABCDEF"))
        seq.scheduler.advance(2.5)
        wrong = next(o for o in seq.board.view["options"] if o != "ABCDEF")
        seq.board.click(wrong)
        self.assertEqual(seq.state, DEFEAT)

    def test_random_pattern(self):
        seq = play(PatternMemoryChallenge(), seed=8)
        pattern = seq.board.view["pattern"]
        self.assertEqual(len(pattern), 6)
        self.assertTrue(set(pattern) <= set("ABCDEF"))


class TestCupMonte(unittest.TestCase):

    def _to_pick(self, seed):
        seq = play(CupMonteChallenge(), seed=seed)
        self.assertFalse(seq.board.click("LEFT"))
        seq.scheduler.advance(1.0)
        self.assertTrue(seq.board.view["lifted"])
        seq.scheduler.advance(11.0)
        self.assertEqual(seq.board.view["phase"], "pick")
        self.assertEqual(len(seq.board.view["swaps"]), 10)
        return seq

    def test_follow_the_cup(self):
        names = LevelConfig.CUP_MONTE["POSITIONS"]
        for seed in range(4):
            seq = self._to_pick(seed)
            seq.board.click(names[seq.board.view["cups"].index(True)])
            self.assertEqual(seq.board.view["phase"], "reveal")
            seq.scheduler.advance(1.0)
            self.assertEqual(seq.state, LEVEL_ACTIVE)
            seq.scheduler.advance(0.5)
            self.assertEqual(seq.state, VICTORY)

    def test_wrong_cup(self):
        names = LevelConfig.CUP_MONTE["POSITIONS"]
        seq = self._to_pick(2)
        seq.board.click(names[seq.board.view["cups"].index(False)])
        seq.scheduler.advance(1.5)
        self.assertEqual(seq.state, DEFEAT)


# ============================================================
# Puzzles
# ============================================================

class TestFrogsToads(unittest.TestCase):
    SOLUTION = [2, 4, 5, 3, 1, 0, 2, 4, 6, 5, 3, 1, 2, 4, 3]

    def test_move_rules(self):
        state = list("FFF_TTT")
        self.assertTrue(frog_move_valid(state, 2))
        self.assertTrue(frog_move_valid(state, 4))
        self.assertFalse(frog_move_valid(state, 1))
        self.assertFalse(frog_move_valid(state, 3))
        self.assertTrue(frog_move_valid(list("FF_FTTT"), 4))      # toad jumps a frog
        self.assertFalse(frog_move_valid(list("FF_TTFT"), 4))     # toad cannot jump a toad

    def test_solve(self):
        seq = play(FrogsToadsChallenge())
        for index in self.SOLUTION:
            self.assertTrue(seq.board.click(seq.board.buttons[index]))
        self.assertEqual("".join(b.label for b in seq.board.buttons), "TTT_FFF")
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        seq.scheduler.advance(1.5)
        self.assertEqual(seq.state, VICTORY)

    def test_illegal_click_is_ignored(self):
        seq = play(FrogsToadsChallenge())
        seq.board.click(seq.board.buttons[0])
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        self.assertEqual("".join(b.label for b in seq.board.buttons), "FFF_TTT")

    def test_stuck_board_fails(self):
        seq = play(FrogsToadsChallenge())
        for index in (2, 1, 0):
            seq.board.click(seq.board.buttons[index])
        self.assertEqual(seq.state, DEFEAT)


class TestLightsOut(unittest.TestCase):

    def test_toggle_corner(self):
        grid = [False] * 16
        toggle_light(grid, 0, 4)
        self.assertEqual([i for i, on in enumerate(grid) if on], [0, 1, 4])

    def test_undo_the_seed(self):
        seq = play(LightsOutChallenge(toggles=[0, 5, 10]))
        self.assertTrue(any(seq.board.view["grid"]))
        for index in (10, 0, 5):
            seq.board.click(seq.board.buttons[index])
        self.assertFalse(any(seq.board.view["grid"]))
        self.assertTrue(all(b.disabled for b in seq.board.buttons))
        seq.scheduler.advance(1.0)
        self.assertEqual(seq.state, VICTORY)

    def test_random_seed_is_lit(self):
        cfg = LevelConfig.LIGHTS_OUT
        for seed in range(5):
            seq = play(LightsOutChallenge(), seed=seed)
            toggles = seq.board.view["toggles"]
            self.assertEqual(len(set(toggles)), len(toggles))
            self.assertTrue(cfg["MIN_TOGGLES"] <= len(toggles) <= cfg["MAX_TOGGLES"])
            self.assertTrue(any(seq.board.view["grid"]))

    def test_toggles_that_cancel_out(self):
        ctx, _ = make_ctx()
        with self.assertRaises(ValueError):
            LightsOutChallenge(toggles=[3, 3]).setup(ctx)


class TestPipeRotation(unittest.TestCase):

    def test_generated_path(self):
        for seed in range(5):
            path = generate_pipe_path(10, random.Random(seed))
            self.assertEqual(path[0], (0, 0))
            self.assertEqual(path[-1], (9, 9))
            self.assertEqual(len(set(path)), len(path))
            for (ax, ay), (bx, by) in zip(path, path[1:]):
                self.assertEqual(abs(ax - bx) + abs(ay - by), 1)

    def test_fallback_path(self):
        path = generate_pipe_path(4, random.Random(0), attempts=0)
        self.assertEqual(path, [(0, 0), (1, 0), (2, 0), (3, 0), (3, 1), (3, 2), (3, 3)])

    def test_scramble_breaks_the_path(self):
        rng = random.Random(2)
        path = generate_pipe_path(10, rng)
        grid = build_pipe_grid(path, 10, rng)
        self.assertTrue(path_connected(grid, path))
        chosen = scramble_pipes(grid, path, 10, rng)
        self.assertEqual(len(chosen), 10)
        self.assertFalse(path_connected(grid, path))

    def test_rotate_into_place(self):
        seq = play(PipeRotationChallenge(), seed=5)
        view = seq.board.view
        grid, cs = view["grid"], view["cell_size"]
        for x, y in view["path"]:
            cell = grid[y][x]
            for _ in range(4):
                if seq.board.prompt == "Connected!":
                    break
                if pipe_connections(cell.kind, cell.rotation) == \
                        pipe_connections(cell.kind, cell.correct_rotation):
                    break
                seq.board.pointer_click(x * cs + cs / 2, y * cs + cs / 2)
        self.assertEqual(seq.board.prompt, "Connected!")
        seq.scheduler.advance(1.0)
        self.assertEqual(seq.state, VICTORY)

    def test_check_on_broken_path_fails(self):
        seq = play(PipeRotationChallenge())
        seq.board.click("CHECK")
        self.assertEqual(seq.state, DEFEAT)


# ============================================================
# Tracking and physics
# ============================================================

class TestTripwireMaze(unittest.TestCase):

    def _arm(self, seed=1):
        seq = play(TripwireMazeChallenge(), seed=seed)
        view = seq.board.view
        zone = view["start_zone"]
        seq.board.pointer_move(zone["x"] + zone["width"] / 2, zone["y"] + zone["height"] / 2)
        self.assertTrue(view["armed"])
        return seq, view

    def test_segment_distance(self):
        self.assertAlmostEqual(segment_distance(5, 3, 0, 0, 10, 0), 3)
        self.assertAlmostEqual(segment_distance(-4, 3, 0, 0, 10, 0), 5)
        self.assertAlmostEqual(segment_distance(3, 4, 0, 0, 0, 0), 5)

    def test_maze_shape(self):
        cfg = LevelConfig.TRIPWIRE_MAZE
        maze = build_maze(random.Random(1), cfg["WIDTH"], cfg["HEIGHT"], cfg["SEGMENTS"],
                          cfg["ZONE_WIDTH"], cfg["ZONE_HEIGHT"], cfg["MARGIN"])
        self.assertEqual(len(maze["path"]), cfg["SEGMENTS"] + 3)
        xs = [x for x, _ in maze["path"]]
        self.assertEqual(xs, sorted(xs))

    def test_walk_the_path(self):
        for seed in range(3):
            seq, view = self._arm(seed)
            points = view["path"]
            for (ax, ay), (bx, by) in zip(points, points[1:]):
                for step in range(21):
                    t = step / 20
                    seq.board.pointer_move(ax + (bx - ax) * t, ay + (by - ay) * t)
                    if not seq.active:
                        break
            self.assertEqual(seq.state, VICTORY)

    def test_moving_before_start_is_free(self):
        seq = play(TripwireMazeChallenge())
        seq.board.pointer_move(600, 10)
        seq.board.pointer_leave()
        self.assertEqual(seq.state, LEVEL_ACTIVE)
        self.assertFalse(seq.board.view["armed"])

    def test_touching_a_wall_fails(self):
        seq, view = self._arm()
        zone = view["start_zone"]
        seq.board.pointer_move(zone["x"] + zone["width"] / 2, 5)
        self.assertEqual(seq.state, DEFEAT)

    def test_jumping_across_a_wall_fails(self):
        cfg = LevelConfig.TRIPWIRE_MAZE
        clearance = (cfg["PATH_WIDTH"] + 6) / 2 + 20
        for seed in range(20):
            seq, view = self._arm(seed)
            start, end = view["start_zone"], view["end_zone"]
            sx, sy = start["x"] + start["width"] / 2, start["y"] + start["height"] / 2
            ex, ey = end["x"] + end["width"] / 2, end["y"] + end["height"] / 2
            points = view["path"]

            def deep_in_wall(x, y):
                return all(segment_distance(x, y, *a, *b) > clearance
                           for a, b in zip(points, points[1:]))

            if not any(deep_in_wall(sx + (ex - sx) * i / 100, sy + (ey - sy) * i / 100)
                       for i in range(101)):
                continue
            seq.board.pointer_move(ex, ey)
            self.assertEqual(seq.state, DEFEAT)
            self.assertEqual(seq.outcome.level_reached, 1)
            return
        self.fail("no maze put a wall between the two zones")

    def test_leaving_fails(self):
        seq, _ = self._arm()
        seq.board.pointer_leave()
        self.assertEqual(seq.state, DEFEAT)


class TestPong(unittest.TestCase):

    def test_upward_ball_is_not_a_hit(self):
        paddle = Paddle(0, 370, 100, 15)
        ball = Ball(50, 380, 0, -4, 8)
        self.assertEqual(step_ball(ball, paddle, 500, 400), "")
        ball = Ball(50, 360, 0, 4, 8)
        self.assertEqual(step_ball(ball, paddle, 500, 400), "hit")
        self.assertLess(ball.dy, 0)

    def test_ten_hits_advance(self):
        seq = play(PongChallenge())
        state = seq.board.view["state"]
        seq.board.click("START")
        self.assertEqual(seq.board.buttons, [])
        for _ in range(5000):
            if not seq.active:
                break
            seq.board.pointer_move(seq.board.view["ball"].x, 200)
            seq.scheduler.run_frames(1)
        self.assertEqual(seq.state, VICTORY)
        self.assertEqual(state["hits"], 10)
        self.assertFalse(state["running"])

    def test_miss_fails(self):
        seq = play(PongChallenge())
        seq.board.click("START")
        for _ in range(5000):
            if not seq.active:
                break
            ball_x = seq.board.view["ball"].x
            seq.board.pointer_move(450 if ball_x < 250 else 50, 200)
            seq.scheduler.run_frames(1)
        self.assertEqual(seq.state, DEFEAT)

    def test_loop_stops_after_teardown(self):
        seq = play(PongChallenge())
        state = seq.board.view["state"]
        seq.board.click("START")
        seq.scheduler.run_frames(3)
        frames = state["frames"]
        seq.fail()
        seq.scheduler.run_frames(30)
        self.assertFalse(state["running"])
        self.assertEqual(state["frames"], frames)


# ============================================================
# Dog breed (remote)
# ============================================================

BREEDS = {"hound": ["afghan", "basset"], "pug": [], "labrador": [], "beagle": [],
          "boxer": [], "husky": []}


def dog_api(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/image/random"):
        return httpx.Response(200, json={
            "message": "https://images.dog.ceo/breeds/hound-afghan/n02088094_1003.jpg",
            "status": "success"})
    return httpx.Response(200, json={"message": BREEDS, "status": "success"})


class TestDogBreed(unittest.TestCase):

    def test_names(self):
        self.assertEqual(format_breed("hound-afghan"), "Afghan Hound")
        self.assertEqual(format_breed("labrador"), "Labrador")
        self.assertEqual(breed_from_image_url(
            "https://images.dog.ceo/breeds/pug/x.jpg"), "Pug")
        with self.assertRaises(ValueError):
            breed_from_image_url("https://example.com/x.jpg")
        self.assertEqual(flatten_breeds({"hound": ["afghan"], "pug": []}),
                         ["Afghan Hound", "Pug"])

    def test_pick_the_breed(self):
        client = httpx.Client(transport=httpx.MockTransport(dog_api))
        seq = play(DogBreedChallenge(client=client))
        self.assertTrue(seq.board.view["loading"])
        seq.scheduler.advance(0)
        options = seq.board.view["options"]
        self.assertEqual(len(options), 6)
        self.assertIn("Afghan Hound", options)
        seq.board.click("Afghan Hound")
        self.assertEqual(seq.state, VICTORY)
        client.close()

    def test_wrong_breed(self):
        client = httpx.Client(transport=httpx.MockTransport(dog_api))
        seq = play(DogBreedChallenge(client=client))
        seq.scheduler.advance(0)
        seq.board.click(next(o for o in seq.board.view["options"] if o != "Afghan Hound"))
        self.assertEqual(seq.state, DEFEAT)
        client.close()

    def test_api_down_falls_back_to_yes(self):
        client = httpx.Client(transport=httpx.MockTransport(
            lambda request: httpx.Response(503)))
        seq = play(DogBreedChallenge(client=client))
        with self.assertLogs("dontclosethis.challenges", level="WARNING"):
            seq.scheduler.advance(0)
        self.assertTrue(seq.board.view["fallback"])
        self.assertEqual([b.label for b in seq.board.buttons], ["YES"])
        seq.board.click("YES")
        self.assertEqual(seq.state, VICTORY)
        client.close()

    def test_unexpected_body_falls_back(self):
        client = httpx.Client(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"message": "https://example.com/x.jpg"})))
        seq = play(DogBreedChallenge(client=client))
        with self.assertLogs("dontclosethis.challenges", level="WARNING"):
            seq.scheduler.advance(0)
        self.assertTrue(seq.board.view["fallback"])
        client.close()

    def test_slow_fetch_delays_other_timers_until_next_tick(self):
        clock = ManualClock()

        def slow(request):
            clock.advance(1.5)
            return dog_api(request)

        client = httpx.Client(transport=httpx.MockTransport(slow))
        seq = Sequencer(levels=[DogBreedChallenge(client=client)],
                        scheduler=Scheduler(clock), rng=random.Random(1))
        seq.start()
        seq.scheduler.run_due()
        self.assertEqual(clock.now(), 3.0)
        self.assertEqual(seq.elapsed_display, 0)
        self.assertIn("Afghan Hound", seq.board.view["options"])
        seq.scheduler.run_due()
        self.assertEqual(seq.elapsed_display, 3)
        client.close()

    def test_teardown_before_fetch(self):
        requests = []

        def handler(request):
            requests.append(request)
            return dog_api(request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        seq = play(DogBreedChallenge(client=client))
        seq.fail()
        seq.scheduler.advance(1)
        self.assertEqual(seq.board.buttons, [])
        self.assertEqual(requests, [])
        client.close()


if __name__ == "__main__":
    unittest.main(verbosity=2)
