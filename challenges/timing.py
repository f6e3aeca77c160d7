"""
DONTCLOSETHIS — Timing Levels

Traffic Light: click while the button shows the safe colour.
Precise Timing: click inside a one-second window measured from level start.
"""

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import random_between, shuffled


class TrafficLightChallenge(Challenge):
    key = "traffic_light"
    title = "Traffic Light"
    shape = "timed_window"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.TRAFFIC_LIGHT
        rng = ctx.rng
        count = random_between(rng, cfg["MIN_COLORS"], cfg["MAX_COLORS"])
        selected = shuffled(cfg["COLOR_POOL"], rng)[:count]
        safe = rng.choice(selected)
        colors = [safe] + [c for c in selected if c != safe]
        speed = rng.uniform(cfg["MIN_CYCLE_SPEED"], cfg["MAX_CYCLE_SPEED"])

        state = {"index": 0, "can_click": False}
        ctx.board.set_prompt(f"Wait for {safe[0]}, then click the button!")
        ctx.board.view = {"safe": safe[0], "colors": [c[0] for c in colors],
                          "cycle_speed": speed, "color": safe[0]}

        def show():
            name, hex_value = colors[state["index"]]
            ctx.board.view["color"] = name
            ctx.board.set_status(name)
            button.style["background"] = hex_value

        def cycle():
            state["index"] = (state["index"] + 1) % len(colors)
            show()
            if state["index"] == 1:
                state["can_click"] = True

        def press():
            # The light starts on the safe colour; it only counts once it comes round again.
            if not state["can_click"]:
                return
            if state["index"] == 0:
                ctx.advance()
            else:
                ctx.fail()

        button = ctx.board.add_button("CLICK ME", press)
        show()
        ctx.timers.call_every(speed, cycle, label="traffic_light.cycle")
        return None


class PreciseTimingChallenge(Challenge):
    """Click YES when the elapsed time is in [start, start + window).

    The visible counter is replaced by ??? five seconds before the window
    opens. Elapsed time is measured once, at the click. Letting the window
    pass without clicking fails the level.
    """

    key = "precise_timing"
    title = "Precise Timing"
    shape = "timed_window"

    def __init__(self, window_start: float = None):
        self.window_start = window_start

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.PRECISE_TIMING
        start = self.window_start
        if start is None:
            start = ctx.rng.uniform(cfg["MIN_TARGET_START"], cfg["MAX_TARGET_START"])
        end = start + cfg["WINDOW_SIZE"]
        hide_at = start - cfg["TIMER_HIDE_BEFORE"]
        began = ctx.now()
        state = {"clicked": False}

        ctx.board.set_prompt(f"Click YES between {start:.1f} and {end:.1f} seconds!")
        ctx.board.set_status("0.0")
        ctx.board.view = {"window": (start, end), "hidden": False}

        def tick():
            elapsed = ctx.now() - began
            if elapsed >= end:
                ticker.cancel()
                state["clicked"] = True
                button.disabled = True
                ctx.board.set_status("TOO LATE")
                ctx.fail()
            elif elapsed >= hide_at:
                ctx.board.view["hidden"] = True
                ctx.board.set_status("???")
            else:
                ctx.board.set_status(f"{elapsed:.1f}")

        def press():
            if state["clicked"]:
                return
            state["clicked"] = True
            elapsed = ctx.now() - began
            ticker.cancel()
            button.disabled = True
            ctx.board.set_status(f"{elapsed:.2f}")
            ctx.board.view["clicked_at"] = elapsed
            if start <= elapsed < end:
                ctx.board.view["result"] = "hit"
                ctx.timers.call_later(cfg["WIN_DELAY"], ctx.advance, label="precise_timing.win")
            else:
                ctx.board.view["result"] = "miss"
                ctx.timers.call_later(cfg["FAIL_DELAY"], ctx.fail, label="precise_timing.miss")

        button = ctx.board.add_button("YES", press)
        ticker = ctx.timers.call_every(cfg["TICK"], tick, label="precise_timing.tick")
        return None
