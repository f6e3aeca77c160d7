"""
DONTCLOSETHIS — Memory Levels

Pattern Memory: a short string is shown, hidden, then picked from a list of
look-alikes.
Cup Monte: the YES cup is revealed, the cups are swapped, then the player
picks one.
"""

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import build_options, pattern_decoys, random_pattern, shuffled


class PatternMemoryChallenge(Challenge):
    key = "pattern_memory"
    title = "Pattern Memory"
    shape = "memory"

    def __init__(self, pattern: str = None):
        self.pattern = pattern

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.PATTERN_MEMORY
        alphabet = cfg["CHARACTERS"]
        pattern = self.pattern or random_pattern(alphabet, cfg["PATTERN_LENGTH"], ctx.rng)

        ctx.board.set_prompt(f"Remember this pattern: {pattern}")
        ctx.board.view = {"pattern": pattern, "phase": "show", "options": []}

        def ask():
            ctx.board.set_prompt("What was the pattern?")
            decoys = pattern_decoys(pattern, alphabet, cfg["OPTION_COUNT"] - 1, ctx.rng)
            options = build_options(pattern, decoys, ctx.rng)
            ctx.board.view.update(phase="ask", options=options)
            for option in options:
                ctx.board.add_button(option, ctx.advance if option == pattern else ctx.fail)

        ctx.timers.call_later(cfg["DISPLAY_DURATION"], ask, label="pattern_memory.hide")
        return None


class CupMonteChallenge(Challenge):
    """Three cups, one hiding YES.

    Timeline: cups lift at LIFT_AT, drop at SHOW_DURATION, swapping starts
    half a second later and runs SHUFFLE_COUNT swaps SHUFFLE_SPEED apart.
    Picks are accepted one SHUFFLE_SPEED after the last swap. The picked cup
    is revealed and the outcome lands REVEAL_DELAY later.
    """

    key = "cup_monte"
    title = "3 Cup Monte"
    shape = "memory"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.CUP_MONTE
        names = cfg["POSITIONS"]
        cups = shuffled([True] + [False] * (cfg["CUPS"] - 1), ctx.rng)
        state = {"swaps": 0}

        ctx.board.set_prompt("Watch carefully...")
        ctx.board.view = {"cups": cups, "lifted": False, "phase": "show", "swaps": []}

        def reveal(lifted):
            ctx.board.view["lifted"] = lifted
            if lifted:
                ctx.board.set_status("  ".join(
                    f"{name}: {'YES' if has_yes else 'NO'}" for name, has_yes in zip(names, cups)))
            else:
                ctx.board.set_status("")

        def swap():
            i, j = ctx.rng.sample(range(len(cups)), 2)
            cups[i], cups[j] = cups[j], cups[i]
            ctx.board.view["swaps"].append((i, j))
            state["swaps"] += 1
            if state["swaps"] >= cfg["SHUFFLE_COUNT"]:
                shuffler.cancel()
                ctx.timers.call_later(cfg["SHUFFLE_SPEED"], open_picks, label="cup_monte.pick")

        def start_shuffle():
            nonlocal shuffler
            ctx.board.set_prompt("Follow the cup with YES!")
            ctx.board.view["phase"] = "shuffle"
            shuffler = ctx.timers.call_every(cfg["SHUFFLE_SPEED"], swap, label="cup_monte.swap")

        def open_picks():
            ctx.board.set_prompt("Which cup has YES?")
            ctx.board.view["phase"] = "pick"
            for button in buttons:
                button.disabled = False

        def pick(position):
            if ctx.board.view["phase"] != "pick":
                return
            ctx.board.view["phase"] = "reveal"
            ctx.board.view["picked"] = position
            for button in buttons:
                button.disabled = True
            reveal(True)
            ctx.timers.call_later(cfg["REVEAL_DELAY"],
                                  ctx.advance if cups[position] else ctx.fail,
                                  label="cup_monte.reveal")

        shuffler = None
        buttons = [ctx.board.add_button(name, lambda p=p: pick(p)) for p, name in enumerate(names)]
        for button in buttons:
            button.disabled = True

        ctx.timers.call_later(cfg["LIFT_AT"], lambda: reveal(True), label="cup_monte.lift")
        ctx.timers.call_later(cfg["SHOW_DURATION"], lambda: reveal(False), label="cup_monte.drop")
        ctx.timers.call_later(cfg["SHOW_DURATION"] + 0.5, start_shuffle, label="cup_monte.shuffle")
        return None
