"""Choice levels: binary buttons and timed multi-choice."""

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import build_options, numeric_decoys, random_between, shuffled


class BinaryChoice(Challenge):
    """Two buttons, one bound to advance and the other to fail."""

    shape = "binary"
    prompt = ""
    labels = ("YES", "NO")
    correct = "YES"

    def setup(self, ctx: LevelContext):
        ctx.board.set_prompt(self.prompt)
        for label in self.labels:
            ctx.board.add_button(label, ctx.advance if label == self.correct else ctx.fail)
        return None


class IntroChallenge(Challenge):
    key = "intro"
    title = "Introduction"
    shape = "binary"

    def setup(self, ctx: LevelContext):
        ctx.board.set_prompt(
            "This tab wants to close.\n\nDon't let it.\n\n"
            "Fail a challenge and your tab closes. If your tab closes, you lose."
        )
        ctx.board.add_button("BEGIN", ctx.advance)
        return None


class YesNoChallenge(BinaryChoice):
    key = "yes_no"
    title = "Simple YES/NO"
    prompt = "Do you want to continue?"


class ReversePsychologyChallenge(BinaryChoice):
    key = "reverse_psychology"
    title = "Reverse Psychology"
    prompt = "Don't click YES. I'm serious. Click NO."


class ManyButtonsChallenge(Challenge):
    """One YES hidden among 25-40 NO buttons, against a short countdown."""

    key = "many_buttons"
    title = "Many Buttons Timer"
    shape = "timed_choice"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.MANY_BUTTONS
        rng = ctx.rng
        duration = cfg["TIMER_DURATION"]
        count = random_between(rng, cfg["MIN_BUTTONS"], cfg["MAX_BUTTONS"])
        color = rng.choice(cfg["BUTTON_COLORS"])

        ctx.board.set_prompt("Do you want to continue?")
        ctx.board.set_status(f"{duration:.2f}")
        ctx.board.view = {"button_color": color, "button_count": count}

        specs = [(i == 0, random_between(rng, cfg["MIN_WIDTH"], cfg["MAX_WIDTH"] - 1))
                 for i in range(count)]
        for is_correct, width in shuffled(specs, rng):
            ctx.board.add_button(
                "YES" if is_correct else "NO",
                ctx.advance if is_correct else ctx.fail,
                background=color, width=width,
            )

        start = ctx.now()
        state = {"expired": False}

        def tick():
            left = duration - (ctx.now() - start)
            if left <= 0:
                if not state["expired"]:
                    state["expired"] = True
                    countdown.cancel()
                    ctx.board.set_status("0.00")
                    ctx.fail()
                return
            ctx.board.set_status(f"{left:.2f}")

        countdown = ctx.timers.call_every(cfg["TICK"], tick, label="many_buttons.countdown")
        return None


class PositionLabelChallenge(Challenge):
    """'Click the FOURTH button' while the labels say something else."""

    key = "position_label"
    title = "Position vs Label"
    shape = "binary"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.NUMBERED_BUTTONS
        count = cfg["BUTTON_COUNT"]
        target = random_between(ctx.rng, 1, count)
        ctx.board.set_prompt(f"Click the {cfg['POSITION_WORDS'][target - 1]} button")
        ctx.board.view = {"target_position": target}
        for position, number in enumerate(shuffled(range(1, count + 1), ctx.rng), start=1):
            ctx.board.add_button(f"Button {number}",
                                 ctx.advance if position == target else ctx.fail)
        return None


class HardMathChallenge(Challenge):
    key = "hard_math"
    title = "Hard Math"
    shape = "binary"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.MATH_QUIZ
        rng = ctx.rng
        a = random_between(rng, cfg["MIN_NUMBER"], cfg["MAX_NUMBER"])
        b = random_between(rng, cfg["MIN_NUMBER"], cfg["MAX_NUMBER"])
        addition = rng.random() < 0.5
        answer = a + b if addition else a - b

        ctx.board.set_prompt(f"What is {a} {'+' if addition else '-'} {b}?")
        ctx.board.view = {"answer": answer}
        wrong = numeric_decoys(answer, cfg["ANSWER_COUNT"] - 1, cfg["VARIATION"], rng)
        for value in build_options(answer, wrong, rng):
            ctx.board.add_button(str(value), ctx.advance if value == answer else ctx.fail)
        return None
