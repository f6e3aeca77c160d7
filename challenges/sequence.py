"""Sequential levels: click the shuffled controls in a fixed order."""

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import shuffled


class SequenceChallenge(Challenge):
    """Buttons laid out shuffled; clicking them in `order` advances.

    A correct click disables its button and moves the cursor; any other
    click fails.
    """

    shape = "sequential"
    prompt = "Click the buttons in order!"
    order: tuple = ()

    def setup(self, ctx: LevelContext):
        order = list(self.order)
        state = {"expected": 0}
        ctx.board.set_prompt(self.prompt)
        ctx.board.view = {"order": order, "expected_index": 0}

        def press(label):
            if label != order[state["expected"]]:
                ctx.fail()
                return
            state["expected"] += 1
            ctx.board.view["expected_index"] = state["expected"]
            buttons[label].disabled = True
            if state["expected"] == len(order):
                ctx.advance()

        buttons = {label: ctx.board.add_button(label, lambda label=label: press(label))
                   for label in shuffled(order, ctx.rng)}
        return None


class AlphabeticalChallenge(SequenceChallenge):
    key = "alphabetical"
    title = "Alphabetical Sequence"
    prompt = "Click the buttons in alphabetical order!"
    order = tuple(LevelConfig.SEQUENCE["LETTERS"])
