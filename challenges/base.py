"""
DONTCLOSETHIS — Base Challenge

Abstract base for every level. A challenge is a description, not a running
thing: the sequencer calls setup() once per activation with a fresh
LevelContext, and the challenge wires the board and its timers so that player
input eventually calls exactly one of ctx.advance() / ctx.fail().

setup() may return a cleanup callable. The sequencer runs it during teardown,
before cancelling the level's timers and resetting the board. Any state the
challenge needs lives in locals or a small state object created inside
setup(), never on the Challenge instance.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from engine.board import Board
from engine.timers import Clock, LevelTimers

Cleanup = Optional[Callable[[], None]]


@dataclass(eq=False)
class Activation:
    """One run of one level. Settles at most once."""
    level: int
    outcome: Optional[str] = None       # "advance" | "fail" | "replaced"
    started_at: float = 0.0

    @property
    def settled(self) -> bool:
        return self.outcome is not None


@dataclass(eq=False)
class LevelContext:
    """Everything a challenge may touch during one activation."""
    level: int
    board: Board
    timers: LevelTimers
    rng: random.Random
    clock: Clock
    activation: Activation
    on_advance: Callable[[], None] = field(repr=False, default=lambda: None)
    on_fail: Callable[[], None] = field(repr=False, default=lambda: None)

    def advance(self):
        self.on_advance()

    def fail(self):
        self.on_fail()

    @property
    def settled(self) -> bool:
        return self.activation.settled

    def now(self) -> float:
        return self.clock.now()


class Challenge(ABC):
    """Abstract base for all levels.

    shape names the edge-case policy the level follows: binary, timed_choice,
    sequential, timed_window, memory, tracking, physics or puzzle.
    """

    key: str = "base"
    title: str = "Base Challenge"
    shape: str = "binary"

    @abstractmethod
    def setup(self, ctx: LevelContext) -> Cleanup:
        """Wire the board for this level. Return an optional cleanup."""
        ...

    def get_metadata(self) -> dict:
        return {"key": self.key, "title": self.title, "shape": self.shape}

    def __repr__(self):
        return f"<{type(self).__name__} {self.key}>"
