"""
DONTCLOSETHIS — Engine Exceptions

Raised by validators and caught at the sequencer / CLI boundary, where the
offending value is replaced with a default. None of these should ever reach
the player as a crash.
"""


class GameError(Exception):
    """Base class for all game engine errors."""


class InvalidLevelIndex(GameError):
    """Requested level is outside 1..level_count."""

    def __init__(self, level, level_count: int):
        self.level = level
        self.level_count = level_count
        super().__init__(f"Invalid level {level!r} (must be 1-{level_count})")


class InvalidPlayerTag(GameError):
    """Player tag is empty or longer than the allowed maximum."""


class SequencerStateError(GameError):
    """Operation is not valid in the sequencer's current state."""
