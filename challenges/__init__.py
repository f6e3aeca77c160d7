"""
DONTCLOSETHIS — Level Catalogue

The ordered list of challenges a session plays through. Level numbers are
1-based positions in LEVEL_ORDER.

Usage:
    from challenges import default_levels, get_challenge
    levels = default_levels()          # fresh instances, in play order
    pong = get_challenge("pong")
"""

from challenges.base import Activation, Challenge, LevelContext
from challenges.choice import (
    HardMathChallenge, IntroChallenge, ManyButtonsChallenge,
    PositionLabelChallenge, ReversePsychologyChallenge, YesNoChallenge,
)
from challenges.memory import CupMonteChallenge, PatternMemoryChallenge
from challenges.physics import PongChallenge
from challenges.puzzles import FrogsToadsChallenge, LightsOutChallenge, PipeRotationChallenge
from challenges.remote import DogBreedChallenge
from challenges.sequence import AlphabeticalChallenge
from challenges.timing import PreciseTimingChallenge, TrafficLightChallenge
from challenges.tracking import TripwireMazeChallenge

CHALLENGES = {
    "intro": IntroChallenge,
    "pong": PongChallenge,
    "frogs_toads": FrogsToadsChallenge,
    "lights_out": LightsOutChallenge,
    "pipe_rotation": PipeRotationChallenge,
    "yes_no": YesNoChallenge,
    "many_buttons": ManyButtonsChallenge,
    "position_label": PositionLabelChallenge,
    "traffic_light": TrafficLightChallenge,
    "hard_math": HardMathChallenge,
    "reverse_psychology": ReversePsychologyChallenge,
    "precise_timing": PreciseTimingChallenge,
    "alphabetical": AlphabeticalChallenge,
    "cup_monte": CupMonteChallenge,
    "pattern_memory": PatternMemoryChallenge,
    "tripwire_maze": TripwireMazeChallenge,
    "dog_breed": DogBreedChallenge,
}

LEVEL_ORDER = list(CHALLENGES.keys())


def get_challenge(key: str) -> Challenge:
    """Fresh challenge instance for a level key."""
    cls = CHALLENGES.get(key.lower())
    if cls is None:
        raise ValueError(f"Unknown challenge: {key}. Available: {LEVEL_ORDER}")
    return cls()


def default_levels() -> list[Challenge]:
    """All levels in play order."""
    return [get_challenge(key) for key in LEVEL_ORDER]


__all__ = ["Activation", "Challenge", "LevelContext", "CHALLENGES", "LEVEL_ORDER",
           "get_challenge", "default_levels"]
