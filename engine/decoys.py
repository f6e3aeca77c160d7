"""
DONTCLOSETHIS — Random Decoy Generator

Pure functions that produce wrong answers, decoy buttons and scrambled
patterns for the challenges. Randomness always comes from an injected
random.Random so a level can be replayed from its seed.

Every generator is bounded: the constrained strategy gets MAX_ATTEMPTS tries,
then a looser strategy fills whatever is still missing. Output never contains
duplicates and never contains the correct answer.

Pattern mutation strategies (weighted by repetition in PATTERN_STRATEGIES):
    swap_two    — transpose two adjacent characters
    change_one  — substitute exactly one character
    reverse     — full reversal
    rotate      — cyclic rotation by 1..len
    random      — keep each character with p=0.4, otherwise substitute

Usage:
    rng = random.Random(7)
    pattern = random_pattern("ABCDEF", 6, rng)
    options = build_options(pattern, pattern_decoys(pattern, "ABCDEF", 7, rng), rng)
"""

from __future__ import annotations

import logging
import random
from typing import Iterable, Sequence, TypeVar

logger = logging.getLogger("dontclosethis.decoys")

T = TypeVar("T")

MAX_ATTEMPTS = 100

PATTERN_STRATEGIES = (
    "swap_two", "swap_two",
    "change_one", "change_one",
    "reverse",
    "rotate",
    "random",
)

_KEEP_PROBABILITY = 0.4


# ═══════════════════════════════════════════════════════════════
# Primitives
# ═══════════════════════════════════════════════════════════════

def shuffled(items: Iterable[T], rng: random.Random) -> list[T]:
    """Fisher-Yates shuffle into a new list; the input is untouched."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def random_between(rng: random.Random, low: int, high: int) -> int:
    """Inclusive integer in [low, high]."""
    return rng.randint(low, high)


def weighted_choice(options: Sequence[tuple[T, float]], rng: random.Random) -> T:
    """Pick one item from (item, weight) pairs."""
    if not options:
        raise ValueError("weighted_choice needs at least one option")
    total = sum(max(0.0, w) for _, w in options)
    if total <= 0:
        return options[0][0]
    r = rng.random() * total
    for item, weight in options:
        r -= max(0.0, weight)
        if r <= 0:
            return item
    return options[-1][0]


def pick_distinct(pool: Sequence[T], count: int, rng: random.Random,
                  exclude: Iterable[T] = ()) -> list[T]:
    """Up to `count` distinct items from `pool`, none of them in `exclude`."""
    banned = set(exclude)
    candidates = []
    for item in pool:
        if item not in banned and item not in candidates:
            candidates.append(item)
    return shuffled(candidates, rng)[:max(0, count)]


def build_options(correct: T, decoys: Sequence[T], rng: random.Random) -> list[T]:
    """Correct answer plus decoys, shuffled."""
    return shuffled([correct, *decoys], rng)


# ═══════════════════════════════════════════════════════════════
# Numeric decoys
# ═══════════════════════════════════════════════════════════════

def numeric_decoys(correct: int, count: int, variation: int,
                   rng: random.Random) -> list[int]:
    """Near-miss integers within [correct - variation, correct + variation)."""
    decoys: list[int] = []
    attempts = 0
    while len(decoys) < count and attempts < MAX_ATTEMPTS:
        attempts += 1
        wrong = correct + rng.randrange(variation * 2) - variation
        if wrong != correct and wrong not in decoys:
            decoys.append(wrong)
    offset = 1
    while len(decoys) < count:
        for wrong in (correct + offset, correct - offset):
            if len(decoys) < count and wrong not in decoys:
                decoys.append(wrong)
        offset += 1
    return decoys


# ═══════════════════════════════════════════════════════════════
# Pattern decoys
# ═══════════════════════════════════════════════════════════════

def random_pattern(alphabet: Sequence[str], length: int, rng: random.Random) -> str:
    return "".join(rng.choice(alphabet) for _ in range(length))


def _substitute(ch: str, alphabet: Sequence[str], rng: random.Random) -> str:
    others = [c for c in alphabet if c != ch]
    return rng.choice(others) if others else ch


def mutate_pattern(pattern: str, alphabet: Sequence[str], strategy: str,
                   rng: random.Random) -> str:
    """Apply one mutation strategy. May return the pattern unchanged
    (e.g. reversing a palindrome); callers filter those out."""
    n = len(pattern)
    if n == 0:
        return pattern
    if strategy == "swap_two":
        if n < 2:
            return pattern
        i = rng.randrange(n - 1)
        return pattern[:i] + pattern[i + 1] + pattern[i] + pattern[i + 2:]
    if strategy == "change_one":
        i = rng.randrange(n)
        return pattern[:i] + _substitute(pattern[i], alphabet, rng) + pattern[i + 1:]
    if strategy == "reverse":
        return pattern[::-1]
    if strategy == "rotate":
        shift = rng.randint(1, n)
        return pattern[shift:] + pattern[:shift]
    if strategy == "random":
        return "".join(
            ch if rng.random() < _KEEP_PROBABILITY else _substitute(ch, alphabet, rng)
            for ch in pattern
        )
    raise ValueError(f"Unknown pattern strategy: {strategy}")


def _single_substitutions(pattern: str, alphabet: Sequence[str]) -> list[str]:
    out = []
    for i, ch in enumerate(pattern):
        for alt in alphabet:
            if alt != ch:
                out.append(pattern[:i] + alt + pattern[i + 1:])
    return out


def pattern_decoys(correct: str, alphabet: Sequence[str], count: int,
                   rng: random.Random,
                   strategies: Sequence[str] = PATTERN_STRATEGIES,
                   max_attempts: int = MAX_ATTEMPTS) -> list[str]:
    """Wrong patterns, pairwise distinct and never equal to `correct`.

    Pass strategies=("change_one",) to require decoys that differ from the
    correct pattern in exactly one position. If the constrained pass cannot
    fill `count` within `max_attempts`, single substitutions are enumerated,
    then fully random patterns are tried.
    """
    decoys: list[str] = []
    seen = {correct}

    def _take(candidate: str):
        if candidate not in seen and len(decoys) < count:
            seen.add(candidate)
            decoys.append(candidate)

    attempts = 0
    while len(decoys) < count and attempts < max_attempts:
        attempts += 1
        _take(mutate_pattern(correct, alphabet, rng.choice(list(strategies)), rng))

    if len(decoys) < count:
        logger.debug(f"Pattern decoys: {len(decoys)}/{count} after {attempts} attempts, "
                     f"falling back to enumeration")
        for candidate in shuffled(_single_substitutions(correct, alphabet), rng):
            _take(candidate)

    attempts = 0
    while len(decoys) < count and attempts < max_attempts:
        attempts += 1
        _take(random_pattern(alphabet, len(correct), rng))

    if len(decoys) < count:
        logger.warning(f"Only {len(decoys)} distinct decoys possible for {correct!r}")
    return decoys
