"""
DONTCLOSETHIS — Puzzle Levels

Player-paced puzzles with no clock: Frogs and Toads, Lights Out and Pipe
Rotation. Illegal moves are ignored rather than punished. A solved puzzle
locks its controls and advances after a short pause.
"""

import logging
from dataclasses import dataclass

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext
from engine.decoys import pick_distinct, random_between, weighted_choice

logger = logging.getLogger("dontclosethis.challenges")


# ═══════════════════════════════════════════════════════════════
# Frogs and Toads
# ═══════════════════════════════════════════════════════════════

FROG, TOAD, EMPTY = "F", "T", "_"


def frog_move_valid(state: list, index: int) -> bool:
    """Frogs slide or jump right, toads slide or jump left, jumps only over an opponent."""
    if not 0 <= index < len(state):
        return False
    empty = state.index(EMPTY)
    piece = state[index]
    if piece == FROG:
        return index + 1 == empty or (index + 2 == empty and state[index + 1] == TOAD)
    if piece == TOAD:
        return index - 1 == empty or (index - 2 == empty and state[index - 1] == FROG)
    return False


class FrogsToadsChallenge(Challenge):
    key = "frogs_toads"
    title = "Frogs and Toads"
    shape = "puzzle"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.FROGS
        pieces = cfg["PIECES"]
        state = [FROG] * pieces + [EMPTY] + [TOAD] * pieces
        goal = [TOAD] * pieces + [EMPTY] + [FROG] * pieces

        ctx.board.set_prompt("Swap the frogs and toads or your tab closes!\n"
                             "Click to move forward or jump over one opponent")
        ctx.board.view = {"slots": state}

        def refresh():
            for i, button in enumerate(buttons):
                button.label = state[i]
                button.style["movable"] = frog_move_valid(state, i)

        def move(index):
            if ctx.settled or not frog_move_valid(state, index):
                return
            empty = state.index(EMPTY)
            state[index], state[empty] = state[empty], state[index]
            refresh()
            if state == goal:
                ctx.board.set_prompt("Perfect! They've all switched places!")
                for button in buttons:
                    button.disabled = True
                ctx.timers.call_later(cfg["WIN_DELAY"], ctx.advance, label="frogs.win")
            elif not any(frog_move_valid(state, i) for i in range(len(state))):
                logger.debug(f"Frogs and toads stuck at {''.join(state)}")
                ctx.board.set_prompt("No moves left!")
                ctx.fail()

        buttons = [ctx.board.add_button(state[i], lambda i=i: move(i))
                   for i in range(len(state))]
        refresh()
        return None


# ═══════════════════════════════════════════════════════════════
# Lights Out
# ═══════════════════════════════════════════════════════════════

def toggle_light(grid: list, index: int, size: int):
    """Flip a cell and its orthogonal neighbours in place."""
    row, col = divmod(index, size)
    grid[index] = not grid[index]
    if row > 0:
        grid[index - size] = not grid[index - size]
    if row < size - 1:
        grid[index + size] = not grid[index + size]
    if col > 0:
        grid[index - 1] = not grid[index - 1]
    if col < size - 1:
        grid[index + 1] = not grid[index + 1]


class LightsOutChallenge(Challenge):
    key = "lights_out"
    title = "Lights Out"
    shape = "puzzle"

    def __init__(self, toggles: list = None):
        self.toggles = toggles

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.LIGHTS_OUT
        size = cfg["GRID_SIZE"]
        cells = size * size
        grid = [False] * cells

        # Scrambling by real moves keeps the board solvable.
        while not any(grid):
            toggles = self.toggles or pick_distinct(
                range(cells),
                random_between(ctx.rng, cfg["MIN_TOGGLES"], cfg["MAX_TOGGLES"]),
                ctx.rng,
            )
            for index in toggles:
                toggle_light(grid, index, size)
            if self.toggles and not any(grid):
                raise ValueError(f"Toggles {self.toggles} leave every light off")

        ctx.board.set_prompt("Turn all lights OFF! Clicking a light toggles it and its neighbors.")
        ctx.board.view = {"grid": grid, "size": size, "toggles": list(toggles)}

        def refresh():
            for i, button in enumerate(buttons):
                button.label = "#" if grid[i] else "."
                button.style["on"] = grid[i]

        def press(index):
            if ctx.settled or not any(grid):
                return
            toggle_light(grid, index, size)
            refresh()
            if not any(grid):
                ctx.board.set_prompt("All lights are OFF! Well done!")
                for button in buttons:
                    button.disabled = True
                ctx.timers.call_later(cfg["WIN_DELAY"], ctx.advance, label="lights_out.win")

        buttons = [ctx.board.add_button("", lambda i=i: press(i)) for i in range(cells)]
        refresh()
        return None


# ═══════════════════════════════════════════════════════════════
# Pipe Rotation
# ═══════════════════════════════════════════════════════════════

# Directions: 0=top, 1=right, 2=bottom, 3=left
STRAIGHT, CORNER = "straight", "corner"

_CORNER_ROTATION = {(0, 1): 0, (1, 2): 1, (2, 3): 2, (0, 3): 3}


@dataclass
class PipeCell:
    kind: str
    rotation: int
    correct_rotation: int = 0
    in_path: bool = False


def pipe_connections(kind: str, rotation: int) -> tuple:
    """Open sides of a pipe at a rotation."""
    rotation %= 4
    if kind == STRAIGHT:
        return (0, 2) if rotation in (0, 2) else (1, 3)
    return (rotation, (rotation + 1) % 4)


def direction(a: tuple, b: tuple) -> int:
    """Side of cell a that faces the adjacent cell b."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    return {(0, -1): 0, (1, 0): 1, (0, 1): 2, (-1, 0): 3}[(dx, dy)]


def generate_pipe_path(size: int, rng, attempts: int = 50, stretch: float = 1.5) -> list:
    """Weighted random walk from (0, 0) to the far corner without revisits.

    Walks shorter than stretch x the Manhattan distance are rejected; after
    `attempts` failures an L-shaped path along the top and right edges is used.
    """
    last = size - 1
    target = (last, last)
    min_length = int(last * 2 * stretch)

    for _ in range(attempts):
        path = [(0, 0)]
        visited = {(0, 0)}
        x, y = 0, 0
        while (x, y) != target:
            short = len(path) < min_length
            progress, explore = (2, 3) if short else (4, 1)
            moves = []
            if x < last:
                moves.append(((x + 1, y), progress))
            if y < last:
                moves.append(((x, y + 1), progress))
            if x > 0:
                moves.append(((x - 1, y), explore))
            if x < last:
                moves.append(((x + 1, y), explore))
            if y > 0:
                moves.append(((x, y - 1), explore))
            if y < last:
                moves.append(((x, y + 1), explore))
            moves = [(cell, w) for cell, w in moves if cell not in visited]
            if not moves:
                break
            x, y = weighted_choice(moves, rng)
            path.append((x, y))
            visited.add((x, y))
        if (x, y) == target and len(path) >= min_length:
            return path

    logger.debug(f"Pipe path: no walk after {attempts} attempts, using the edge path")
    return [(x, 0) for x in range(size)] + [(last, y) for y in range(1, size)]


def build_pipe_grid(path: list, size: int, rng, straight_probability: float = 0.6) -> list:
    """Grid of random decoy pipes with the solution path set to its correct rotations."""
    grid = [[PipeCell(STRAIGHT if rng.random() < straight_probability else CORNER,
                      rng.randrange(4))
             for _ in range(size)] for _ in range(size)]

    for i, pos in enumerate(path):
        cell = grid[pos[1]][pos[0]]
        cell.in_path = True
        came = direction(pos, path[i - 1]) if i > 0 else None
        going = direction(pos, path[i + 1]) if i < len(path) - 1 else None
        if came is None or going is None:
            side = going if came is None else came
            cell.kind, cell.correct_rotation = STRAIGHT, 0 if side in (0, 2) else 1
        elif abs(came - going) == 2:
            cell.kind, cell.correct_rotation = STRAIGHT, 0 if came in (0, 2) else 1
        else:
            cell.kind = CORNER
            cell.correct_rotation = _CORNER_ROTATION[tuple(sorted((came, going)))]
        cell.rotation = cell.correct_rotation
    return grid


def scramble_pipes(grid: list, path: list, count: int, rng) -> list:
    """Turn `count` solution pipes away from their correct rotation."""
    chosen = pick_distinct(range(len(path)), min(count, len(path)), rng)
    for index in chosen:
        x, y = path[index]
        cell = grid[y][x]
        if cell.kind == STRAIGHT:
            cell.rotation = 1 if cell.correct_rotation in (0, 2) else 0
        else:
            cell.rotation = (cell.correct_rotation + random_between(rng, 1, 3)) % 4
    return chosen


def path_connected(grid: list, path: list) -> bool:
    """Every consecutive pair of solution cells opens onto the other."""
    for a, b in zip(path, path[1:]):
        side = direction(a, b)
        if side not in pipe_connections(grid[a[1]][a[0]].kind, grid[a[1]][a[0]].rotation):
            return False
        if (side + 2) % 4 not in pipe_connections(grid[b[1]][b[0]].kind, grid[b[1]][b[0]].rotation):
            return False
    return True


class PipeRotationChallenge(Challenge):
    """Rotate pipes until the path from the top-left to the bottom-right is whole.

    Clicking a cell on the surface rotates it a quarter turn. A completed path
    advances on its own. CHECK gives up early: it advances on a complete path
    and fails otherwise.
    """

    key = "pipe_rotation"
    title = "Pipe Rotation"
    shape = "puzzle"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.PIPE_ROTATION
        size, cell_size = cfg["GRID_SIZE"], cfg["CELL_SIZE"]
        rng = ctx.rng

        path = generate_pipe_path(size, rng, cfg["PATH_ATTEMPTS"], cfg["PATH_STRETCH"])
        grid = build_pipe_grid(path, size, rng, cfg["STRAIGHT_PROBABILITY"])
        scrambled = scramble_pipes(
            grid, path, random_between(rng, cfg["MIN_SCRAMBLE"], cfg["MAX_SCRAMBLE"]), rng)
        state = {"solved": False}

        ctx.board.set_prompt("Rotate the pipes to connect the green start to the red end!")
        ctx.board.view = {"grid": grid, "path": path, "size": size,
                          "cell_size": cell_size, "scrambled": len(scrambled)}

        def solve():
            state["solved"] = True
            ctx.board.set_prompt("Connected!")
            check.disabled = True
            ctx.timers.call_later(cfg["WIN_DELAY"], ctx.advance, label="pipe_rotation.win")

        def rotate(px, py):
            if ctx.settled or state["solved"]:
                return
            x, y = int(px // cell_size), int(py // cell_size)
            grid[y][x].rotation = (grid[y][x].rotation + 1) % 4
            if path_connected(grid, path):
                solve()

        def check_now():
            if ctx.settled or state["solved"]:
                return
            if path_connected(grid, path):
                solve()
            else:
                ctx.fail()

        ctx.board.attach_surface(size * cell_size, size * cell_size, on_click=rotate)
        check = ctx.board.add_button("CHECK", check_now)
        return None
