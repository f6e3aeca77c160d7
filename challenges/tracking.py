"""
DONTCLOSETHIS — Tripwire Maze

Continuous pointer tracking. The maze is hidden until the pointer enters the
START zone; from then on every pointer position must stay on the drawn path
(or inside one of the zones). Each move is checked along the straight line
from the previous position, so jumping across a wall counts as touching it.
Leaving the surface or touching a wall fails.
Reaching the end zone advances and disarms the tripwire.
"""

import math

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext


def _in_rect(rect: dict, x: float, y: float) -> bool:
    return (rect["x"] <= x <= rect["x"] + rect["width"]
            and rect["y"] <= y <= rect["y"] + rect["height"])


def segment_distance(px, py, ax, ay, bx, by) -> float:
    """Distance from point P to segment AB."""
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def build_maze(rng, width: float, height: float, segments: int, zone_width: float,
               zone_height: float, margin: float) -> dict:
    """Start zone, end zone, and a polyline through `segments` random bends."""
    start = {"x": margin, "y": height / 2 - zone_height / 2,
             "width": zone_width, "height": zone_height}
    end = {"x": width - margin - zone_width, "y": height / 2 - zone_height / 2,
           "width": zone_width, "height": zone_height}
    mid_y = height / 2
    points = [(start["x"], mid_y), (start["x"] + zone_width, mid_y)]
    step = (end["x"] - start["x"] - zone_width) / segments
    for i in range(1, segments):
        points.append((start["x"] + zone_width + i * step,
                       height * 0.2 + rng.random() * height * 0.6))
    points.append((end["x"], mid_y))
    points.append((end["x"] + zone_width, mid_y))
    return {"start_zone": start, "end_zone": end, "path": points}


class TripwireMazeChallenge(Challenge):
    key = "tripwire_maze"
    title = "Tripwire Maze"
    shape = "tracking"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.TRIPWIRE_MAZE
        maze = build_maze(ctx.rng, cfg["WIDTH"], cfg["HEIGHT"], cfg["SEGMENTS"],
                          cfg["ZONE_WIDTH"], cfg["ZONE_HEIGHT"], cfg["MARGIN"])
        half_width = (cfg["PATH_WIDTH"] + 6) / 2     # path plus its border stroke
        points = maze["path"]
        state = {"armed": False, "done": False, "last": None}

        ctx.board.set_prompt("Navigate your mouse from START to the YES button "
                             "without touching the walls.")
        ctx.board.view = dict(maze, armed=False, revealed=False)

        def on_path(x, y) -> bool:
            if _in_rect(maze["start_zone"], x, y) or _in_rect(maze["end_zone"], x, y):
                return True
            return any(segment_distance(x, y, *a, *b) <= half_width
                       for a, b in zip(points, points[1:]))

        def first_wall_hit(x0, y0, x1, y1):
            """First off-path point on the straight move from (x0, y0) to (x1, y1)."""
            steps = max(1, math.ceil(math.hypot(x1 - x0, y1 - y0) / (half_width / 2)))
            for i in range(1, steps + 1):
                t = i / steps
                px, py = x0 + (x1 - x0) * t, y0 + (y1 - y0) * t
                if not on_path(px, py):
                    return px, py
            return None

        def trip(reason):
            state["armed"] = False
            state["done"] = True
            ctx.board.view["armed"] = False
            ctx.board.set_status(reason)
            ctx.fail()

        def on_move(x, y):
            if state["done"]:
                return
            if not state["armed"]:
                if _in_rect(maze["start_zone"], x, y):
                    state["armed"] = True
                    state["last"] = (x, y)
                    ctx.board.view.update(armed=True, revealed=True)
                return
            hit = first_wall_hit(*state["last"], x, y)
            state["last"] = (x, y)
            if hit is not None:
                trip(f"Touched the wall at ({hit[0]:.0f}, {hit[1]:.0f})")
            elif _in_rect(maze["end_zone"], x, y):
                state["armed"] = False
                state["done"] = True
                ctx.board.view["armed"] = False
                ctx.advance()

        def on_enter(x, y):
            if state["armed"] and not on_path(x, y):
                trip("Came back in through a wall")

        def on_leave():
            if state["armed"]:
                trip("Left the maze")

        ctx.board.attach_surface(cfg["WIDTH"], cfg["HEIGHT"],
                                 on_move=on_move, on_enter=on_enter, on_leave=on_leave)
        return None
