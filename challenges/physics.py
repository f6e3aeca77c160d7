"""
DONTCLOSETHIS — Pong

Per-frame reaction level. START begins the animation loop; the paddle follows
the pointer's x position. Ten paddle hits advance, a ball past the paddle
fails. The loop stops on either outcome and never resumes.
"""

from dataclasses import dataclass

from config.settings import LevelConfig
from challenges.base import Challenge, LevelContext


@dataclass
class Ball:
    x: float
    y: float
    dx: float
    dy: float
    radius: float


@dataclass
class Paddle:
    x: float
    y: float
    width: float
    height: float


def step_ball(ball: Ball, paddle: Paddle, width: float, height: float) -> str:
    """Advance one frame. Returns "hit", "miss" or ""."""
    ball.x += ball.dx
    ball.y += ball.dy

    if ball.x - ball.radius < 0 or ball.x + ball.radius > width:
        ball.dx = -ball.dx
    if ball.y - ball.radius < 0:
        ball.dy = -ball.dy

    if (ball.dy > 0
            and ball.y + ball.radius >= paddle.y
            and ball.y - ball.radius <= paddle.y + paddle.height
            and paddle.x <= ball.x <= paddle.x + paddle.width):
        ball.dy = -abs(ball.dy)
        # Where the ball lands on the paddle steers it: -4 at the left edge, +4 at the right.
        ball.dx = ((ball.x - paddle.x) / paddle.width - 0.5) * 8
        return "hit"

    if ball.y - ball.radius > height:
        return "miss"
    return ""


class PongChallenge(Challenge):
    key = "pong"
    title = "Pong"
    shape = "physics"

    def setup(self, ctx: LevelContext):
        cfg = LevelConfig.PONG
        width, height = cfg["WIDTH"], cfg["HEIGHT"]
        target = cfg["HITS_TO_WIN"]
        paddle = Paddle(width / 2 - cfg["PADDLE_WIDTH"] / 2, height - cfg["PADDLE_OFFSET"],
                        cfg["PADDLE_WIDTH"], cfg["PADDLE_HEIGHT"])
        ball = Ball(width / 2, height / 2, cfg["BALL_SPEED"], -cfg["BALL_SPEED"],
                    cfg["BALL_RADIUS"])
        state = {"running": False, "hits": 0, "frames": 0}

        ctx.board.set_prompt("Survive 10 hits or your tab closes!\n"
                             "Move your mouse to control the paddle")
        ctx.board.set_status(f"Hits: 0/{target}")
        ctx.board.view = {"ball": ball, "paddle": paddle, "state": state}

        def move_paddle(x, y):
            paddle.x = min(max(0.0, x - paddle.width / 2), width - paddle.width)

        def frame():
            if not state["running"]:
                return
            state["frames"] += 1
            result = step_ball(ball, paddle, width, height)
            if result == "hit":
                state["hits"] += 1
                ctx.board.set_status(f"Hits: {state['hits']}/{target}")
                if state["hits"] % cfg["SPEEDUP_EVERY"] == 0:
                    ball.dx *= cfg["SPEEDUP"]
                    ball.dy *= cfg["SPEEDUP"]
                if state["hits"] >= target:
                    state["running"] = False
                    ctx.timers.call_later(cfg["WIN_DELAY"], ctx.advance, label="pong.win")
                    return
            elif result == "miss":
                state["running"] = False
                ctx.fail()
                return
            ctx.timers.request_frame(frame, label="pong.frame")

        def start():
            ctx.board.remove_button(start_button)
            state["running"] = True
            frame()

        def stop():
            state["running"] = False

        ctx.board.attach_surface(width, height, on_move=move_paddle)
        start_button = ctx.board.add_button("START", start)
        return stop
