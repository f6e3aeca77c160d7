#!/usr/bin/env python3
"""
DONTCLOSETHIS — Terminal Front End

Usage:
    python -m tools.play_cli
    python -m tools.play_cli --name ACE --level 5 --debug
    python -m tools.play_cli --api --seed 42

Commands:
    click N         click the N-th visible button
    press LABEL     click the first button with that label
    move X Y        move the pointer on the level's surface
    tap X Y         click the level's surface
    leave           move the pointer off the surface
    wait S          let S seconds of real time pass
    frame N         let N animation frames pass
    scores          local top 10
    quit

Debug commands (--debug or DEBUG_PANEL=true):
    :goto N  :skip  :win  :die  :time +10  :time -10  :reset-time
    :clear-scores  :clear-progress  :clear-all

Real time keeps running while you type. Everything that came due in the
meantime fires, in order, before your command is applied.
"""

import argparse
import logging
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config.settings import ApiConfig, GameConfig
from engine.errors import InvalidPlayerTag, SequencerStateError
from engine.reporter import OutcomeReporter
from engine.scoreboard import Scoreboard
from engine.sequencer import Sequencer
from engine.storage import MemoryStore, SqliteStore
from engine.timers import FRAME_INTERVAL, MonotonicClock, Scheduler

logger = logging.getLogger("dontclosethis.cli")
console = Console()

PIPE_GLYPHS = {
    ("straight", 0): "│", ("straight", 1): "─", ("straight", 2): "│", ("straight", 3): "─",
    ("corner", 0): "└", ("corner", 1): "┌", ("corner", 2): "┐", ("corner", 3): "┘",
}


# ═══════════════════════════════════════════════════════════════
# Rendering
# ═══════════════════════════════════════════════════════════════

def _pipe_grid(view: dict) -> str:
    lines = []
    for row in view["grid"]:
        lines.append(" ".join(PIPE_GLYPHS[(cell.kind, cell.rotation % 4)] for cell in row))
    cs = view["cell_size"]
    lines.append(f"[dim]tap X Y: cells are {cs}x{cs}, top-left is (0, 0)[/dim]")
    return "\n".join(lines)


def _view_lines(view: dict) -> list[str]:
    lines = []
    if "grid" in view and "cell_size" in view:
        lines.append(_pipe_grid(view))
    if "ball" in view:
        ball, paddle = view["ball"], view["paddle"]
        lines.append(f"[dim]ball ({ball.x:.0f}, {ball.y:.0f})  "
                     f"paddle x {paddle.x:.0f}-{paddle.x + paddle.width:.0f}[/dim]")
    if "start_zone" in view:
        zone = view["start_zone"] if not view.get("armed") else view["end_zone"]
        label = "END" if view.get("armed") else "START"
        lines.append(f"[dim]{label} zone at ({zone['x']:.0f}, {zone['y']:.0f}) "
                     f"{zone['width']:.0f}x{zone['height']:.0f}[/dim]")
        if view.get("revealed"):
            path = " → ".join(f"({x:.0f},{y:.0f})" for x, y in view["path"])
            lines.append(f"[dim]path: {path}[/dim]")
    if view.get("image_url"):
        lines.append(f"[dim]{view['image_url']}[/dim]")
    return lines


def render(seq: Sequencer):
    board = seq.board
    body = [board.prompt or ""]
    if board.status:
        body.append(f"\n[bold yellow]{board.status}[/bold yellow]")
    body.extend(_view_lines(board.view))
    if board.buttons:
        labels = []
        for i, button in enumerate(board.visible_buttons(), start=1):
            text = f"[{i}] {button.label or ' '}"
            labels.append(f"[dim]{text}[/dim]" if button.disabled else f"[bold]{text}[/bold]")
        body.append("\n" + "  ".join(labels))
    if board.surface is not None:
        body.append(f"[dim]surface {board.surface.width:.0f}x{board.surface.height:.0f}[/dim]")

    challenge = seq.current_challenge()
    title = f"Level {seq.current_level}/{seq.level_count}"
    if challenge:
        title += f" — {challenge.title}"
    console.print(Panel("\n".join(body), title=title,
                        subtitle=f"{seq.elapsed_seconds()}s", border_style="cyan"))


def show_scores(scoreboard: Scoreboard):
    table = Table(title="Local Top 10")
    table.add_column("#", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("Level", justify="right")
    table.add_column("Time", justify="right")
    for i, record in enumerate(scoreboard.top(), start=1):
        elapsed = "-" if record.elapsed_seconds is None else f"{record.elapsed_seconds}s"
        table.add_row(str(i), record.player_tag, str(record.level_reached), elapsed)
    console.print(table)


def show_global(reporter: OutcomeReporter, player_tag: str):
    snapshot = reporter.fetch_leaderboard(player_tag=player_tag)
    if snapshot is None:
        console.print("[dim]Global leaderboard unavailable[/dim]")
        return
    table = Table(title=f"Global Top 10 ({snapshot.stats.total_players} players)")
    table.add_column("#", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("Level", justify="right")
    table.add_column("Time", justify="right")
    for entry in snapshot.global_top:
        table.add_row(str(entry.rank), entry.player_name, str(entry.level),
                      f"{entry.time_elapsed}s")
    console.print(table)
    if snapshot.player_rank:
        console.print(f"Your best: rank #{snapshot.player_rank.rank}")


# ═══════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════

def _floats(args: list[str], count: int) -> list[float]:
    if len(args) != count:
        raise ValueError(f"expected {count} number(s)")
    return [float(a) for a in args]


def wait(seq: Sequencer, seconds: float):
    deadline = seq.clock.now() + max(0.0, seconds)
    seq.scheduler.run_forever(until=lambda: seq.clock.now() >= deadline or not seq.active)


def dispatch(seq: Sequencer, line: str, debug: bool) -> bool:
    """Apply one command. Returns False when the player quits."""
    parts = line.split()
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]
    board = seq.board

    if cmd in ("quit", "exit", "q"):
        return False
    if cmd == "click":
        if not args or not args[0].isdigit() or not board.click(int(args[0])):
            console.print("[yellow]Nothing to click there[/yellow]")
    elif cmd == "press":
        if not board.click(" ".join(args)):
            console.print("[yellow]No clickable button with that label[/yellow]")
    elif cmd == "move":
        board.pointer_move(*_floats(args, 2))
    elif cmd == "tap":
        if not board.pointer_click(*_floats(args, 2)):
            console.print("[yellow]Nothing to tap there[/yellow]")
    elif cmd == "leave":
        board.pointer_leave()
    elif cmd == "wait":
        wait(seq, _floats(args, 1)[0])
    elif cmd == "frame":
        wait(seq, int(args[0] if args else 1) * FRAME_INTERVAL)
    elif cmd in ("scores", ":scores"):
        show_scores(seq.scoreboard)
    elif cmd.startswith(":"):
        if not debug:
            console.print("[yellow]Debug commands are off (use --debug)[/yellow]")
        else:
            debug_command(seq, cmd, args)
    else:
        console.print(f"[yellow]Unknown command: {cmd}[/yellow]")
    return True


def debug_command(seq: Sequencer, cmd: str, args: list[str]):
    if cmd == ":goto":
        if not args or not args[0].isdigit() or not seq.goto(int(args[0])):
            console.print(f"[yellow]Level must be 1-{seq.level_count}[/yellow]")
    elif cmd == ":skip":
        seq.skip()
    elif cmd == ":win":
        seq.force_victory()
    elif cmd == ":die":
        seq.force_fail()
    elif cmd == ":time":
        seq.adjust_clock(_floats(args, 1)[0] if args else GameConfig.DEBUG_TIME_STEP)
    elif cmd == ":reset-time":
        seq.reset_clock()
    elif cmd == ":clear-scores":
        seq.clear_scores()
        console.print("[dim]Local scores cleared[/dim]")
    elif cmd == ":clear-progress":
        seq.clear_progress()
        console.print("[dim]Progress cleared[/dim]")
    elif cmd == ":clear-all":
        seq.clear_all()
        console.print("[dim]All saved data cleared[/dim]")
    else:
        console.print(f"[yellow]Unknown debug command: {cmd}[/yellow]")


# ═══════════════════════════════════════════════════════════════
# Main loop
# ═══════════════════════════════════════════════════════════════

def ask_player_tag(scoreboard: Scoreboard, preset: str = None) -> str:
    if preset:
        try:
            return scoreboard.set_player_tag(preset)
        except InvalidPlayerTag as e:
            console.print(f"[yellow]{e}[/yellow]")
    while True:
        raw = Prompt.ask("Enter your name", default=scoreboard.player_tag())
        try:
            return scoreboard.set_player_tag(raw)
        except InvalidPlayerTag as e:
            console.print(f"[yellow]{e}[/yellow]")


def play(seq: Sequencer, reporter: OutcomeReporter, level: int, tag: str, debug: bool) -> bool:
    """Run one session to its end. Returns False if the player quit mid-run."""
    seq.start(level, player_tag=tag)
    while seq.active:
        seq.scheduler.run_due()
        if not seq.active:
            break
        render(seq)
        try:
            line = console.input("[bold cyan]> [/bold cyan]")
        except (EOFError, KeyboardInterrupt):
            return False
        seq.scheduler.run_due()
        if not seq.active:
            console.print("[red]Too late.[/red]")
            break
        try:
            if not dispatch(seq, line, debug):
                return False
        except (ValueError, SequencerStateError) as e:
            console.print(f"[yellow]{e}[/yellow]")

    # Reporter hand-off is queued for the next tick.
    seq.scheduler.run_due()
    outcome = seq.outcome
    if outcome is not None:
        if outcome.victory:
            console.print(Panel(f"You kept the tab open through all {outcome.level_count} levels "
                                f"in {outcome.elapsed_seconds}s.",
                                title="🏆 VICTORY", border_style="green"))
        else:
            console.print(Panel(f"Level {outcome.level_reached} closed your tab "
                                f"after {outcome.elapsed_seconds}s.",
                                title="💀 TAB CLOSED", border_style="red"))
    for message in seq.scoreboard.take_landing_messages():
        console.print(f"[bold]{message}[/bold]")
    show_scores(seq.scoreboard)
    if reporter.enabled:
        show_global(reporter, tag)
    return True


def main():
    parser = argparse.ArgumentParser(description="Don't let the tab close")
    parser.add_argument("--name", type=str, help="Player tag (1-10 characters)")
    parser.add_argument("--level", type=int, default=1, help="Starting level (debug)")
    parser.add_argument("--state-db", type=str, default=GameConfig.STATE_DB_PATH,
                        help="Local save file")
    parser.add_argument("--no-save", action="store_true", help="Keep nothing between runs")
    parser.add_argument("--api", action="store_true", help="Report to the remote leaderboard")
    parser.add_argument("--api-url", type=str, default=ApiConfig.BASE_URL)
    parser.add_argument("--seed", type=int, help="Seed the level randomness")
    parser.add_argument("--debug", action="store_true", default=GameConfig.DEBUG_ENABLED)
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    for _noisy in ("httpx", "httpcore"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)

    store = MemoryStore() if args.no_save else SqliteStore(args.state_db)
    logger.debug(f"Local state: {'memory' if args.no_save else args.state_db}")
    clock = MonotonicClock()
    reporter = OutcomeReporter(store, base_url=args.api_url,
                               enabled=args.api or ApiConfig.ENABLED, clock=clock)
    seq = Sequencer(store=store, scheduler=Scheduler(clock), reporter=reporter,
                    rng=random.Random(args.seed))

    console.print("\n[bold red]⚠ DON'T CLOSE THIS[/bold red]\n")
    for message in seq.scoreboard.take_landing_messages():
        console.print(f"[bold]{message}[/bold]")
    if reporter.enabled and reporter.pending():
        sent = reporter.on_online()
        console.print(f"[dim]Sent {sent} queued score(s)[/dim]")

    tag = ask_player_tag(seq.scoreboard, args.name)
    level = args.level if args.debug else 1
    try:
        while play(seq, reporter, level, tag, args.debug):
            if not Confirm.ask("Play again?", default=True):
                break
            level = 1
    finally:
        reporter.close()
        if isinstance(store, SqliteStore):
            store.close()


if __name__ == "__main__":
    main()
