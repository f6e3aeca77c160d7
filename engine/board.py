"""
DONTCLOSETHIS — Headless Board

The controls a challenge puts in front of the player: a prompt, a status
line, a set of buttons, and optionally a pointer surface. It stands in for
the page DOM, so challenges can be driven identically by the terminal front
end and by tests.

The sequencer resets the board between levels. Input only reaches handlers
registered on the current board, so a button from a finished level cannot
be clicked.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

logger = logging.getLogger("dontclosethis.board")


@dataclass(eq=False)
class Button:
    id: int
    label: str
    on_click: Callable[[], None]
    disabled: bool = False
    hidden: bool = False
    style: dict = field(default_factory=dict)


@dataclass
class PointerSurface:
    width: float
    height: float
    on_move: Optional[Callable[[float, float], None]] = None
    on_enter: Optional[Callable[[float, float], None]] = None
    on_leave: Optional[Callable[[], None]] = None
    on_click: Optional[Callable[[float, float], None]] = None
    inside: bool = False

    def contains(self, x: float, y: float) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height


class Board:
    """Mutable model of one level's interactive surface."""

    def __init__(self):
        self.level: int = 0
        self.prompt: str = ""
        self.status: str = ""
        self.buttons: list[Button] = []
        self.surface: Optional[PointerSurface] = None
        self.view: dict = {}          # free-form state for renderers
        self._next_id = 1

    def reset(self, level: int = 0):
        self.level = level
        self.prompt = ""
        self.status = ""
        self.buttons = []
        self.surface = None
        self.view = {}

    # ── Building ──────────────────────────────────────────────

    def set_prompt(self, text: str):
        self.prompt = text

    def set_status(self, text: str):
        self.status = text

    def add_button(self, label: str, on_click: Callable[[], None], **style) -> Button:
        button = Button(self._next_id, label, on_click, style=style)
        self._next_id += 1
        self.buttons.append(button)
        return button

    def remove_button(self, button: Button):
        if button in self.buttons:
            self.buttons.remove(button)

    def attach_surface(self, width: float, height: float,
                       on_move=None, on_enter=None, on_leave=None,
                       on_click=None) -> PointerSurface:
        self.surface = PointerSurface(width, height, on_move, on_enter, on_leave, on_click)
        return self.surface

    def visible_buttons(self) -> list[Button]:
        return [b for b in self.buttons if not b.hidden]

    # ── Input ─────────────────────────────────────────────────

    def click(self, target: Union[int, str, Button]) -> bool:
        """Click a visible button by 1-based position, label, or object.

        Returns True if a handler ran. Disabled, hidden and stale buttons are
        ignored.
        """
        button = self._resolve(target)
        if button is None or button.disabled or button.hidden:
            return False
        button.on_click()
        return True

    def _resolve(self, target) -> Optional[Button]:
        visible = self.visible_buttons()
        if isinstance(target, Button):
            return target if target in visible else None
        if isinstance(target, int):
            if 1 <= target <= len(visible):
                return visible[target - 1]
            return None
        for button in visible:
            if button.label == target and not button.disabled:
                return button
        return None

    def pointer_move(self, x: float, y: float):
        surface = self.surface
        if surface is None:
            return
        if not surface.contains(x, y):
            if surface.inside:
                self.pointer_leave()
            return
        if not surface.inside:
            surface.inside = True
            if surface.on_enter:
                surface.on_enter(x, y)
            if self.surface is not surface:
                return
        if surface.on_move:
            surface.on_move(x, y)

    def pointer_leave(self):
        surface = self.surface
        if surface is None or not surface.inside:
            return
        surface.inside = False
        if surface.on_leave:
            surface.on_leave()

    def pointer_click(self, x: float, y: float) -> bool:
        """Click the pointer surface at (x, y). Returns True if a handler ran."""
        surface = self.surface
        if surface is None or surface.on_click is None or not surface.contains(x, y):
            return False
        surface.on_click(x, y)
        return True
