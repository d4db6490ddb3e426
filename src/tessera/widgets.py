"""Leaf widgets: label, button, text input, table and progress bar.

Widget callbacks receive their owning screen explicitly as the first
argument (``on_press(screen, button)``) rather than capturing it in a
closure, so a handler can be shared between screens and tested on its own.
Callbacks run inside the widget's ``handle_input`` capability, which means
the invocation gateway contains anything they raise.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from tessera.buffer import Canvas, iter_glyphs, text_width
from tessera.events import InputEvent
from tessera.geometry import Rect, Size
from tessera.layout import Alignment, TrackSpec, align_span, resolve_tracks
from tessera.node import Node, Screen
from tessera.style import Attr, Style

__all__ = ["Label", "Button", "TextInput", "Table", "ProgressBar"]


def _take(text: str, columns: int) -> str:
    """Longest prefix of *text* that fits in *columns*."""
    out: list[str] = []
    used = 0
    for g, width in iter_glyphs(text):
        if used + width > columns:
            break
        out.append(g)
        used += width
    return "".join(out)


class Label(Node):
    """Static text, one row per line."""

    def __init__(self, text: str = "", *, align: Alignment = Alignment.START, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._text = text
        self.align = Alignment(align)

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        if value != self._text:
            self._text = value
            self.mark_dirty()

    def measure_override(self, available: Size) -> Size:
        lines = self._text.split("\n") if self._text else []
        return Size(max((text_width(line) for line in lines), default=0), len(lines))

    def render(self, canvas: Canvas) -> None:
        for row, line in enumerate(self._text.split("\n")):
            if row >= self.height:
                break
            line = _take(line, self.width)
            x, _ = align_span(self.x, self.width, text_width(line), self.align)
            canvas.write_text(x, self.y + row, line, self.style, self.width)


class Button(Node):
    """A focusable push button activated by enter or space."""

    def __init__(
        self,
        label: str,
        on_press: Callable[[Screen | None, Button], Any] | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("focusable", True)
        super().__init__(**kwargs)
        self.label = label
        self.on_press = on_press
        self.presses = 0

    def measure_override(self, available: Size) -> Size:
        return Size(text_width(self.label) + 4, 1)

    def render(self, canvas: Canvas) -> None:
        style = self.style
        if self.screen is not None and self.screen.focused is self:
            style = style.with_attrs(Attr.REVERSE)
        text = f"[ {self.label} ]"
        x, _ = align_span(self.x, self.width, text_width(text), Alignment.CENTER)
        canvas.write_text(x, self.y, text, style, self.width)

    def handle_input(self, event: InputEvent) -> bool:
        if event.key not in ("enter", "space"):
            return False
        self.presses += 1
        if self.on_press is not None:
            self.on_press(self.screen, self)
        return True


class TextInput(Node):
    """Single-line text entry with horizontal scrolling."""

    def __init__(
        self,
        value: str = "",
        *,
        placeholder: str = "",
        on_change: Callable[[Screen | None, TextInput, str], Any] | None = None,
        on_submit: Callable[[Screen | None, TextInput, str], Any] | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("focusable", True)
        super().__init__(**kwargs)
        self._value = value
        self.cursor = len(value)
        self.placeholder = placeholder
        self.on_change = on_change
        self.on_submit = on_submit
        self._scroll = 0

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, value: str) -> None:
        self._value = value
        self.cursor = min(self.cursor, len(value))
        self.mark_dirty()

    def measure_override(self, available: Size) -> Size:
        return Size(max(text_width(self._value) + 1, text_width(self.placeholder)), 1)

    def _changed(self) -> None:
        self.mark_dirty()
        if self.on_change is not None:
            self.on_change(self.screen, self, self._value)

    def handle_input(self, event: InputEvent) -> bool:
        key = event.key
        if key == "enter":
            if self.on_submit is not None:
                self.on_submit(self.screen, self, self._value)
            return True
        if key == "backspace":
            if self.cursor > 0:
                self._value = self._value[: self.cursor - 1] + self._value[self.cursor :]
                self.cursor -= 1
                self._changed()
            return True
        if key == "delete":
            if self.cursor < len(self._value):
                self._value = self._value[: self.cursor] + self._value[self.cursor + 1 :]
                self._changed()
            return True
        if key in ("left", "right", "home", "end"):
            if key == "left":
                self.cursor = max(0, self.cursor - 1)
            elif key == "right":
                self.cursor = min(len(self._value), self.cursor + 1)
            elif key == "home":
                self.cursor = 0
            else:
                self.cursor = len(self._value)
            self.mark_dirty()
            return True
        if event.is_printable:
            self._value = self._value[: self.cursor] + event.data + self._value[self.cursor :]
            self.cursor += 1
            self._changed()
            return True
        return False

    def render(self, canvas: Canvas) -> None:
        if self.width <= 0:
            return
        focused = self.screen is not None and self.screen.focused is self
        if not self._value and not focused:
            dim = self.style.with_attrs(Attr.DIM)
            canvas.write_text(self.x, self.y, self.placeholder, dim, self.width)
            return

        # Keep the cursor inside the visible window.
        if self.cursor < self._scroll:
            self._scroll = self.cursor
        elif self.cursor >= self._scroll + self.width:
            self._scroll = self.cursor - self.width + 1
        visible = self._value[self._scroll : self._scroll + self.width]
        canvas.write_text(self.x, self.y, visible, self.style, self.width)
        if focused:
            col = self.x + text_width(self._value[self._scroll : self.cursor])
            under = self._value[self.cursor] if self.cursor < len(self._value) else " "
            canvas.write(col, self.y, under, self.style.with_attrs(Attr.REVERSE))


class Table(Node):
    """Rows of text under a header, with a keyboard-driven selection.

    Column widths use the grid track rules, so ``("Task", "*")`` and
    ``("Hours", 6)`` mix proportional and fixed columns.
    """

    def __init__(
        self,
        columns: Sequence[tuple[str, TrackSpec]],
        rows: Sequence[Sequence[str]] = (),
        *,
        on_select: Callable[[Screen | None, Table, int], Any] | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("focusable", True)
        super().__init__(**kwargs)
        self.columns = list(columns)
        self._rows: list[list[str]] = [list(r) for r in rows]
        self.selected = 0
        self.offset = 0
        self.on_select = on_select

    @property
    def rows(self) -> list[list[str]]:
        return self._rows

    def set_rows(self, rows: Sequence[Sequence[str]]) -> None:
        self._rows = [list(r) for r in rows]
        self.selected = max(0, min(self.selected, len(self._rows) - 1))
        self.mark_dirty()

    def column_widths(self, width: int) -> list[int]:
        gaps = max(0, len(self.columns) - 1)
        return resolve_tracks([spec for _, spec in self.columns], max(0, width - gaps))

    def measure_override(self, available: Size) -> Size:
        width = sum(text_width(header) for header, _ in self.columns)
        return Size(width + max(0, len(self.columns) - 1), len(self._rows) + 1)

    def _page(self) -> int:
        return max(1, self.height - 1)

    def handle_input(self, event: InputEvent) -> bool:
        if not self._rows:
            return False
        moves = {
            "up": -1,
            "down": 1,
            "pageup": -self._page(),
            "pagedown": self._page(),
            "home": -len(self._rows),
            "end": len(self._rows),
        }
        if event.key in moves:
            self.selected = max(0, min(len(self._rows) - 1, self.selected + moves[event.key]))
            self.mark_dirty()
            return True
        if event.key == "enter":
            if self.on_select is not None:
                self.on_select(self.screen, self, self.selected)
            return True
        return False

    def _write_row(self, canvas: Canvas, y: int, cells: Sequence[str], widths: list[int], style: Style) -> None:
        x = self.x
        for text, width in zip(cells, widths):
            canvas.write_text(x, y, _take(str(text), width), style, width)
            x += width + 1

    def render(self, canvas: Canvas) -> None:
        if self.height <= 0:
            return
        widths = self.column_widths(self.width)
        self._write_row(canvas, self.y, [h for h, _ in self.columns], widths, self.style.with_attrs(Attr.BOLD))

        page = self._page()
        if self.selected < self.offset:
            self.offset = self.selected
        elif self.selected >= self.offset + page:
            self.offset = self.selected - page + 1
        for line, index in enumerate(range(self.offset, min(len(self._rows), self.offset + page))):
            style = self.style
            if index == self.selected:
                style = style.with_attrs(Attr.REVERSE)
                canvas.fill(Rect(self.x, self.y + 1 + line, self.width, 1), " ", style)
            self._write_row(canvas, self.y + 1 + line, self._rows[index], widths, style)


class ProgressBar(Node):
    """A horizontal bar filled to ``value`` (0.0 - 1.0)."""

    def __init__(self, value: float = 0.0, *, show_percent: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._value = 0.0
        self.value = value
        self.show_percent = show_percent

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        self._value = max(0.0, min(1.0, float(value)))
        self.mark_dirty()

    def measure_override(self, available: Size) -> Size:
        return Size(0, 1)

    def render(self, canvas: Canvas) -> None:
        label = f" {round(self._value * 100):3d}%" if self.show_percent else ""
        bar_width = max(0, self.width - len(label))
        filled = int(bar_width * self._value)
        for col in range(bar_width):
            canvas.write(self.x + col, self.y, "█" if col < filled else "░", self.style)
        canvas.write_text(self.x + bar_width, self.y, label, self.style)
