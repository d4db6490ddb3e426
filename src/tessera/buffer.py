"""Character-cell grid and clipped drawing surface.

``CellBuffer`` is a fixed-size, row-major grid of mutable ``Cell`` objects.
Once allocated, cells are only ever mutated in place -- nothing in the draw
path creates new ``Cell`` instances, so a steady-state frame allocates no cell
storage.  ``Canvas`` is the view handed to component ``render`` callables: it
clips every write to a rectangle inside the buffer.
"""

from __future__ import annotations

from typing import Iterator

import grapheme
import wcwidth as _wcwidth

from tessera.geometry import Rect
from tessera.style import DEFAULT_STYLE, Attr, Color, Style

__all__ = [
    "Cell",
    "CellBuffer",
    "Canvas",
    "glyph_width",
    "iter_glyphs",
    "text_width",
]

# Glyph stored in the cell to the right of a double-width glyph.
CONTINUATION = ""


# ---------------------------------------------------------------------------
# Glyph measurement
# ---------------------------------------------------------------------------


def glyph_width(glyph: str) -> int:
    """Return the number of columns *glyph* occupies (0, 1 or 2)."""
    if not glyph:
        return 0
    if len(glyph) == 1:
        cp = ord(glyph)
        # Control characters
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(glyph), 0)
    width = _wcwidth.wcswidth(glyph)
    if width < 0:
        # Unknown sequences: size by the first codepoint
        width = _wcwidth.wcwidth(glyph[0])
    return max(0, min(width, 2))


def iter_glyphs(text: str) -> Iterator[tuple[str, int]]:
    """Yield ``(grapheme, width)`` pairs, skipping zero-width clusters."""
    for g in grapheme.graphemes(text):
        width = glyph_width(g)
        if width > 0:
            yield g, width


def text_width(text: str) -> int:
    return sum(width for _, width in iter_glyphs(text))


# ---------------------------------------------------------------------------
# Cell
# ---------------------------------------------------------------------------


class Cell:
    """One terminal position: glyph plus style fields."""

    __slots__ = ("glyph", "fg", "bg", "attrs")

    def __init__(
        self,
        glyph: str = " ",
        fg: Color = None,
        bg: Color = None,
        attrs: Attr = Attr.NONE,
    ) -> None:
        self.glyph = glyph
        self.fg = fg
        self.bg = bg
        self.attrs = attrs

    def set(self, glyph: str, fg: Color, bg: Color, attrs: Attr) -> None:
        self.glyph = glyph
        self.fg = fg
        self.bg = bg
        self.attrs = attrs

    def copy_from(self, other: Cell) -> None:
        """Assign *other*'s fields to this cell without replacing it."""
        self.glyph = other.glyph
        self.fg = other.fg
        self.bg = other.bg
        self.attrs = other.attrs

    def same_as(self, other: Cell) -> bool:
        return (
            self.glyph == other.glyph
            and self.fg == other.fg
            and self.bg == other.bg
            and self.attrs == other.attrs
        )

    @property
    def style(self) -> Style:
        return Style(self.fg, self.bg, self.attrs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cell):
            return NotImplemented
        return self.same_as(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Cell({self.glyph!r}, fg={self.fg!r}, bg={self.bg!r}, attrs={self.attrs!r})"


# ---------------------------------------------------------------------------
# CellBuffer
# ---------------------------------------------------------------------------


class CellBuffer:
    """A width x height grid of cells stored row-major in a flat list."""

    def __init__(self, width: int, height: int, style: Style = DEFAULT_STYLE) -> None:
        self.width = max(0, width)
        self.height = max(0, height)
        self.cells: list[Cell] = [
            Cell(" ", style.fg, style.bg, style.attrs)
            for _ in range(self.width * self.height)
        ]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> Cell | None:
        if not self.in_bounds(x, y):
            return None
        return self.cells[y * self.width + x]

    def write(self, x: int, y: int, glyph: str, style: Style = DEFAULT_STYLE) -> bool:
        """Set the cell at ``(x, y)`` in place.  Out-of-bounds writes are clipped.

        Returns ``True`` if a cell was written.
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            return False
        self.cells[y * self.width + x].set(glyph, style.fg, style.bg, style.attrs)
        return True

    def write_text(
        self,
        x: int,
        y: int,
        text: str,
        style: Style = DEFAULT_STYLE,
        max_width: int | None = None,
    ) -> int:
        """Write *text* starting at ``(x, y)``; return columns consumed."""
        return _write_text(self.write, x, y, text, style, max_width, 0, self.width)

    def fill(self, rect: Rect, glyph: str = " ", style: Style = DEFAULT_STYLE) -> None:
        area = rect.intersect(Rect(0, 0, self.width, self.height))
        for row in range(area.y, area.bottom):
            base = row * self.width
            for col in range(area.x, area.right):
                self.cells[base + col].set(glyph, style.fg, style.bg, style.attrs)

    def clear(self, style: Style = DEFAULT_STYLE) -> None:
        fg, bg, attrs = style.fg, style.bg, style.attrs
        for cell in self.cells:
            cell.set(" ", fg, bg, attrs)

    def copy_from(self, other: CellBuffer) -> None:
        """Copy every cell of an equally sized buffer, in place."""
        if other.width != self.width or other.height != self.height:
            raise ValueError(
                f"buffer size mismatch: {self.width}x{self.height} "
                f"vs {other.width}x{other.height}"
            )
        for dst, src in zip(self.cells, other.cells):
            dst.copy_from(src)

    def rows(self) -> list[str]:
        """Plain-text snapshot of the glyphs, one string per row."""
        out: list[str] = []
        for y in range(self.height):
            row = self.cells[y * self.width : (y + 1) * self.width]
            out.append("".join(cell.glyph for cell in row))
        return out


def _write_text(
    write,
    x: int,
    y: int,
    text: str,
    style: Style,
    max_width: int | None,
    left: int,
    right: int,
) -> int:
    # A wide glyph is never split: past the right edge it is dropped, and a
    # left half hidden behind the left edge leaves a blank.
    col = x
    limit = right if max_width is None else min(right, x + max(0, max_width))
    for g, width in iter_glyphs(text):
        if col + width > limit:
            break
        if width == 2 and col == left - 1:
            write(col + 1, y, " ", style)
        else:
            write(col, y, g, style)
            if width == 2:
                write(col + 1, y, CONTINUATION, style)
        col += width
    return col - x


# ---------------------------------------------------------------------------
# Canvas
# ---------------------------------------------------------------------------


class Canvas:
    """A clipped drawing view over a :class:`CellBuffer`.

    Coordinates are absolute (buffer coordinates); writes outside ``clip`` are
    silently dropped, which is what lets partially scrolled or overflowing
    content draw without bounds checks at every call site.
    """

    def __init__(self, buffer: CellBuffer, clip: Rect | None = None) -> None:
        full = Rect(0, 0, buffer.width, buffer.height)
        self.buffer = buffer
        self.clip = full if clip is None else clip.intersect(full)

    def clipped(self, rect: Rect) -> Canvas:
        """Return a canvas restricted to ``clip & rect``."""
        return Canvas(self.buffer, self.clip.intersect(rect))

    def write(self, x: int, y: int, glyph: str, style: Style = DEFAULT_STYLE) -> bool:
        if not self.clip.contains(x, y):
            return False
        return self.buffer.write(x, y, glyph, style)

    def write_text(
        self,
        x: int,
        y: int,
        text: str,
        style: Style = DEFAULT_STYLE,
        max_width: int | None = None,
    ) -> int:
        clip = self.clip
        return _write_text(self.write, x, y, text, style, max_width, clip.x, clip.right)

    def fill(self, rect: Rect, glyph: str = " ", style: Style = DEFAULT_STYLE) -> None:
        self.buffer.fill(rect.intersect(self.clip), glyph, style)
