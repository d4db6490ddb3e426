"""Double-buffered cell renderer with diff-based repaint.

``DiffRenderer`` owns two :class:`CellBuffer` instances of identical size:

* ``back``  -- the frame currently being drawn.
* ``front`` -- what the output surface is known to display.

:meth:`DiffRenderer.present` scans both, emits only the positions whose glyph
or style differ, and then synchronises ``front`` from ``back`` by assigning
cell fields in place.  Buffers are reallocated only by :meth:`resize`, which
also schedules one full repaint because the front buffer no longer reflects
anything that was really painted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from tessera.buffer import CellBuffer
from tessera.style import DEFAULT_STYLE, Attr, Color, Style

__all__ = ["CellUpdate", "CellSink", "DiffRenderer"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellUpdate:
    """A positioned cell write destined for the output surface."""

    x: int
    y: int
    glyph: str
    fg: Color = None
    bg: Color = None
    attrs: Attr = Attr.NONE


class CellSink(Protocol):
    """The physical output boundary: receives positioned cell writes."""

    def write_cells(self, updates: Sequence[CellUpdate]) -> None: ...

    def clear(self) -> None: ...


class DiffRenderer:
    """Front/back cell buffers plus the diff that flushes one to the other."""

    def __init__(self, sink: CellSink, width: int, height: int) -> None:
        self.sink = sink
        self.front = CellBuffer(width, height)
        self.back = CellBuffer(width, height)

        # Nothing is known about the surface before the first frame.
        self._full_repaint: bool = True

        # Metrics
        self.frames: int = 0
        self.full_repaints: int = 0
        self.cells_emitted: int = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.back.width

    @property
    def height(self) -> int:
        return self.back.height

    @property
    def full_repaint_pending(self) -> bool:
        return self._full_repaint

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def begin_frame(self, style: Style = DEFAULT_STYLE) -> None:
        """Blank the back buffer in place before a frame is drawn."""
        self.back.clear(style)

    def write(self, x: int, y: int, glyph: str, style: Style = DEFAULT_STYLE) -> bool:
        return self.back.write(x, y, glyph, style)

    def write_text(self, x: int, y: int, text: str, style: Style = DEFAULT_STYLE) -> int:
        return self.back.write_text(x, y, text, style)

    def invalidate(self) -> None:
        """Force the next :meth:`present` to repaint every cell."""
        self._full_repaint = True

    # ------------------------------------------------------------------
    # Present / resize
    # ------------------------------------------------------------------

    def present(self) -> list[CellUpdate]:
        """Flush the back buffer to the sink and return the emitted updates.

        A differential pass emits exactly the positions whose cell differs
        from the front buffer; a pending full repaint emits every cell after
        clearing the sink.
        """
        full = self._full_repaint
        updates: list[CellUpdate] = []
        front_cells = self.front.cells
        width = self.back.width

        for index, cell in enumerate(self.back.cells):
            shown = front_cells[index]
            if full or not cell.same_as(shown):
                y, x = divmod(index, width)
                updates.append(
                    CellUpdate(x, y, cell.glyph, cell.fg, cell.bg, cell.attrs)
                )
                shown.copy_from(cell)

        self.frames += 1
        if full:
            self._full_repaint = False
            self.full_repaints += 1
            self.sink.clear()
        if updates:
            self.cells_emitted += len(updates)
            self.sink.write_cells(updates)
        return updates

    def resize(self, width: int, height: int, force: bool = False) -> bool:
        """Reallocate both buffers at the new size and schedule a full repaint.

        Returns ``False`` (and does nothing) when the size is unchanged and
        *force* is not set.
        """
        width = max(0, width)
        height = max(0, height)
        if not force and width == self.width and height == self.height:
            return False
        logger.debug("resize %dx%d -> %dx%d", self.width, self.height, width, height)
        # Both buffers are swapped together so they never disagree on size.
        self.front, self.back = CellBuffer(width, height), CellBuffer(width, height)
        self._full_repaint = True
        return True
