"""Cell styling: colors and attribute flags."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

# None  -> terminal default
# int   -> 256-color palette index
# tuple -> 24-bit RGB
Color = Union[None, int, tuple[int, int, int]]


class Attr(enum.IntFlag):
    """Text attribute bitset."""

    NONE = 0
    BOLD = 1
    DIM = 2
    ITALIC = 4
    UNDERLINE = 8
    BLINK = 16
    REVERSE = 32
    STRIKE = 64


@dataclass(frozen=True)
class Style:
    """Foreground, background and attributes applied to a cell."""

    fg: Color = None
    bg: Color = None
    attrs: Attr = Attr.NONE

    def merge(self, other: Style | None) -> Style:
        """Overlay the non-default fields of *other* onto this style."""
        if other is None:
            return self
        return Style(
            fg=other.fg if other.fg is not None else self.fg,
            bg=other.bg if other.bg is not None else self.bg,
            attrs=self.attrs | other.attrs,
        )

    def with_attrs(self, attrs: Attr) -> Style:
        return Style(self.fg, self.bg, self.attrs | attrs)


DEFAULT_STYLE = Style()
