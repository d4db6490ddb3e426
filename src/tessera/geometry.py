"""Integer rectangles, sizes and edge thicknesses in cell units."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Size:
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class Thickness:
    """Per-edge widths used for borders and padding."""

    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @classmethod
    def of(cls, value: int | tuple[int, ...] | Thickness | None) -> Thickness:
        """Coerce ``n``, ``(h, v)`` or ``(l, t, r, b)`` into a ``Thickness``."""
        if value is None:
            return cls()
        if isinstance(value, Thickness):
            return value
        if isinstance(value, int):
            return cls(value, value, value, value)
        if len(value) == 2:
            return cls(value[0], value[1], value[0], value[1])
        if len(value) == 4:
            return cls(*value)
        raise ValueError(f"thickness needs 1, 2 or 4 values, got {value!r}")

    @property
    def horizontal(self) -> int:
        return self.left + self.right

    @property
    def vertical(self) -> int:
        return self.top + self.bottom

    def __add__(self, other: Thickness) -> Thickness:
        return Thickness(
            self.left + other.left,
            self.top + other.top,
            self.right + other.right,
            self.bottom + other.bottom,
        )


@dataclass(frozen=True)
class Rect:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def intersect(self, other: Rect) -> Rect:
        x = max(self.x, other.x)
        y = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        return Rect(x, y, max(0, right - x), max(0, bottom - y))

    def deflate(self, thickness: Thickness) -> Rect:
        """Shrink by *thickness*, never below zero size."""
        return Rect(
            self.x + thickness.left,
            self.y + thickness.top,
            max(0, self.width - thickness.horizontal),
            max(0, self.height - thickness.vertical),
        )
