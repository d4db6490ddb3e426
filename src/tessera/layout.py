"""Layout strategies: stack and grid panels with star-sized tracks.

Every strategy implements the two-pass protocol:

* ``measure(panel, available)`` -- bottom-up; asks each visible child for its
  desired size given the space on offer and returns the panel content's
  desired size.
* ``arrange(panel, content)`` -- top-down; assigns every visible child its
  final bounds inside the panel's content rectangle.

Children stretch by default, so a tree of leaves with no preferred size is
laid out exactly as a single stretch-fill pass would lay it out.  Bad track
definitions are clamped and logged rather than raised: one broken panel must
never blank the whole frame.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import TYPE_CHECKING, Iterable, Protocol, Sequence, Union

from tessera.errors import ConfigurationError, LayoutInconsistency
from tessera.geometry import Rect, Size

if TYPE_CHECKING:
    from tessera.node import Node, Panel

__all__ = [
    "Alignment",
    "Orientation",
    "TrackDef",
    "TrackSpec",
    "resolve_tracks",
    "track_offsets",
    "align_span",
    "LayoutStrategy",
    "StackLayout",
    "GridLayout",
]

logger = logging.getLogger(__name__)


class Alignment(str, enum.Enum):
    STRETCH = "stretch"
    START = "start"
    CENTER = "center"
    END = "end"


class Orientation(str, enum.Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


# ---------------------------------------------------------------------------
# Track definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrackDef:
    """A grid row or column: a fixed cell count or a proportional star weight."""

    value: float = 1.0
    star: bool = True

    @classmethod
    def fixed(cls, size: int) -> TrackDef:
        return cls(size, star=False)

    @classmethod
    def weighted(cls, weight: float = 1.0) -> TrackDef:
        if not math.isfinite(weight):
            raise ConfigurationError(f"star weight must be finite, got {weight!r}")
        return cls(weight, star=True)

    @classmethod
    def parse(cls, spec: TrackSpec) -> TrackDef:
        """Parse ``10``, ``"10"``, ``"*"``, ``"2*"`` or ``"0.5*"``."""
        if isinstance(spec, TrackDef):
            return spec
        if isinstance(spec, (int, float)) and not isinstance(spec, bool):
            if math.isfinite(spec):
                return cls.fixed(int(spec))
        elif isinstance(spec, str):
            text = spec.strip()
            try:
                if text.endswith("*"):
                    weight = text[:-1].strip()
                    return cls.weighted(float(weight) if weight else 1.0)
                return cls.fixed(int(text))
            except ValueError:
                raise ConfigurationError(f"invalid track definition: {spec!r}") from None
        raise ConfigurationError(f"invalid track definition: {spec!r}")

    def __str__(self) -> str:
        if self.star:
            return "*" if self.value == 1 else f"{self.value:g}*"
        return str(int(self.value))


TrackSpec = Union[TrackDef, int, float, str]


def _report(message: str) -> None:
    logger.warning("%s", LayoutInconsistency(message))


def resolve_tracks(defs: Sequence[TrackSpec], total: int) -> list[int]:
    """Resolve track sizes for an axis of *total* cells.

    Fixed tracks get their declared size verbatim.  Whatever is left (floored
    at zero) is shared among star tracks in proportion to their weights using
    floor division, and the rounding remainder goes to the last star track, so
    with at least one star track the sizes sum to *total* whenever the fixed
    tracks fit.  An empty definition list behaves like a single ``*`` track.
    """
    total = max(0, int(total))
    tracks = [TrackDef.parse(d) for d in defs] or [TrackDef.weighted()]

    sizes = [0] * len(tracks)
    fixed_sum = 0
    stars: list[tuple[int, Fraction]] = []
    for index, track in enumerate(tracks):
        if track.star:
            if not math.isfinite(track.value):
                _report(f"non-finite star weight {track.value} clamped to 0")
                weight = Fraction(0)
            else:
                weight = Fraction(track.value)
            if weight < 0:
                _report(f"negative star weight {track.value} clamped to 0")
                weight = Fraction(0)
            stars.append((index, weight))
        else:
            size = int(track.value) if math.isfinite(track.value) else 0
            if size < 0:
                _report(f"negative fixed track {size} clamped to 0")
                size = 0
            sizes[index] = size
            fixed_sum += size

    if not stars:
        return sizes

    remaining = max(0, total - fixed_sum)
    weight_sum = sum(weight for _, weight in stars)
    if weight_sum > 0:
        for index, weight in stars:
            sizes[index] = math.floor(remaining * weight / weight_sum)
    distributed = sum(sizes[index] for index, _ in stars)
    sizes[stars[-1][0]] += remaining - distributed
    return sizes


def track_offsets(sizes: Iterable[int], origin: int = 0) -> list[int]:
    """Prefix sums of *sizes* starting at *origin*."""
    offsets: list[int] = []
    position = origin
    for size in sizes:
        offsets.append(position)
        position += size
    return offsets


def align_span(start: int, extent: int, desired: int, alignment: Alignment) -> tuple[int, int]:
    """Place a span of *desired* length inside ``[start, start + extent)``.

    Returns ``(offset, length)``; non-stretch spans never exceed *extent*.
    """
    extent = max(0, extent)
    if alignment is Alignment.STRETCH:
        return start, extent
    length = max(0, min(desired, extent))
    if alignment is Alignment.CENTER:
        return start + (extent - length) // 2, length
    if alignment is Alignment.END:
        return start + extent - length, length
    return start, length


def _alignment(value: object, default: Alignment) -> Alignment:
    if value is None:
        return default
    if isinstance(value, Alignment):
        return value
    try:
        return Alignment(str(value).lower())
    except ValueError:
        _report(f"unknown alignment {value!r}, using {default.value}")
        return default


def _explicit(alignment: Alignment, size: int | None) -> Alignment:
    # An explicit width or height wins over stretch.
    if alignment is Alignment.STRETCH and size is not None:
        return Alignment.START
    return alignment


def _fixed_size(track: TrackDef) -> int:
    if track.star or not math.isfinite(track.value):
        return 0
    return max(0, int(track.value))


def _visible(children: Iterable[Node]) -> list[Node]:
    return [child for child in children if child.visible]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class LayoutStrategy(Protocol):
    def measure(self, panel: Panel, available: Size) -> Size: ...

    def arrange(self, panel: Panel, content: Rect) -> None: ...


class StackLayout:
    """Places children one after another along an axis.

    Cross-axis sizing follows ``alignment`` (a child may override it with an
    ``align`` layout hint).  Hidden children take no space.
    """

    def __init__(
        self,
        orientation: Orientation = Orientation.VERTICAL,
        spacing: int = 0,
        alignment: Alignment = Alignment.STRETCH,
    ) -> None:
        self.orientation = Orientation(orientation)
        self.spacing = max(0, spacing)
        self.alignment = Alignment(alignment)

    @property
    def vertical(self) -> bool:
        return self.orientation is Orientation.VERTICAL

    def measure(self, panel: Panel, available: Size) -> Size:
        children = _visible(panel.children)
        main = 0
        cross = 0
        for child in children:
            desired = child.measure(available)
            if self.vertical:
                main += desired.height
                cross = max(cross, desired.width)
            else:
                main += desired.width
                cross = max(cross, desired.height)
        if children:
            main += self.spacing * (len(children) - 1)
        return Size(cross, main) if self.vertical else Size(main, cross)

    def arrange(self, panel: Panel, content: Rect) -> None:
        offset = content.y if self.vertical else content.x
        for child in _visible(panel.children):
            desired = child.desired_size
            alignment = _alignment(child.layout_props.get("align"), self.alignment)
            if self.vertical:
                alignment = _explicit(alignment, child.preferred_width)
                x, width = align_span(content.x, content.width, desired.width, alignment)
                child.arrange(Rect(x, offset, width, desired.height))
                offset += desired.height + self.spacing
            else:
                alignment = _explicit(alignment, child.preferred_height)
                y, height = align_span(content.y, content.height, desired.height, alignment)
                child.arrange(Rect(offset, y, desired.width, height))
                offset += desired.width + self.spacing

    def __repr__(self) -> str:
        return (
            f"StackLayout({self.orientation.value}, spacing={self.spacing}, "
            f"alignment={self.alignment.value})"
        )


class GridLayout:
    """Row/column tracks with fixed and star sizing.

    Children pick their cell with the ``row`` / ``column`` layout hints
    (default 0, clamped into range) and may span tracks with ``row_span`` /
    ``column_span``.  ``h_align`` / ``v_align`` position the child inside its
    cell (default stretch).
    """

    def __init__(
        self,
        rows: Sequence[TrackSpec] = ("*",),
        columns: Sequence[TrackSpec] = ("*",),
    ) -> None:
        self.rows = [TrackDef.parse(r) for r in rows] or [TrackDef.weighted()]
        self.columns = [TrackDef.parse(c) for c in columns] or [TrackDef.weighted()]
        self.row_sizes: list[int] = []
        self.column_sizes: list[int] = []

    def _cell(self, child: Node) -> tuple[int, int, int, int]:
        props = child.layout_props
        row = _clamp_index(props.get("row", 0), len(self.rows))
        column = _clamp_index(props.get("column", 0), len(self.columns))
        row_span = _clamp_span(props.get("row_span", 1), len(self.rows) - row)
        column_span = _clamp_span(props.get("column_span", 1), len(self.columns) - column)
        return row, column, row_span, column_span

    def measure(self, panel: Panel, available: Size) -> Size:
        column_want = [_fixed_size(t) for t in self.columns]
        row_want = [_fixed_size(t) for t in self.rows]
        for child in _visible(panel.children):
            row, column, _, _ = self._cell(child)
            desired = child.measure(available)
            if self.columns[column].star:
                column_want[column] = max(column_want[column], desired.width)
            if self.rows[row].star:
                row_want[row] = max(row_want[row], desired.height)
        return Size(sum(max(0, w) for w in column_want), sum(max(0, h) for h in row_want))

    def arrange(self, panel: Panel, content: Rect) -> None:
        self.column_sizes = resolve_tracks(self.columns, content.width)
        self.row_sizes = resolve_tracks(self.rows, content.height)
        column_offsets = track_offsets(self.column_sizes, content.x)
        row_offsets = track_offsets(self.row_sizes, content.y)

        for child in _visible(panel.children):
            row, column, row_span, column_span = self._cell(child)
            cell_width = sum(self.column_sizes[column : column + column_span])
            cell_height = sum(self.row_sizes[row : row + row_span])
            desired = child.desired_size
            props = child.layout_props
            h_align = _explicit(
                _alignment(props.get("h_align"), Alignment.STRETCH), child.preferred_width
            )
            v_align = _explicit(
                _alignment(props.get("v_align"), Alignment.STRETCH), child.preferred_height
            )
            x, width = align_span(column_offsets[column], cell_width, desired.width, h_align)
            y, height = align_span(row_offsets[row], cell_height, desired.height, v_align)
            child.arrange(Rect(x, y, width, height))

    def __repr__(self) -> str:
        rows = ",".join(str(r) for r in self.rows)
        columns = ",".join(str(c) for c in self.columns)
        return f"GridLayout(rows=[{rows}], columns=[{columns}])"


def _clamp_index(value: object, count: int) -> int:
    try:
        index = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        _report(f"non-integer track index {value!r} treated as 0")
        return 0
    return max(0, min(index, count - 1))


def _clamp_span(value: object, available: int) -> int:
    try:
        span = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        _report(f"non-integer track span {value!r} treated as 1")
        return 1
    return max(1, min(span, available))
