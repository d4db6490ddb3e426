"""Component tree: nodes, panels and screens.

A node's behaviour lives in *capability slots* -- a mapping from a fixed set
of names (``render``, ``handle_input``, ...) to an optional callable.  A
subclass that defines a method with a capability's name gets it bound
automatically; instances can also ``bind``/``unbind`` callables at run time.
Callables take the node as their first argument.  Nothing outside
:class:`~tessera.gateway.InvocationGateway` should call a slot directly.

Ownership is strict: a node has at most one parent, ``Panel.add_child``
detaches it from any previous parent first, and ``Panel.remove_child`` clears
the back-reference before the child is dropped.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterator

from tessera.buffer import Canvas
from tessera.errors import ConfigurationError
from tessera.geometry import Rect, Size, Thickness
from tessera.layout import LayoutStrategy, StackLayout
from tessera.style import DEFAULT_STYLE, Style

__all__ = [
    "Capability",
    "CAPABILITIES",
    "Node",
    "Panel",
    "Screen",
    "is_focusable",
]

logger = logging.getLogger(__name__)

LayoutFaultReporter = Callable[["Node", str, BaseException], None]


class Capability(str, enum.Enum):
    RENDER = "render"
    HANDLE_INPUT = "handle_input"
    SET_PARAMS = "set_params"
    ON_FOCUS = "on_focus"
    ON_BLUR = "on_blur"
    ON_MOUNT = "on_mount"
    ON_UNMOUNT = "on_unmount"


CAPABILITIES: frozenset[str] = frozenset(c.value for c in Capability)


def _capability_name(name: str | Capability) -> str:
    value = name.value if isinstance(name, Capability) else name
    if value not in CAPABILITIES:
        raise ConfigurationError(f"unknown capability {value!r}")
    return value


def is_focusable(node: object | None) -> bool:
    """Return ``True`` if *node* can currently take keyboard focus."""
    return isinstance(node, Node) and node.focusable and node.is_displayed()


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class Node:
    """Base tree node: bounds, flags, layout hints and capability slots."""

    def __init__(
        self,
        *,
        name: str | None = None,
        visible: bool = True,
        focusable: bool = False,
        z_index: int = 0,
        width: int | None = None,
        height: int | None = None,
        min_width: int = 0,
        min_height: int = 0,
        style: Style | None = None,
        **layout_props: Any,
    ) -> None:
        self.name = name
        self.x = 0
        self.y = 0
        self.width = 0
        self.height = 0
        self.preferred_width = width
        self.preferred_height = height
        self.min_width = min_width
        self.min_height = min_height
        self.focusable = focusable
        self.z_index = z_index
        self.style = style or DEFAULT_STYLE
        self.layout_props: dict[str, Any] = dict(layout_props)
        self.parent: Panel | None = None
        self.desired_size = Size()
        self.dirty = True
        self._visible = visible
        self._measured_for: Size | None = None
        #: Set on a layer root; receives measure/arrange faults from the subtree.
        self.fault_reporter: LayoutFaultReporter | None = None

        self.capabilities: dict[str, Callable[..., Any] | None] = {}
        for capability in CAPABILITIES:
            method = getattr(type(self), capability, None)
            self.capabilities[capability] = method if callable(method) else None

    # -- capability slots ---------------------------------------------------

    def bind(self, capability: str | Capability, fn: Callable[..., Any] | None) -> None:
        """Bind *fn* (called as ``fn(node, *args)``) to a capability slot."""
        self.capabilities[_capability_name(capability)] = fn

    def unbind(self, capability: str | Capability) -> None:
        self.capabilities[_capability_name(capability)] = None

    def has_capability(self, capability: str | Capability) -> bool:
        value = capability.value if isinstance(capability, Capability) else capability
        return callable(self.capabilities.get(value))

    # -- flags / bounds -----------------------------------------------------

    @property
    def visible(self) -> bool:
        return self._visible

    @visible.setter
    def visible(self, value: bool) -> None:
        if value != self._visible:
            self._visible = value
            if self.parent is not None:
                self.parent.mark_dirty()

    def is_displayed(self) -> bool:
        """Visible, and so is every ancestor."""
        node: Node | None = self
        while node is not None:
            if not node.visible:
                return False
            node = node.parent
        return True

    @property
    def bounds(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def set_bounds(self, rect: Rect) -> None:
        self.x, self.y, self.width, self.height = rect.x, rect.y, rect.width, rect.height

    def mark_dirty(self) -> None:
        """Flag this node and every ancestor for layout and render."""
        node: Node | None = self
        while node is not None:
            node.dirty = True
            node = node.parent

    # -- tree ---------------------------------------------------------------

    def ancestors(self) -> Iterator[Panel]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    @property
    def screen(self) -> Screen | None:
        """The screen this node belongs to, if any."""
        node: Node | None = self
        while node is not None:
            if isinstance(node, Screen):
                return node
            node = node.parent
        return None

    def walk(self) -> Iterator[Node]:
        yield self

    # -- two-pass layout ----------------------------------------------------

    def measure(self, available: Size) -> Size:
        """Compute and cache :attr:`desired_size` for the space on offer."""
        if not self.dirty and self._measured_for == available:
            return self.desired_size
        if not self.visible:
            desired = Size()
        else:
            try:
                inner = self.measure_override(available)
            except Exception as exc:
                self.report_layout_fault("measure", exc)
                inner = Size()
            width = self.preferred_width if self.preferred_width is not None else inner.width
            height = self.preferred_height if self.preferred_height is not None else inner.height
            desired = Size(max(self.min_width, width), max(self.min_height, height))
        self.desired_size = desired
        self._measured_for = available
        return desired

    def report_layout_fault(self, stage: str, exc: BaseException) -> None:
        """Hand a contained layout fault to the nearest ``fault_reporter``."""
        node: Node | None = self
        while node is not None:
            if node.fault_reporter is not None:
                node.fault_reporter(self, stage, exc)
                return
            node = node.parent
        logger.error("%s fault in %s", stage, type(self).__name__, exc_info=exc)

    def measure_override(self, available: Size) -> Size:
        """Natural content size; leaves with nothing to say want zero."""
        return Size()

    def arrange(self, rect: Rect) -> None:
        """Accept final bounds from the parent layout."""
        self.set_bounds(rect)
        self.dirty = False

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        return f"<{type(self).__name__}{label} {self.x},{self.y} {self.width}x{self.height}>"


# ---------------------------------------------------------------------------
# Panel
# ---------------------------------------------------------------------------

_BORDER = {
    "tl": "┌",
    "tr": "┐",
    "bl": "└",
    "br": "┘",
    "h": "─",
    "v": "│",
}


class Panel(Node):
    """A node that owns children and lays them out with a strategy."""

    def __init__(
        self,
        layout: LayoutStrategy | None = None,
        *,
        border: bool = False,
        padding: int | tuple[int, ...] | Thickness | None = None,
        title: str = "",
        background: Style | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.layout: LayoutStrategy = layout or StackLayout()
        self.border = border
        self.padding = Thickness.of(padding)
        self.title = title
        self.background = background
        self.children: list[Node] = []

    # -- children -----------------------------------------------------------

    def add_child(self, child: Node, **layout_props: Any) -> Node:
        """Append *child* (re-parenting it if needed) and return it."""
        return self.insert_child(len(self.children), child, **layout_props)

    def insert_child(self, index: int, child: Node, **layout_props: Any) -> Node:
        if child is self or (isinstance(child, Panel) and self in child.walk()):
            raise ConfigurationError(f"{child!r} cannot contain itself")
        if child.parent is not None:
            child.parent.remove_child(child)
        child.layout_props.update(layout_props)
        child.parent = self
        self.children.insert(index, child)
        child.dirty = True
        self.mark_dirty()
        return child

    def remove_child(self, child: Node) -> bool:
        """Detach *child*; returns ``False`` if it was not a child."""
        for index, existing in enumerate(self.children):
            if existing is child:
                self._release_focus(child)
                child.parent = None
                del self.children[index]
                self.mark_dirty()
                return True
        return False

    def clear(self) -> None:
        for child in self.children:
            self._release_focus(child)
            child.parent = None
        self.children.clear()
        self.mark_dirty()

    def _release_focus(self, child: Node) -> None:
        screen = self.screen
        if screen is not None:
            screen.release_focus(child)

    def walk(self) -> Iterator[Node]:
        """Pre-order traversal of this subtree."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, name: str) -> Node | None:
        for node in self.walk():
            if node.name == name:
                return node
        return None

    # -- layout -------------------------------------------------------------

    @property
    def chrome(self) -> Thickness:
        """Border plus padding."""
        edge = Thickness.of(1 if self.border else 0)
        return edge + self.padding

    @property
    def content_bounds(self) -> Rect:
        return self.bounds.deflate(self.chrome)

    def measure_override(self, available: Size) -> Size:
        chrome = self.chrome
        inner = self.layout.measure(
            self,
            Size(
                max(0, available.width - chrome.horizontal),
                max(0, available.height - chrome.vertical),
            ),
        )
        return Size(inner.width + chrome.horizontal, inner.height + chrome.vertical)

    def arrange(self, rect: Rect) -> None:
        # A clean subtree that keeps its bounds keeps its children's bounds too.
        if not self.dirty and rect == self.bounds:
            return
        self.set_bounds(rect)
        try:
            self.layout.arrange(self, self.content_bounds)
        except Exception as exc:
            # Children keep whatever bounds they had.
            self.report_layout_fault("arrange", exc)
        self.dirty = False

    def update_layout(self, force: bool = False) -> bool:
        """Run measure and arrange over this subtree if it is dirty.

        The panel's own bounds are taken as given.  Returns ``True`` if a
        layout pass ran.
        """
        if not (force or self.dirty):
            return False
        if force:
            for node in self.walk():
                node.dirty = True
        bounds = self.bounds
        self.measure(bounds.size)
        self.arrange(bounds)
        return True

    # -- render capability --------------------------------------------------

    def render(self, canvas: Canvas) -> None:
        if self.background is not None:
            canvas.fill(self.bounds, " ", self.background)
        if not self.border or self.width < 2 or self.height < 2:
            return
        style = self.style
        left, top = self.x, self.y
        right, bottom = self.x + self.width - 1, self.y + self.height - 1
        for col in range(left + 1, right):
            canvas.write(col, top, _BORDER["h"], style)
            canvas.write(col, bottom, _BORDER["h"], style)
        for row in range(top + 1, bottom):
            canvas.write(left, row, _BORDER["v"], style)
            canvas.write(right, row, _BORDER["v"], style)
        canvas.write(left, top, _BORDER["tl"], style)
        canvas.write(right, top, _BORDER["tr"], style)
        canvas.write(left, bottom, _BORDER["bl"], style)
        canvas.write(right, bottom, _BORDER["br"], style)
        if self.title and self.width > 4:
            canvas.write_text(left + 2, top, f" {self.title} ", style, self.width - 4)


# ---------------------------------------------------------------------------
# Screen
# ---------------------------------------------------------------------------


class Screen(Panel):
    """Root panel of a route: owns caller state, params and keyboard focus."""

    def __init__(
        self,
        layout: LayoutStrategy | None = None,
        *,
        title: str = "",
        state: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(layout, title=title, **kwargs)
        self.state: dict[str, Any] = dict(state or {})
        self.params: dict[str, Any] = {}
        self.focused: Node | None = None
        #: Nodes that lost focus by leaving the tree; the gateway blurs them.
        self.blurred: list[Node] = []
        self.path: str | None = None

    def set_params(self, params: dict[str, Any]) -> None:
        self.params.update(params)
        self.mark_dirty()

    def release_focus(self, subtree: Node) -> bool:
        """Drop focus if it lies inside *subtree*, which is being detached."""
        focused = self.focused
        if focused is None or not any(node is focused for node in subtree.walk()):
            return False
        self.focused = None
        self.blurred.append(focused)
        return True

    def focusable_nodes(self) -> list[Node]:
        return [node for node in self.walk() if node is not self and is_focusable(node)]

    def next_focusable(self, reverse: bool = False) -> Node | None:
        """The focus target after (or before) the current one, wrapping."""
        nodes = self.focusable_nodes()
        if not nodes:
            return None
        if self.focused not in nodes:
            return nodes[-1] if reverse else nodes[0]
        index = nodes.index(self.focused)
        step = -1 if reverse else 1
        return nodes[(index + step) % len(nodes)]
