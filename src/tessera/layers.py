"""Z-ordered render layers: the active screen plus dialogs stacked on top.

The router's active screen is always the base layer (z = 0).  Overlays are
kept sorted by z-index; input goes to the topmost visible layer and
rendering walks layers bottom-up, so later layers paint over earlier ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from tessera.geometry import Rect, Size
from tessera.node import Node, Panel

__all__ = ["LayerHandle", "LayerStack"]


@dataclass
class _Layer:
    node: Node
    z_index: int
    hidden: bool = False
    bounds: Rect | None = None


class LayerHandle:
    """Handle returned by :meth:`LayerStack.show`."""

    def __init__(self, stack: LayerStack, node: Node) -> None:
        self._stack = stack
        self._node = node

    @property
    def node(self) -> Node:
        return self._node

    def hide(self) -> None:
        """Remove the layer from the stack."""
        self._stack.hide(self._node)

    def set_hidden(self, hidden: bool) -> None:
        """Toggle visibility without removing the layer."""
        layer = self._stack._find(self._node)
        if layer is not None and layer.hidden != hidden:
            layer.hidden = hidden
            self._stack._changed()

    def is_hidden(self) -> bool:
        layer = self._stack._find(self._node)
        return True if layer is None else layer.hidden


class LayerStack:
    """Base screen (from *base*) plus z-ordered overlay layers."""

    def __init__(
        self,
        base: Callable[[], Node | None],
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._base = base
        self._overlays: list[_Layer] = []
        self.on_change = on_change

    # ------------------------------------------------------------------

    def show(self, node: Node, z_index: int | None = None, bounds: Rect | None = None) -> LayerHandle:
        """Push an overlay; by default it goes above every existing layer.

        Without explicit *bounds* the overlay is sized to its desired size
        and centered on the surface.
        """
        if self._find(node) is not None:
            self.hide(node)
        if z_index is None:
            z_index = max((layer.z_index for layer in self._overlays), default=0) + 1
        self._overlays.append(_Layer(node, z_index, bounds=bounds))
        # Stable: equal z keeps insertion order.
        self._overlays.sort(key=lambda layer: layer.z_index)
        node.mark_dirty()
        self._changed()
        return LayerHandle(self, node)

    def hide(self, node: Node) -> bool:
        layer = self._find(node)
        if layer is None:
            return False
        self._overlays.remove(layer)
        self._changed()
        return True

    def set_bounds(self, node: Node, bounds: Rect | None) -> bool:
        """Pin an overlay to *bounds* (``None`` re-centers it)."""
        layer = self._find(node)
        if layer is None:
            return False
        if layer.bounds != bounds:
            layer.bounds = bounds
            node.mark_dirty()
        return True

    def has_overlay(self) -> bool:
        return bool(self._overlays)

    def is_visible(self, node: Node) -> bool:
        layer = self._find(node)
        return layer is not None and not layer.hidden

    # ------------------------------------------------------------------

    def visible_layers(self) -> list[Node]:
        """Nodes to paint, bottom-up."""
        nodes: list[Node] = []
        base = self._base()
        if base is not None:
            nodes.append(base)
        nodes.extend(layer.node for layer in self._overlays if not layer.hidden)
        return nodes

    def top_visible(self) -> Node | None:
        """The layer that receives input."""
        for layer in reversed(self._overlays):
            if not layer.hidden:
                return layer.node
        return self._base()

    def arrange(self, width: int, height: int) -> None:
        """Assign bounds to every layer for a surface of the given size."""
        surface = Rect(0, 0, width, height)
        base = self._base()
        if base is not None:
            _place(base, surface)
        for layer in self._overlays:
            if layer.hidden:
                continue
            if layer.bounds is not None:
                _place(layer.node, layer.bounds.intersect(surface))
                continue
            desired = layer.node.measure(Size(width, height))
            w = min(desired.width, width)
            h = min(desired.height, height)
            _place(layer.node, Rect((width - w) // 2, (height - h) // 2, w, h))

    # ------------------------------------------------------------------

    def _find(self, node: Node) -> _Layer | None:
        for layer in self._overlays:
            if layer.node is node:
                return layer
        return None

    def _changed(self) -> None:
        base = self._base()
        if base is not None:
            base.mark_dirty()
        if self.on_change is not None:
            self.on_change()


def _place(node: Node, rect: Rect) -> None:
    if rect != node.bounds:
        node.set_bounds(rect)
        node.mark_dirty()
    if isinstance(node, Panel):
        node.update_layout()
    elif node.dirty:
        node.measure(rect.size)
        node.arrange(rect)
