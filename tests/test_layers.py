"""Tests for the z-ordered layer stack."""

from __future__ import annotations

from tessera.geometry import Rect
from tessera.layers import LayerHandle, LayerStack
from tessera.node import Panel, Screen
from tessera.widgets import Label


def _stack(base: Screen | None = None) -> tuple[LayerStack, list[int]]:
    changes: list[int] = []
    stack = LayerStack(lambda: base, on_change=lambda: changes.append(1))
    return stack, changes


class TestShowHide:
    def test_no_overlay_initially(self) -> None:
        stack, _ = _stack(Screen())
        assert stack.has_overlay() is False

    def test_show_returns_handle(self) -> None:
        stack, changes = _stack(Screen())
        handle = stack.show(Label("x"))
        assert isinstance(handle, LayerHandle)
        assert stack.has_overlay()
        assert changes

    def test_hide_via_handle(self) -> None:
        stack, _ = _stack(Screen())
        label = Label("x")
        handle = stack.show(label)
        handle.hide()
        assert not stack.is_visible(label)
        assert handle.is_hidden()

    def test_set_hidden_keeps_layer(self) -> None:
        stack, _ = _stack(Screen())
        label = Label("x")
        handle = stack.show(label)
        handle.set_hidden(True)
        assert stack.has_overlay()
        assert not stack.is_visible(label)
        handle.set_hidden(False)
        assert stack.is_visible(label)

    def test_show_marks_base_dirty(self) -> None:
        base = Screen()
        base.dirty = False
        stack, _ = _stack(base)
        stack.show(Label("x"))
        assert base.dirty


class TestOrdering:
    def test_visible_layers_bottom_up(self) -> None:
        base = Screen()
        stack, _ = _stack(base)
        low, high = Label("low"), Label("high")
        stack.show(high, z_index=10)
        stack.show(low, z_index=1)
        assert stack.visible_layers() == [base, low, high]

    def test_default_z_goes_on_top(self) -> None:
        base = Screen()
        stack, _ = _stack(base)
        first = Label("1")
        second = Label("2")
        stack.show(first, z_index=5)
        stack.show(second)
        assert stack.top_visible() is second

    def test_top_visible_skips_hidden(self) -> None:
        base = Screen()
        stack, _ = _stack(base)
        a, b = Label("a"), Label("b")
        stack.show(a)
        stack.show(b).set_hidden(True)
        assert stack.top_visible() is a

    def test_top_visible_falls_back_to_base(self) -> None:
        base = Screen()
        stack, _ = _stack(base)
        assert stack.top_visible() is base

    def test_no_base(self) -> None:
        stack, _ = _stack(None)
        assert stack.visible_layers() == []
        assert stack.top_visible() is None


class TestArrange:
    def test_base_fills_surface(self) -> None:
        base = Screen()
        stack, _ = _stack(base)
        stack.arrange(20, 5)
        assert base.bounds == Rect(0, 0, 20, 5)

    def test_overlay_centered_at_desired_size(self) -> None:
        stack, _ = _stack(Screen())
        label = Label("hello")
        stack.show(label)
        stack.arrange(21, 5)
        assert label.bounds == Rect(8, 2, 5, 1)

    def test_overlay_explicit_bounds_clipped(self) -> None:
        stack, _ = _stack(Screen())
        panel = Panel()
        stack.show(panel, bounds=Rect(15, 0, 10, 3))
        stack.arrange(20, 5)
        assert panel.bounds == Rect(15, 0, 5, 3)

    def test_set_bounds_moves_overlay(self) -> None:
        stack, _ = _stack(Screen())
        label = Label("x")
        stack.show(label, bounds=Rect(0, 0, 1, 1))
        assert stack.set_bounds(label, Rect(0, 4, 10, 1))
        stack.arrange(10, 5)
        assert label.bounds == Rect(0, 4, 10, 1)
        assert stack.set_bounds(Label("other"), None) is False
