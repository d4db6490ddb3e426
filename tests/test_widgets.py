"""Tests for the leaf widgets."""

from __future__ import annotations

from typing import Any

from tessera.buffer import Canvas, CellBuffer
from tessera.events import InputEvent
from tessera.gateway import InvocationGateway
from tessera.geometry import Rect, Size
from tessera.layout import Alignment
from tessera.node import Node, Screen
from tessera.style import Attr
from tessera.widgets import Button, Label, ProgressBar, Table, TextInput


def _key(key: str, data: str = "") -> InputEvent:
    return InputEvent(key, data or (key if len(key) == 1 else ""))


def _render(node: Node, width: int, height: int = 1) -> CellBuffer:
    node.measure(Size(width, height))
    node.arrange(Rect(0, 0, width, height))
    buf = CellBuffer(width, height)
    InvocationGateway().render_tree(node, Canvas(buf))
    return buf


class TestLabel:
    def test_measure_multiline(self) -> None:
        assert Label("ab\ncdef").measure(Size(20, 20)) == Size(4, 2)

    def test_render_truncates(self) -> None:
        assert _render(Label("hello world"), 5).rows() == ["hello"]

    def test_center_alignment(self) -> None:
        assert _render(Label("ab", align=Alignment.CENTER), 6).rows() == ["  ab  "]

    def test_text_change_marks_dirty(self) -> None:
        label = Label("a")
        label.dirty = False
        label.text = "a"
        assert not label.dirty
        label.text = "b"
        assert label.dirty


class TestButton:
    def test_press_on_enter_and_space(self) -> None:
        screen = Screen()
        presses: list[tuple[Any, Any]] = []
        button = screen.add_child(Button("ok", on_press=lambda s, b: presses.append((s, b))))
        assert button.handle_input(_key("enter"))
        assert button.handle_input(_key("space", " "))
        assert not button.handle_input(_key("x"))
        assert button.presses == 2
        assert presses == [(screen, button), (screen, button)]

    def test_focused_render_is_reversed(self) -> None:
        screen = Screen()
        button = screen.add_child(Button("ok"))
        screen.focused = button
        buf = _render(button, 6)
        assert buf.rows() == ["[ ok ]"]
        assert buf.get(0, 0).attrs & Attr.REVERSE

    def test_measure(self) -> None:
        assert Button("ok").measure(Size(50, 5)) == Size(6, 1)


class TestTextInput:
    def test_typing_and_editing(self) -> None:
        changes: list[str] = []
        field = TextInput(on_change=lambda s, f, v: changes.append(v))
        for ch in "abc":
            field.handle_input(_key(ch))
        field.handle_input(_key("left"))
        field.handle_input(_key("backspace"))
        assert field.value == "ac"
        assert field.cursor == 1
        field.handle_input(_key("home"))
        field.handle_input(_key("delete"))
        assert field.value == "c"
        assert changes == ["a", "ab", "abc", "ac", "c"]

    def test_submit(self) -> None:
        submitted: list[str] = []
        field = TextInput("query", on_submit=lambda s, f, v: submitted.append(v))
        assert field.handle_input(_key("enter"))
        assert submitted == ["query"]

    def test_unhandled_key(self) -> None:
        assert TextInput().handle_input(_key("ctrl+x")) is False

    def test_placeholder_when_empty(self) -> None:
        buf = _render(TextInput(placeholder="search"), 8)
        assert buf.rows() == ["search  "]
        assert buf.get(0, 0).attrs & Attr.DIM

    def test_scrolls_to_cursor(self) -> None:
        field = TextInput("abcdefghij")
        assert _render(field, 4).rows() == ["hij "]


class TestTable:
    def _table(self, **kwargs: Any) -> Table:
        return Table(
            [("Name", "*"), ("Hrs", 3)],
            [["alpha", "1"], ["beta", "2"], ["gamma", "3"]],
            **kwargs,
        )

    def test_column_widths_use_track_rules(self) -> None:
        assert self._table().column_widths(12) == [8, 3]

    def test_render(self) -> None:
        buf = _render(self._table(), 10, 3)
        assert buf.rows() == ["Name   Hrs", "alpha  1  ", "beta   2  "]

    def test_selection_moves_and_clamps(self) -> None:
        table = self._table()
        table.handle_input(_key("down"))
        table.handle_input(_key("down"))
        table.handle_input(_key("down"))
        assert table.selected == 2
        table.handle_input(_key("home"))
        assert table.selected == 0

    def test_select_callback(self) -> None:
        picked: list[int] = []
        table = self._table(on_select=lambda s, t, i: picked.append(i))
        table.handle_input(_key("end"))
        table.handle_input(_key("enter"))
        assert picked == [2]

    def test_set_rows_clamps_selection(self) -> None:
        table = self._table()
        table.selected = 2
        table.set_rows([["only", "1"]])
        assert table.selected == 0

    def test_scrolls_to_selection(self) -> None:
        table = self._table()
        table.selected = 2
        buf = _render(table, 10, 2)
        assert buf.rows()[1].startswith("gamma")


class TestProgressBar:
    def test_value_clamped(self) -> None:
        assert ProgressBar(3.0).value == 1.0
        assert ProgressBar(-1).value == 0.0

    def test_render(self) -> None:
        buf = _render(ProgressBar(0.5), 10)
        assert buf.rows() == ["██░░░  50%"]
