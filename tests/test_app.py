"""End-to-end tests for the main loop using the VirtualTerminal."""

from __future__ import annotations

import time

from tessera.app import App, AppContext
from tessera.buffer import Canvas
from tessera.config import Config
from tessera.events import InputEvent
from tessera.geometry import Size
from tessera.layout import GridLayout
from tessera.node import Node, Screen
from tessera.tasks import BackgroundTask
from tessera.widgets import Button, Label

from .virtual_terminal import VirtualTerminal


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class Exploding(Node):
    def render(self, canvas: Canvas) -> None:
        raise RuntimeError("render bug")


class BadMeasure(Node):
    def measure_override(self, available: Size) -> Size:
        raise RuntimeError("measure bug")


def screen_a() -> Screen:
    grid = GridLayout(rows=["*", "*"], columns=["1*", "2*"])
    screen = Screen(grid, title="A")
    screen.add_child(Label("tl", name="tl"), row=0, column=0)
    screen.add_child(Button("go", name="go"), row=0, column=1)
    screen.add_child(Label("bl", name="bl"), row=1, column=0)
    screen.add_child(Button("b2", name="b2"), row=1, column=1)
    return screen


def screen_b() -> Screen:
    screen = Screen(title="B")
    screen.add_child(Label("second"))
    return screen


def screen_bad() -> Screen:
    screen = Screen()
    screen.add_child(Exploding(height=1))
    screen.add_child(Label("still here"))
    return screen


def screen_bad_measure() -> Screen:
    screen = Screen()
    screen.add_child(BadMeasure(height=1))
    screen.add_child(Label("measured"))
    return screen


def screen_bad_span() -> Screen:
    screen = Screen(GridLayout(columns=["*", "*"]))
    screen.add_child(Label("wide"), column=0, column_span="wide")
    screen.add_child(Label("right"), column=1)
    return screen


ROUTES = {
    "/a": screen_a,
    "/b": screen_b,
    "/bad": screen_bad,
    "/bad-measure": screen_bad_measure,
    "/bad-span": screen_bad_span,
}


def _app(rows: int = 4, columns: int = 12) -> tuple[App, VirtualTerminal]:
    term = VirtualTerminal(rows=rows, columns=columns)
    app = App(term, ROUTES, config=Config(task_workers=1))
    return app, term


def _run_until(app: App, predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.run_once(timeout=0.01)
        if predicate():
            return True
    return False


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


class TestBootstrap:
    def test_context_is_explicit(self) -> None:
        app, _ = _app()
        assert isinstance(app.context, AppContext)
        assert app.context.router is app.router
        assert app.context.renderer is app.renderer

    def test_routes_override_defaults(self) -> None:
        term = VirtualTerminal()
        app = App(term, {"/a": screen_a}, default_routes={"/a": screen_b, "/help": screen_b})
        assert app.router.get_route("/a").factory is screen_a
        assert app.router.get_route("/help") is not None

    def test_start_and_stop(self) -> None:
        app, term = _app()
        app.start("/a")
        assert term.started and app.running
        assert not term.cursor_visible
        app.stop()
        assert not term.started and not app.running
        assert term.cursor_visible

    def test_first_frame_is_full_repaint(self) -> None:
        app, term = _app()
        app.start("/a")
        assert app.run_once() is True
        assert term.clears == 1
        assert len(term.last_batch) == 4 * 12
        app.stop()


# ---------------------------------------------------------------------------
# Scenario
# ---------------------------------------------------------------------------


class TestScenario:
    def test_grid_navigation_and_back(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()

        screen = app.router.current
        assert screen.layout.column_sizes == [4, 8]
        assert term.screen_lines()[0].startswith("tl")

        result = app.router.go_to("/missing")
        assert not result.ok
        assert app.router.stack == [screen]
        assert len(app.router.history) == 1

        assert not app.router.back(1).ok
        assert app.router.stack == [screen]
        app.stop()

    def test_failed_navigation_shows_notice_until_next_key(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        app.router.go_to("/missing")
        app.run_once()
        assert term.screen_lines()[3].startswith("navigation")

        term.simulate_input("x")
        app.run_once()
        assert not term.screen_lines()[3].startswith("navigation")
        app.stop()


# ---------------------------------------------------------------------------
# Loop behaviour
# ---------------------------------------------------------------------------


class TestRenderLoop:
    def test_idle_iteration_emits_nothing(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        batches = len(term.batches)
        assert app.run_once() is False
        assert len(term.batches) == batches
        app.stop()

    def test_small_change_is_a_small_diff(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        label = app.router.current.find("bl")
        label.text = "BL"
        assert app.run_once() is True
        assert {(u.x, u.y, u.glyph) for u in term.last_batch} == {(0, 2, "B"), (1, 2, "L")}
        app.stop()

    def test_resize_repaints_everything(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        term.simulate_resize(rows=6, columns=30)
        app.run_once()
        assert (app.renderer.width, app.renderer.height) == (30, 6)
        assert term.clears == 2
        assert app.router.current.layout.column_sizes == [10, 20]
        app.stop()

    def test_render_fault_is_contained(self) -> None:
        app, term = _app(rows=3, columns=16)
        app.start("/bad")
        app.run_once()
        lines = term.screen_lines()
        assert lines[0].startswith("! Exploding")
        assert lines[1].startswith("still here")
        assert app.gateway.fault_count == 1
        # No re-render loop on a persistent render fault.
        assert app.run_once() is False
        app.stop()


    def test_measure_fault_is_contained(self) -> None:
        app, term = _app(rows=2, columns=12)
        app.start("/bad-measure")
        assert app.run_once() is True
        assert app.running
        assert term.screen_lines()[1].startswith("measured")
        assert [(d.component_type, d.capability) for d in app.gateway.diagnostics] == [
            ("BadMeasure", "measure")
        ]
        assert app.run_once() is False
        app.stop()

    def test_bad_span_is_clamped(self) -> None:
        app, term = _app(rows=1, columns=12)
        app.start("/bad-span")
        assert app.run_once() is True
        assert term.screen_lines()[0] == "wide  right "
        app.stop()

    def test_removed_focus_lets_input_reach_screen(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        screen = app.router.current
        seen: list[str] = []
        screen.bind("handle_input", lambda n, e: seen.append(e.key) or True)
        screen.remove_child(screen.find("go"))
        term.simulate_input("x")
        app.run_once()
        assert seen == ["x"]
        assert screen.focused is None
        app.stop()


class TestInput:
    def test_enter_presses_focused_button(self) -> None:
        app, term = _app()
        app.start("/a")
        button = app.router.current.find("go")
        assert app.router.current.focused is button
        term.simulate_input("\r")
        app.run_once()
        assert button.presses == 1
        app.stop()

    def test_tab_moves_focus(self) -> None:
        app, term = _app()
        app.start("/a")
        term.simulate_input("\t")
        app.run_once()
        assert app.router.current.focused is app.router.current.find("b2")
        term.simulate_input("\x1b[Z")
        app.run_once()
        assert app.router.current.focused is app.router.current.find("go")
        app.stop()

    def test_escape_goes_back(self) -> None:
        app, term = _app()
        app.start("/a")
        app.router.go_to("/b")
        app.post_event(InputEvent("escape", "\x1b"))
        app.run_once()
        assert app.router.current_path == "/a"
        app.stop()

    def test_ctrl_c_stops(self) -> None:
        app, term = _app()
        app.start("/a")
        term.simulate_input("\x03")
        app.run_once()
        assert not app.running
        assert not term.started

    def test_run_exits_on_quit(self) -> None:
        app, term = _app()
        app.post_event(InputEvent("ctrl+c", "\x03"))
        app.run("/a")
        assert not app.running
        assert app.router.current_path == "/a"


class TestBackground:
    def test_result_applied_on_main_loop(self) -> None:
        app, term = _app()
        app.start("/a")
        app.run_once()
        label = app.router.current.find("tl")

        def fetch(task: BackgroundTask) -> str:
            return "ok"

        def apply(task: BackgroundTask) -> None:
            label.text = task.result

        app.submit(fetch, on_done=apply)
        assert _run_until(app, lambda: label.text == "ok")
        assert term.screen_lines()[0].startswith("ok")
        app.stop()

    def test_failing_completion_handler_does_not_stop_loop(self) -> None:
        app, _ = _app()
        app.start("/a")
        done: list[bool] = []

        def apply(task: BackgroundTask) -> None:
            done.append(True)
            raise ValueError("handler bug")

        app.submit(lambda t: None, on_done=apply)
        assert _run_until(app, lambda: bool(done))
        assert app.running
        app.stop()

    def test_call_soon(self) -> None:
        app, _ = _app()
        app.start("/a")
        ran: list[int] = []
        app.call_soon(lambda: ran.append(1))
        app.run_once()
        assert ran == [1]
        app.stop()
