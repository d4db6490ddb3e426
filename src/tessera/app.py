"""Main loop: input dispatch, background hand-off, layout and rendering.

One thread owns every piece of UI state.  Other threads (the terminal's
stdin reader, the resize signal, background tasks) only put work on a
queue; :meth:`App.run_once` drains it, applies it, re-lays-out what is
dirty, renders through the invocation gateway and presents the diff.
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from tessera.buffer import Canvas
from tessera.config import Config, configure_logging
from tessera.errors import NavigationFailure, NavigationRejected
from tessera.events import InputEvent, ResizeEvent, decode_input
from tessera.gateway import Diagnostic, InvocationGateway
from tessera.geometry import Rect
from tessera.layers import LayerStack
from tessera.node import Capability, Screen
from tessera.renderer import DiffRenderer
from tessera.router import NavigationEvent, Route, Router
from tessera.style import Attr, Style
from tessera.tasks import BackgroundTask, TaskRunner
from tessera.terminal import ProcessTerminal, Terminal
from tessera.widgets import Label

__all__ = ["AppContext", "App", "run_app"]

logger = logging.getLogger(__name__)

_NOTICE_Z = 1_000_000
_NOTICE_STYLE = Style(fg=15, bg=1, attrs=Attr.BOLD)

RouteTable = Mapping[str, Any]


@dataclass
class AppContext:
    """Everything an entry point needs, passed explicitly instead of globals."""

    config: Config
    renderer: DiffRenderer
    gateway: InvocationGateway
    router: Router
    layers: LayerStack
    tasks: TaskRunner
    services: Any = None


class App:
    """Owns the loop and wires terminal, renderer, router and gateway together."""

    quit_keys: tuple[str, ...] = ("ctrl+c",)

    def __init__(
        self,
        terminal: Terminal,
        routes: RouteTable | None = None,
        *,
        default_routes: RouteTable | None = None,
        config: Config | None = None,
        services: Any = None,
        auth_check: Callable[[Route], bool] | None = None,
    ) -> None:
        self.terminal = terminal
        config = config or Config()
        self._events: queue.Queue[Any] = queue.Queue()
        self._render_requested = True
        self._rendering = False
        self._running = False

        gateway = InvocationGateway(
            on_fault=self._on_fault, max_diagnostics=config.max_diagnostics
        )
        router = Router(
            gateway=gateway,
            services=services,
            auth_check=auth_check,
            on_error=self._on_navigation_error,
            breadcrumbs_enabled=config.breadcrumbs_enabled,
        )
        # Bootstrap routes extend the defaults and win on conflicts.
        if default_routes:
            router.add_routes(default_routes)
        if routes:
            router.add_routes(routes)
        router.add_hook(self._on_navigated)

        self.context = AppContext(
            config=config,
            renderer=DiffRenderer(terminal, terminal.columns, terminal.rows),
            gateway=gateway,
            router=router,
            layers=LayerStack(lambda: router.current, on_change=self.request_render),
            tasks=TaskRunner(config.task_workers),
            services=services,
        )
        self._notice = Label("", style=_NOTICE_STYLE, name="notice")

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    @property
    def router(self) -> Router:
        return self.context.router

    @property
    def renderer(self) -> DiffRenderer:
        return self.context.renderer

    @property
    def gateway(self) -> InvocationGateway:
        return self.context.gateway

    @property
    def layers(self) -> LayerStack:
        return self.context.layers

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Thread-safe entry points
    # ------------------------------------------------------------------

    def post_event(self, event: InputEvent | ResizeEvent) -> None:
        """Queue an event for the main loop.  Safe from any thread."""
        self._events.put(event)

    def call_soon(self, fn: Callable[[], Any]) -> None:
        """Run *fn* on the main loop at its next drain.  Safe from any thread."""
        self._events.put(fn)

    def submit(
        self,
        fn: Callable[[BackgroundTask], Any],
        on_done: Callable[[BackgroundTask], Any] | None = None,
        name: str | None = None,
    ) -> BackgroundTask:
        """Run *fn* in the background; *on_done* runs later on the main loop."""
        return self.context.tasks.submit(fn, on_done, name)

    def _on_terminal_input(self, data: str) -> None:
        for event in decode_input(data):
            self.post_event(event)

    def _on_terminal_resize(self) -> None:
        self.post_event(ResizeEvent(self.terminal.columns, self.terminal.rows))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, path: str | None = None, params: Mapping[str, Any] | None = None) -> None:
        self.terminal.start(self._on_terminal_input, self._on_terminal_resize)
        if not self.context.config.show_cursor:
            self.terminal.hide_cursor()
        self.resize(self.terminal.columns, self.terminal.rows)
        self._running = True
        if path is not None:
            self.router.go_to(path, params)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self.context.tasks.shutdown()
        if not self.context.config.show_cursor:
            self.terminal.show_cursor()
        self.terminal.stop()

    def run(self, path: str | None = None, params: Mapping[str, Any] | None = None) -> None:
        """Start, loop until :meth:`stop`, then restore the terminal."""
        self.start(path, params)
        try:
            while self._running:
                self.run_once(timeout=self.context.config.frame_interval)
        finally:
            self.stop()

    # ------------------------------------------------------------------
    # One iteration
    # ------------------------------------------------------------------

    def run_once(self, timeout: float = 0.0) -> bool:
        """Drain events and finished tasks, then render if anything changed.

        Blocks up to *timeout* seconds for the first event.  Returns ``True``
        if a frame was presented; nothing is drawn once the app has stopped.
        """
        self._drain_events(timeout)
        if not self._running:
            return False
        self._drain_tasks()
        if self._needs_render():
            self.render_frame()
            return True
        return False

    def _drain_events(self, timeout: float) -> None:
        try:
            item = self._events.get(timeout=timeout) if timeout > 0 else self._events.get_nowait()
        except queue.Empty:
            return
        while True:
            self._apply(item)
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return

    def _apply(self, item: Any) -> None:
        if isinstance(item, ResizeEvent):
            self.resize(item.width, item.height)
        elif isinstance(item, InputEvent):
            self.handle_input(item)
        elif callable(item):
            try:
                item()
            except Exception:
                logger.exception("main-loop callback %r failed", item)
            self.request_render()

    def _drain_tasks(self) -> None:
        for task in self.context.tasks.drain():
            if task.on_done is not None:
                try:
                    task.on_done(task)
                except Exception:
                    logger.exception("completion handler for %s failed", task.name)
            screen = self.router.current
            if screen is not None:
                screen.mark_dirty()
            self.request_render()

    # ------------------------------------------------------------------
    # Input / resize
    # ------------------------------------------------------------------

    def handle_input(self, event: InputEvent) -> bool:
        """Route a key event to the topmost visible layer."""
        if event.key in self.quit_keys:
            self.stop()
            return True
        if self.layers.is_visible(self._notice):
            self.layers.hide(self._notice)

        target = self.layers.top_visible()
        if target is None:
            return False
        if isinstance(target, Screen):
            consumed = self.gateway.dispatch_input(target, event)
        else:
            result = self.gateway.invoke(target, Capability.HANDLE_INPUT, event)
            consumed = result.ok and bool(result.value)

        if not consumed and isinstance(target, Screen):
            if event.key in ("tab", "shift+tab"):
                consumed = self.gateway.focus_next(target, reverse=event.key == "shift+tab")
            elif event.key == "escape" and target is self.router.current:
                consumed = self.router.back().ok
        if consumed:
            self.request_render()
        return consumed

    def resize(self, width: int, height: int) -> None:
        if self.renderer.resize(width, height):
            screen = self.router.current
            if screen is not None:
                screen.mark_dirty()
            self.request_render()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def request_render(self) -> None:
        self._render_requested = True

    def _needs_render(self) -> bool:
        if self._render_requested or self.renderer.full_repaint_pending:
            return True
        return any(node.dirty for node in self.layers.visible_layers())

    def render_frame(self) -> None:
        """Lay out dirty layers, render every visible layer, present the diff."""
        renderer = self.renderer
        self._rendering = True
        try:
            if self.layers.is_visible(self._notice):
                self.layers.set_bounds(
                    self._notice, Rect(0, renderer.height - 1, renderer.width, 1)
                )
            for node in self.layers.visible_layers():
                node.fault_reporter = self.gateway.layout_fault
                if isinstance(node, Screen):
                    self.gateway.sync_focus(node)
            self.layers.arrange(renderer.width, renderer.height)
            renderer.begin_frame()
            canvas = Canvas(renderer.back)
            for node in self.layers.visible_layers():
                self.gateway.render_tree(node, canvas)
            renderer.present()
        finally:
            self._rendering = False
            self._render_requested = False

    def show_notice(self, message: str) -> None:
        """Show a one-line message on the bottom row until the next key."""
        self._notice.text = message
        self.layers.show(
            self._notice,
            z_index=_NOTICE_Z,
            bounds=Rect(0, self.renderer.height - 1, self.renderer.width, 1),
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_fault(self, diagnostic: Diagnostic) -> None:
        # Render faults are painted in the frame that hit them.
        if not self._rendering:
            self.request_render()

    def _on_navigation_error(self, error: NavigationRejected | NavigationFailure) -> None:
        self.show_notice(str(error))

    def _on_navigated(self, event: NavigationEvent) -> None:
        screen = self.router.current
        if screen is not None and screen.focused is None:
            self.gateway.focus_next(screen)
        self.request_render()


def run_app(
    routes: RouteTable,
    path: str,
    *,
    config: Config | None = None,
    services: Any = None,
    auth_check: Callable[[Route], bool] | None = None,
) -> App:
    """Configure logging from *config* (or ``TESSERA_*`` env vars) and run.

    Blocks until the app stops; returns it so callers can inspect
    diagnostics afterwards.
    """
    config = config or Config.from_env()
    configure_logging(config.log_level, config.log_path)
    terminal = ProcessTerminal(alternate_screen=config.alternate_screen)
    app = App(terminal, routes, config=config, services=services, auth_check=auth_check)
    app.run(path)
    return app
