"""Navigation router: route table, screen stack, history and breadcrumbs.

A ``go_to`` transition walks a fixed sequence of phases::

    IDLE -> GUARDING -> AUTHORIZING -> INSTANTIATING -> COMMITTING -> HOOKING -> IDLE

Guards (in registration order) and the auth check can reject; a factory
that raises or returns something other than a :class:`Screen` fails the
transition.  Rejections and failures leave the stack and history untouched
and come back as a :class:`NavigationResult` -- ``go_to`` never raises for
them.  Hooks run only after a successful commit and their faults are logged.

History is a single append-only log shared by forward (``push``) and back
(``pop``) navigation.
"""

from __future__ import annotations

import enum
import inspect
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from tessera.errors import ConfigurationError, NavigationFailure, NavigationRejected
from tessera.gateway import InvocationGateway
from tessera.node import Capability, Screen

__all__ = [
    "Route",
    "RouterPhase",
    "HistoryEntry",
    "Breadcrumb",
    "NavigationEvent",
    "NavigationResult",
    "BackResult",
    "NavigationState",
    "Router",
    "normalize_path",
]

logger = logging.getLogger(__name__)

ScreenFactory = Callable[..., Screen | None]
Guard = Callable[["NavigationEvent"], bool]
Hook = Callable[["NavigationEvent"], Any]

_SLASHES_RE = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Force a leading slash, collapse repeated slashes, drop a trailing one."""
    if not isinstance(path, str):
        raise ConfigurationError(f"route path must be a string, got {path!r}")
    text = path.strip()
    if not text:
        raise ConfigurationError("route path must not be empty")
    text = _SLASHES_RE.sub("/", "/" + text.lstrip("/"))
    if len(text) > 1:
        text = text.rstrip("/")
    return text


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Route:
    path: str
    factory: ScreenFactory
    title: str = ""
    auth_required: bool = False


class RouterPhase(str, enum.Enum):
    IDLE = "idle"
    GUARDING = "guarding"
    AUTHORIZING = "authorizing"
    INSTANTIATING = "instantiating"
    COMMITTING = "committing"
    HOOKING = "hooking"


@dataclass(frozen=True)
class HistoryEntry:
    path: str
    timestamp: float
    params: dict[str, Any] = field(default_factory=dict)
    action: str = "push"


@dataclass(frozen=True)
class Breadcrumb:
    path: str
    title: str


@dataclass(frozen=True)
class NavigationEvent:
    """What guards and hooks are told about a transition."""

    from_path: str | None
    to_path: str
    params: Mapping[str, Any]
    action: str = "push"


@dataclass(frozen=True)
class NavigationResult:
    ok: bool
    path: str
    screen: Screen | None = None
    error: NavigationRejected | NavigationFailure | None = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class BackResult:
    ok: bool
    steps_requested: int
    steps_completed: int

    @property
    def partial(self) -> bool:
        return self.ok and self.steps_completed < self.steps_requested

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class NavigationState:
    stack: list[Screen] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    breadcrumbs: list[Breadcrumb] = field(default_factory=list)
    guards: list[Guard] = field(default_factory=list)
    hooks: list[Hook] = field(default_factory=list)
    phase: RouterPhase = RouterPhase.IDLE


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class Router:
    """Route table plus the screen stack state machine."""

    def __init__(
        self,
        routes: Mapping[str, ScreenFactory | Route | Mapping[str, Any]] | None = None,
        *,
        gateway: InvocationGateway | None = None,
        services: Any = None,
        auth_check: Callable[[Route], bool] | None = None,
        on_error: Callable[[NavigationRejected | NavigationFailure], None] | None = None,
        breadcrumbs_enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway or InvocationGateway()
        self.services = services
        self.auth_check = auth_check
        self.on_error = on_error
        self.breadcrumbs_enabled = breadcrumbs_enabled
        self._clock = clock
        self._routes: dict[str, Route] = {}
        self._state = NavigationState()
        if routes:
            self.add_routes(routes, replace=True)

    # ------------------------------------------------------------------
    # Route table
    # ------------------------------------------------------------------

    def add_route(
        self,
        path: str,
        factory: ScreenFactory,
        title: str = "",
        auth_required: bool = False,
        replace: bool = False,
    ) -> Route:
        """Register a route.  Raises :class:`ConfigurationError` if malformed."""
        key = normalize_path(path)
        if factory is None or not callable(factory):
            raise ConfigurationError(f"route {key} has no callable factory")
        if key in self._routes and not replace:
            raise ConfigurationError(f"route {key} is already registered")
        route = Route(key, factory, title or key, bool(auth_required))
        self._routes[key] = route
        logger.debug("registered route %s", key)
        return route

    def add_routes(
        self,
        routes: Mapping[str, ScreenFactory | Route | Mapping[str, Any]],
        replace: bool = True,
    ) -> None:
        """Register a table of routes; later entries override earlier ones.

        Values may be a bare factory, a :class:`Route`, or a mapping with
        ``factory``, ``title`` and ``auth_required`` keys.
        """
        for path, spec in routes.items():
            if isinstance(spec, Route):
                self.add_route(path, spec.factory, spec.title, spec.auth_required, replace)
            elif isinstance(spec, Mapping):
                if "factory" not in spec:
                    raise ConfigurationError(f"route {path} is missing a factory")
                self.add_route(
                    path,
                    spec["factory"],
                    spec.get("title", ""),
                    spec.get("auth_required", False),
                    replace,
                )
            else:
                self.add_route(path, spec, replace=replace)

    def remove_route(self, path: str) -> Route:
        key = normalize_path(path)
        try:
            return self._routes.pop(key)
        except KeyError:
            raise ConfigurationError(f"route {key} is not registered") from None

    def get_route(self, path: str) -> Route | None:
        try:
            return self._routes.get(normalize_path(path))
        except ConfigurationError:
            return None

    @property
    def routes(self) -> dict[str, Route]:
        return dict(self._routes)

    # ------------------------------------------------------------------
    # Guards / hooks
    # ------------------------------------------------------------------

    def add_guard(self, guard: Guard) -> Callable[[], None]:
        """Register a before-navigate guard.  Returns an unsubscribe function."""
        self._state.guards.append(guard)

        def remove() -> None:
            if guard in self._state.guards:
                self._state.guards.remove(guard)

        return remove

    def add_hook(self, hook: Hook) -> Callable[[], None]:
        """Register an after-navigate hook.  Returns an unsubscribe function."""
        self._state.hooks.append(hook)

        def remove() -> None:
            if hook in self._state.hooks:
                self._state.hooks.remove(hook)

        return remove

    # ------------------------------------------------------------------
    # State views
    # ------------------------------------------------------------------

    @property
    def phase(self) -> RouterPhase:
        return self._state.phase

    @property
    def current(self) -> Screen | None:
        return self._state.stack[-1] if self._state.stack else None

    @property
    def current_path(self) -> str | None:
        screen = self.current
        return screen.path if screen is not None else None

    @property
    def stack(self) -> list[Screen]:
        return list(self._state.stack)

    @property
    def depth(self) -> int:
        return len(self._state.stack)

    @property
    def can_go_back(self) -> bool:
        return len(self._state.stack) > 1

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._state.history)

    @property
    def breadcrumbs(self) -> list[Breadcrumb]:
        return list(self._state.breadcrumbs)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def go_to(self, path: str, params: Mapping[str, Any] | None = None) -> NavigationResult:
        """Navigate to *path*, pushing a new screen on success."""
        params = dict(params or {})
        if self._state.phase is not RouterPhase.IDLE:
            return self._fail(NavigationFailure(str(path), "another navigation is in progress"))
        try:
            key = normalize_path(path)
        except ConfigurationError as exc:
            return self._fail(NavigationFailure(str(path), str(exc)))

        route = self._routes.get(key)
        if route is None:
            return self._fail(NavigationFailure(key, "no such route"))

        event = NavigationEvent(self.current_path, key, params, "push")
        try:
            rejection = self._run_guards(event)
            if rejection is None:
                rejection = self._authorize(route)
            if rejection is not None:
                return self._fail(rejection)

            self._state.phase = RouterPhase.INSTANTIATING
            screen_or_error = self._instantiate(route)
            if isinstance(screen_or_error, NavigationFailure):
                return self._fail(screen_or_error)
            screen = screen_or_error

            self._state.phase = RouterPhase.COMMITTING
            self._commit(route, screen, params)

            self._state.phase = RouterPhase.HOOKING
            self._run_hooks(event)
        finally:
            self._state.phase = RouterPhase.IDLE
        return NavigationResult(True, key, screen)

    def back(self, steps: int = 1) -> BackResult:
        """Pop up to *steps* screens, never removing the root.

        Fails if no step could be taken; reports a partial result when the
        stack ran out early.
        """
        if self._state.phase is not RouterPhase.IDLE or steps < 1:
            return BackResult(False, steps, 0)
        completed = 0
        stack = self._state.stack
        while completed < steps and len(stack) > 1:
            screen = stack.pop()
            if self._state.breadcrumbs:
                self._state.breadcrumbs.pop()
            self.gateway.invoke(screen, Capability.ON_UNMOUNT)
            completed += 1
            top = stack[-1]
            top.mark_dirty()
            self._state.history.append(
                HistoryEntry(top.path or "", self._clock(), dict(top.params), "pop")
            )
            event = NavigationEvent(screen.path, top.path or "", {}, "pop")
            self._state.phase = RouterPhase.HOOKING
            try:
                self._run_hooks(event)
            finally:
                self._state.phase = RouterPhase.IDLE

        if completed == 0:
            logger.info("back(%d) refused: only the root screen remains", steps)
            return BackResult(False, steps, 0)
        if completed < steps:
            logger.info("back(%d) stopped early after %d step(s)", steps, completed)
        return BackResult(True, steps, completed)

    def reset(self, path: str, params: Mapping[str, Any] | None = None) -> NavigationResult:
        """Navigate to *path* and make it the only screen on the stack."""
        result = self.go_to(path, params)
        if result.ok:
            stack = self._state.stack
            for screen in stack[:-1]:
                self.gateway.invoke(screen, Capability.ON_UNMOUNT)
            del stack[:-1]
            self._sync_breadcrumbs()
        return result

    def replace(self, path: str, params: Mapping[str, Any] | None = None) -> NavigationResult:
        """Navigate to *path* and drop the screen it was reached from."""
        result = self.go_to(path, params)
        if result.ok and len(self._state.stack) > 1:
            below = self._state.stack.pop(-2)
            self.gateway.invoke(below, Capability.ON_UNMOUNT)
            self._sync_breadcrumbs()
        return result

    def _sync_breadcrumbs(self) -> None:
        """Rebuild the trail from the stack (every screen but the root)."""
        if not self.breadcrumbs_enabled:
            return
        trail: list[Breadcrumb] = []
        for screen in self._state.stack[1:]:
            route = self._routes.get(screen.path or "")
            trail.append(Breadcrumb(screen.path or "", route.title if route else screen.title))
        self._state.breadcrumbs[:] = trail

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _run_guards(self, event: NavigationEvent) -> NavigationRejected | None:
        self._state.phase = RouterPhase.GUARDING
        for guard in list(self._state.guards):
            try:
                allowed = guard(event)
            except Exception as exc:
                logger.exception("navigation guard %r raised", guard)
                return NavigationRejected(event.to_path, f"guard raised {exc!r}")
            if not allowed:
                return NavigationRejected(event.to_path, "blocked by guard")
        return None

    def _authorize(self, route: Route) -> NavigationRejected | None:
        if not route.auth_required:
            return None
        self._state.phase = RouterPhase.AUTHORIZING
        if self.auth_check is None:
            return NavigationRejected(route.path, "authentication required")
        try:
            allowed = self.auth_check(route)
        except Exception as exc:
            logger.exception("auth check raised for %s", route.path)
            return NavigationRejected(route.path, f"auth check raised {exc!r}")
        if not allowed:
            return NavigationRejected(route.path, "not authorized")
        return None

    def _instantiate(self, route: Route) -> Screen | NavigationFailure:
        try:
            if _accepts_argument(route.factory):
                screen = route.factory(self.services)
            else:
                screen = route.factory()
        except Exception as exc:
            logger.exception("screen factory for %s raised", route.path)
            return NavigationFailure(route.path, f"factory raised {exc!r}", exc)
        if screen is None:
            return NavigationFailure(route.path, "factory returned no screen")
        if not isinstance(screen, Screen):
            return NavigationFailure(
                route.path, f"factory returned {type(screen).__name__}, not a Screen"
            )
        return screen

    def _commit(self, route: Route, screen: Screen, params: dict[str, Any]) -> None:
        screen.path = route.path
        if not screen.title:
            screen.title = route.title
        self._state.stack.append(screen)
        self._state.history.append(HistoryEntry(route.path, self._clock(), dict(params), "push"))
        if self.breadcrumbs_enabled and len(self._state.stack) > 1:
            self._state.breadcrumbs.append(Breadcrumb(route.path, route.title))
        if params:
            self.gateway.invoke(screen, Capability.SET_PARAMS, params)
        self.gateway.invoke(screen, Capability.ON_MOUNT)
        screen.mark_dirty()
        logger.info("navigated to %s (depth %d)", route.path, len(self._state.stack))

    def _run_hooks(self, event: NavigationEvent) -> None:
        for hook in list(self._state.hooks):
            try:
                hook(event)
            except Exception:
                logger.exception("navigation hook %r raised", hook)

    def _fail(self, error: NavigationRejected | NavigationFailure) -> NavigationResult:
        if isinstance(error, NavigationRejected):
            logger.info("%s", error)
        else:
            logger.warning("%s", error)
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception:
                logger.exception("navigation error callback failed")
        return NavigationResult(False, error.path, None, error)


def _accepts_argument(factory: Callable[..., Any]) -> bool:
    """``True`` if *factory* asks for a positional argument.

    Optional positionals (a Screen subclass's ``layout``) do not count, so a
    class can be registered as its own factory.
    """
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return False
    for param in signature.parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            return param.default is param.empty
    return False
