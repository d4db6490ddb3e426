"""Invocation gateway: the one safe path from the loop into node behaviour.

``InvocationGateway.invoke`` looks up a capability slot on a node and calls
it with the node as the receiver.  Missing nodes, unbound slots and
non-callable slots are no-ops; a slot that raises is contained -- the fault
is recorded as a :class:`Diagnostic`, logged, and reported to ``on_fault``
(normally the app's render request) so an error marker can be painted.  A
single broken widget can therefore never take down rendering or input.
"""

from __future__ import annotations

import logging
import time
import traceback
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from tessera.buffer import Canvas
from tessera.errors import InvocationFault
from tessera.events import InputEvent
from tessera.node import Capability, Node, Screen, is_focusable
from tessera.style import Attr, Style

__all__ = ["Diagnostic", "InvocationResult", "InvocationGateway", "NOOP"]

logger = logging.getLogger(__name__)

_FAULT_STYLE = Style(fg=15, bg=1, attrs=Attr.BOLD)


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of a dispatch.

    ``invoked`` is ``False`` for every no-op (missing node or slot) and for a
    faulted call; ``fault`` is set only in the latter case.
    """

    invoked: bool = False
    value: Any = None
    fault: InvocationFault | None = None

    @property
    def ok(self) -> bool:
        return self.invoked and self.fault is None


NOOP = InvocationResult()


@dataclass
class Diagnostic:
    """A contained capability fault."""

    component_type: str
    capability: str
    fault: str
    stack: str | None = None
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"{self.component_type}.{self.capability}: {self.fault}"


class InvocationGateway:
    """Dispatches capability calls and contains their faults."""

    def __init__(
        self,
        on_fault: Callable[[Diagnostic], None] | None = None,
        max_diagnostics: int = 100,
    ) -> None:
        self.on_fault = on_fault
        self.diagnostics: deque[Diagnostic] = deque(maxlen=max(1, max_diagnostics))
        self.fault_count = 0

    # ------------------------------------------------------------------
    # Core dispatch
    # ------------------------------------------------------------------

    def invoke(
        self,
        node: Node | None,
        capability: str | Capability,
        *args: Any,
        **kwargs: Any,
    ) -> InvocationResult:
        """Call ``node.<capability>(node, *args, **kwargs)`` safely."""
        if node is None:
            return NOOP
        name = capability.value if isinstance(capability, Capability) else capability
        slots = getattr(node, "capabilities", None)
        if not isinstance(slots, dict):
            return NOOP
        fn = slots.get(name)
        if fn is None or not callable(fn):
            return NOOP
        try:
            value = fn(node, *args, **kwargs)
        except Exception as exc:
            fault = InvocationFault(type(node).__name__, name, exc)
            self._record(fault, traceback.format_exc())
            return InvocationResult(invoked=False, fault=fault)
        return InvocationResult(invoked=True, value=value)

    def layout_fault(self, node: Node, stage: str, exc: BaseException) -> None:
        """Record a measure/arrange fault; install as ``Node.fault_reporter``."""
        fault = InvocationFault(type(node).__name__, stage, exc)
        self._record(fault, "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    def _record(self, fault: InvocationFault, stack: str) -> None:
        diagnostic = Diagnostic(
            component_type=fault.component_type,
            capability=fault.capability,
            fault=repr(fault.cause),
            stack=stack,
        )
        self.diagnostics.append(diagnostic)
        self.fault_count += 1
        logger.error("capability fault in %s\n%s", diagnostic, stack)
        if self.on_fault is not None:
            try:
                self.on_fault(diagnostic)
            except Exception:
                logger.exception("on_fault callback failed")

    # ------------------------------------------------------------------
    # Tree helpers
    # ------------------------------------------------------------------

    def render_tree(self, node: Node | None, canvas: Canvas) -> None:
        """Dispatch ``render`` down a subtree, children in ascending z-order.

        Each node draws through a canvas clipped to its own bounds (and its
        parent's content area).  A node whose render faults is overpainted
        with an error marker and its children are skipped.
        """
        if node is None or not node.visible:
            return
        own = canvas.clipped(node.bounds)
        if own.clip.is_empty():
            return
        result = self.invoke(node, Capability.RENDER, own)
        if result.fault is not None:
            self._paint_fault(node, own)
            return
        children = getattr(node, "children", None)
        if not children:
            return
        inner = canvas.clipped(getattr(node, "content_bounds", node.bounds))
        for child in sorted(children, key=lambda c: c.z_index):
            self.render_tree(child, inner)

    @staticmethod
    def _paint_fault(node: Node, canvas: Canvas) -> None:
        canvas.fill(node.bounds, " ", _FAULT_STYLE)
        canvas.write_text(node.x, node.y, f"! {type(node).__name__}", _FAULT_STYLE, node.width)

    def dispatch_input(self, screen: Screen | None, event: InputEvent) -> bool:
        """Offer *event* to the focused node, then bubble to its ancestors.

        Returns ``True`` as soon as a handler reports the event consumed.
        """
        if screen is None:
            return False
        self.sync_focus(screen)
        node: Node | None = screen.focused if screen.focused is not None else screen
        while node is not None:
            result = self.invoke(node, Capability.HANDLE_INPUT, event)
            if result.ok and result.value:
                return True
            node = node.parent
        return False

    def focus(self, screen: Screen, node: Node | None) -> bool:
        """Move keyboard focus, notifying ``on_blur`` / ``on_focus``."""
        if node is not None and not is_focusable(node):
            return False
        self.sync_focus(screen)
        previous = screen.focused
        if previous is node:
            return True
        screen.focused = node
        if previous is not None:
            self.invoke(previous, Capability.ON_BLUR)
            previous.mark_dirty()
        if node is not None:
            self.invoke(node, Capability.ON_FOCUS)
            node.mark_dirty()
        return True

    def focus_next(self, screen: Screen, reverse: bool = False) -> bool:
        self.sync_focus(screen)
        target = screen.next_focusable(reverse)
        if target is None:
            return False
        return self.focus(screen, target)

    def sync_focus(self, screen: Screen) -> None:
        """Blur nodes that left *screen* while focused, and drop foreign focus."""
        focused = screen.focused
        if focused is not None and focused.screen is not screen:
            screen.focused = None
            screen.blurred.append(focused)
        while screen.blurred:
            self.invoke(screen.blurred.pop(0), Capability.ON_BLUR)

    def clear_diagnostics(self) -> None:
        self.diagnostics.clear()
