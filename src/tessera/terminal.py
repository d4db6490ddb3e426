"""Terminal abstraction: the output surface for cell writes plus raw input.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal`` that
manages raw mode, the alternate screen, cursor visibility and SIGWINCH-based
resize detection, and encodes :class:`~tessera.renderer.CellUpdate` batches as
ANSI cursor-positioning and SGR sequences.
"""

from __future__ import annotations

import logging
import os
import select
import signal
import sys
import threading
from typing import Callable, Protocol, Sequence

from tessera.buffer import glyph_width
from tessera.events import InputBuffer
from tessera.renderer import CellUpdate
from tessera.style import Attr, Color

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_ALT_SCREEN_ENABLE = "\x1b[?1049h"
_ALT_SCREEN_DISABLE = "\x1b[?1049l"
_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"
_RESET = "\x1b[0m"
_SYNC_BEGIN = "\x1b[?2026h"
_SYNC_END = "\x1b[?2026l"
_MOVE_FMT = "\x1b[{};{}H"
_SET_TITLE_FMT = "\x1b]0;{}\x07"

# How long the reader waits in select() before re-checking for stop.
_POLL_INTERVAL = 0.05

_ATTR_CODES: tuple[tuple[Attr, str], ...] = (
    (Attr.BOLD, "1"),
    (Attr.DIM, "2"),
    (Attr.ITALIC, "3"),
    (Attr.UNDERLINE, "4"),
    (Attr.BLINK, "5"),
    (Attr.REVERSE, "7"),
    (Attr.STRIKE, "9"),
)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _color_params(color: Color, base: int, bright_base: int, extended: int) -> list[str]:
    if color is None:
        return []
    if isinstance(color, tuple):
        r, g, b = color
        return [str(extended), "2", str(r), str(g), str(b)]
    if 0 <= color < 8:
        return [str(base + color)]
    if 8 <= color < 16:
        return [str(bright_base + color - 8)]
    return [str(extended), "5", str(color)]


def sgr(fg: Color, bg: Color, attrs: Attr) -> str:
    """Build a single SGR sequence that fully specifies the style."""
    params = ["0"]
    for flag, code in _ATTR_CODES:
        if attrs & flag:
            params.append(code)
    params.extend(_color_params(fg, 30, 90, 38))
    params.extend(_color_params(bg, 40, 100, 48))
    return "\x1b[" + ";".join(params) + "m"


def encode_cells(updates: Sequence[CellUpdate]) -> str:
    """Encode positioned cell writes as a minimal ANSI string.

    Cursor moves are only emitted when an update is not adjacent to the
    previous one, and SGR only when the style changes.
    """
    out: list[str] = []
    cursor: tuple[int, int] | None = None
    style: tuple[Color, Color, Attr] | None = None

    for update in updates:
        if update.glyph == "":
            # Right half of a wide glyph: the terminal already advanced over it.
            continue
        if cursor != (update.x, update.y):
            out.append(_MOVE_FMT.format(update.y + 1, update.x + 1))
        cell_style = (update.fg, update.bg, update.attrs)
        if cell_style != style:
            out.append(sgr(*cell_style))
            style = cell_style
        out.append(update.glyph)
        cursor = (update.x + max(1, glyph_width(update.glyph)), update.y)

    if out:
        out.append(_RESET)
    return "".join(out)


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal I/O used by :class:`~tessera.app.App`."""

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    def write(self, data: str) -> None: ...

    def write_cells(self, updates: Sequence[CellUpdate]) -> None: ...

    def clear(self) -> None: ...

    def hide_cursor(self) -> None: ...

    def show_cursor(self) -> None: ...

    def set_title(self, title: str) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Concrete terminal backed by ``sys.stdin`` / ``sys.stdout``.

    Raw mode comes from :mod:`tty` / :mod:`termios`.  Stdin is read on a
    daemon thread that reassembles chunks with :class:`~tessera.events.InputBuffer`
    and only forwards complete text to ``on_input``; the callback is expected
    to enqueue it for the main loop.  ``stop`` joins the reader before the
    terminal mode is restored.
    """

    def __init__(self, alternate_screen: bool = True) -> None:
        self._alternate_screen = alternate_screen
        self._input_handler: Callable[[str], None] | None = None
        self._resize_handler: Callable[[], None] | None = None
        self._original_termios: list | None = None
        self._prev_sigwinch_handler: signal.Handlers | None = None
        self._reader: threading.Thread | None = None
        self._running = threading.Event()
        self._write_log_path: str = os.environ.get("TESSERA_WRITE_LOG", "")

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).columns
        except (ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).lines
        except (ValueError, OSError):
            return 24

    # -- start / stop -------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        """Enable raw mode and the alternate screen, and begin reading stdin."""
        import termios
        import tty

        self._input_handler = on_input
        self._resize_handler = on_resize

        fd = sys.stdin.fileno()
        self._original_termios = termios.tcgetattr(fd)
        tty.setraw(fd)

        if self._alternate_screen:
            self._raw_write(_ALT_SCREEN_ENABLE)
        self.hide_cursor()

        self._prev_sigwinch_handler = signal.getsignal(signal.SIGWINCH)
        signal.signal(signal.SIGWINCH, self._on_sigwinch)

        self._start_reader()

    def stop(self) -> None:
        """Restore terminal state and clean up all handlers."""
        import termios

        self._stop_reader()
        self._raw_write(_RESET)
        self.show_cursor()
        if self._alternate_screen:
            self._raw_write(_ALT_SCREEN_DISABLE)

        if self._prev_sigwinch_handler is not None:
            signal.signal(signal.SIGWINCH, self._prev_sigwinch_handler)
            self._prev_sigwinch_handler = None

        if self._original_termios is not None:
            termios.tcsetattr(
                sys.stdin.fileno(), termios.TCSADRAIN, self._original_termios
            )
            self._original_termios = None

        self._input_handler = None
        self._resize_handler = None

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write data to stdout and optionally to the write log."""
        self._raw_write(data)

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a") as f:
                    f.write(data)
            except OSError:
                logger.warning("could not append to write log %s", self._write_log_path)

    def write_cells(self, updates: Sequence[CellUpdate]) -> None:
        encoded = encode_cells(updates)
        if encoded:
            self.write(_SYNC_BEGIN + encoded + _SYNC_END)

    def clear(self) -> None:
        self._raw_write(_RESET + _CLEAR_SCREEN)

    def hide_cursor(self) -> None:
        self._raw_write(_HIDE_CURSOR)

    def show_cursor(self) -> None:
        self._raw_write(_SHOW_CURSOR)

    def set_title(self, title: str) -> None:
        self._raw_write(_SET_TITLE_FMT.format(title))

    # -- private ------------------------------------------------------------

    def _start_reader(self) -> None:
        self._running.set()
        self._reader = threading.Thread(
            target=self._read_stdin, name="tessera-stdin", daemon=True
        )
        self._reader.start()

    def _stop_reader(self) -> None:
        self._running.clear()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=_POLL_INTERVAL * 10)

    def _read_stdin(self) -> None:
        fd = sys.stdin.fileno()
        buffer = InputBuffer()
        while self._running.is_set():
            timeout = buffer.timeout if buffer.pending else _POLL_INTERVAL
            try:
                ready, _, _ = select.select([fd], [], [], timeout)
            except (OSError, ValueError):
                return
            if not self._running.is_set():
                return
            if not ready:
                self._emit_input(buffer.flush())
                continue
            try:
                raw = os.read(fd, 4096)
            except OSError:
                return
            if not raw:
                self._emit_input(buffer.flush())
                return
            self._emit_input(buffer.feed(raw))

    def _emit_input(self, text: str) -> None:
        handler = self._input_handler
        if text and handler is not None:
            handler(text)

    def _on_sigwinch(self, signum: int, frame: object) -> None:
        if self._resize_handler is not None:
            self._resize_handler()

    def _raw_write(self, data: str) -> None:
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError:
            pass
