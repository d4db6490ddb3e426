"""Input and resize event descriptors consumed by the main loop.

Key identifiers use the ``"enter"``, ``"ctrl+c"``, ``"shift+tab"`` format.
:func:`decode_input` covers the legacy sequences a plain terminal sends; richer
keyboard protocols are left to the input driver that feeds the loop.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass

__all__ = ["InputEvent", "ResizeEvent", "InputBuffer", "decode_input"]

ESC = "\x1b"


@dataclass(frozen=True)
class InputEvent:
    """A decoded key press.

    ``key`` is the key identifier; ``data`` is the raw text that produced it
    (the typed character for printable keys).
    """

    key: str
    data: str = ""

    @property
    def is_printable(self) -> bool:
        return len(self.data) == 1 and self.data.isprintable()


@dataclass(frozen=True)
class ResizeEvent:
    width: int
    height: int


_SEQUENCES: dict[str, str] = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[2~": "insert",
    "\x1b[3~": "delete",
    "\x1b[5~": "pageup",
    "\x1b[6~": "pagedown",
    "\x1b[Z": "shift+tab",
}

_SINGLE: dict[str, str] = {
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    " ": "space",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\x00": "ctrl+space",
}

# Longest first so "\x1b[1~" wins over a bare escape.
_ORDERED = sorted(_SEQUENCES, key=len, reverse=True)


def _csi_length(data: str, start: int) -> int:
    """Length of a CSI sequence at *start* (``ESC [`` params final-byte)."""
    i = start + 2
    while i < len(data):
        if 0x40 <= ord(data[i]) <= 0x7E:
            return i - start + 1
        i += 1
    return len(data) - start


def decode_input(data: str) -> list[InputEvent]:
    """Split raw terminal input into key events."""
    events: list[InputEvent] = []
    i = 0
    while i < len(data):
        matched = False
        if data[i] == "\x1b":
            for seq in _ORDERED:
                if data.startswith(seq, i):
                    events.append(InputEvent(_SEQUENCES[seq], seq))
                    i += len(seq)
                    matched = True
                    break
            if matched:
                continue
            if data.startswith("\x1b[", i):
                length = _csi_length(data, i)
                seq = data[i : i + length]
                events.append(InputEvent("unknown", seq))
                i += length
                continue
            if i + 1 < len(data) and data[i + 1].isprintable():
                ch = data[i + 1]
                events.append(InputEvent("alt+" + ch.lower(), data[i : i + 2]))
                i += 2
                continue
            events.append(InputEvent("escape", "\x1b"))
            i += 1
            continue

        ch = data[i]
        if ch in _SINGLE:
            events.append(InputEvent(_SINGLE[ch], ch))
        elif 1 <= ord(ch) <= 26:
            events.append(InputEvent("ctrl+" + chr(ord(ch) + ord("a") - 1), ch))
        elif ch.isprintable():
            events.append(InputEvent(ch, ch))
        else:
            events.append(InputEvent("unknown", ch))
        i += 1
    return events


# ---------------------------------------------------------------------------
# Chunk reassembly
# ---------------------------------------------------------------------------


def _split_incomplete(text: str) -> tuple[str, str]:
    """Split off a trailing escape sequence that may still be arriving."""
    start = text.rfind(ESC)
    if start == -1:
        return text, ""
    tail = text[start:]
    if len(tail) == 1:
        return text[:start], tail
    if tail[1] == "[":
        if not any(0x40 <= ord(ch) <= 0x7E for ch in tail[2:]):
            return text[:start], tail
    elif tail[1] == "O" and len(tail) == 2:
        return text[:start], tail
    return text, ""


class InputBuffer:
    """Reassembles raw stdin chunks into text that is safe to decode.

    Bytes go through an incremental UTF-8 decoder, so a character split
    across two reads survives.  A trailing escape sequence that may still be
    arriving is held back until the next chunk; if nothing follows within
    ``timeout`` seconds the reader calls :meth:`flush`, and a lone ``ESC``
    then decodes as the escape key.
    """

    def __init__(self, timeout: float = 0.01) -> None:
        self.timeout = timeout
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, data: bytes) -> str:
        """Add a chunk; return the complete text it makes available."""
        text, self._pending = _split_incomplete(self._pending + self._decoder.decode(data))
        return text

    def flush(self) -> str:
        """Give up waiting and release the held escape sequence."""
        text, self._pending = self._pending, ""
        return text

    def clear(self) -> None:
        self._decoder.reset()
        self._pending = ""
