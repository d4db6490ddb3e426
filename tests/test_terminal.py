"""Tests for ANSI encoding of cell batches and the stdin reader."""

from __future__ import annotations

import os
import sys
import time

import pytest

from tessera.renderer import CellUpdate
from tessera.style import Attr
from tessera.terminal import ProcessTerminal, encode_cells, sgr


class TestSgr:
    def test_default(self) -> None:
        assert sgr(None, None, Attr.NONE) == "\x1b[0m"

    def test_basic_and_bright_colors(self) -> None:
        assert sgr(1, 4, Attr.NONE) == "\x1b[0;31;44m"
        assert sgr(9, 12, Attr.NONE) == "\x1b[0;91;104m"

    def test_palette_and_rgb(self) -> None:
        assert sgr(200, None, Attr.NONE) == "\x1b[0;38;5;200m"
        assert sgr(None, (1, 2, 3), Attr.NONE) == "\x1b[0;48;2;1;2;3m"

    def test_attributes(self) -> None:
        assert sgr(None, None, Attr.BOLD | Attr.UNDERLINE) == "\x1b[0;1;4m"


class TestEncodeCells:
    def test_empty(self) -> None:
        assert encode_cells([]) == ""

    def test_adjacent_cells_share_move_and_style(self) -> None:
        out = encode_cells([CellUpdate(0, 0, "a"), CellUpdate(1, 0, "b")])
        assert out == "\x1b[1;1H\x1b[0mab\x1b[0m"

    def test_gap_triggers_move(self) -> None:
        out = encode_cells([CellUpdate(0, 0, "a"), CellUpdate(5, 2, "b")])
        assert "\x1b[3;6H" in out

    def test_style_change_emits_sgr(self) -> None:
        out = encode_cells([CellUpdate(0, 0, "a"), CellUpdate(1, 0, "b", fg=2)])
        assert out == "\x1b[1;1H\x1b[0ma\x1b[0;32mb\x1b[0m"

    def test_wide_glyph_continuation_skipped(self) -> None:
        out = encode_cells([CellUpdate(0, 0, "中"), CellUpdate(1, 0, ""), CellUpdate(2, 0, "x")])
        assert out == "\x1b[1;1H\x1b[0m中x\x1b[0m"


class _PipeStdin:
    def __init__(self, fd: int) -> None:
        self._fd = fd

    def fileno(self) -> int:
        return self._fd


class TestStdinReader:
    @pytest.fixture
    def pipe(self, monkeypatch: pytest.MonkeyPatch):
        read_fd, write_fd = os.pipe()
        monkeypatch.setattr(sys, "stdin", _PipeStdin(read_fd))
        yield write_fd
        os.close(read_fd)
        os.close(write_fd)

    def _wait_for(self, received: list[str], expected: str) -> bool:
        deadline = time.monotonic() + 2.0
        while time.monotonic() < deadline:
            if "".join(received) == expected:
                return True
            time.sleep(0.005)
        return False

    def test_split_chunks_are_reassembled(self, pipe: int) -> None:
        term = ProcessTerminal()
        received: list[str] = []
        term._input_handler = received.append
        term._start_reader()
        try:
            encoded = "é".encode()
            os.write(pipe, encoded[:1])
            os.write(pipe, encoded[1:] + b"\x1b[A")
            assert self._wait_for(received, "é\x1b[A")
        finally:
            term._stop_reader()

    def test_lone_escape_flushed_after_quiet_period(self, pipe: int) -> None:
        term = ProcessTerminal()
        received: list[str] = []
        term._input_handler = received.append
        term._start_reader()
        try:
            os.write(pipe, b"\x1b")
            assert self._wait_for(received, "\x1b")
        finally:
            term._stop_reader()

    def test_stop_joins_reader(self, pipe: int) -> None:
        term = ProcessTerminal()
        term._input_handler = lambda data: None
        term._start_reader()
        reader = term._reader
        term._stop_reader()
        assert reader is not None and not reader.is_alive()
        assert term._reader is None
