"""
Boundary detection for terminal byte streams.

A chunk read from a PTY can end in the middle of a UTF-8 code point or in
the middle of an escape sequence. Replaying a cast renders every event on
its own, so an event payload must never end inside either of them. This
module splits a byte buffer into the longest prefix that is safe to emit
and a suffix that has to wait for more data.

Only sequence boundaries are detected here; nothing is interpreted.
"""

from __future__ import annotations


ESC = 0x1B
BEL = 0x07
CSI_INTRO = ord("[")
OSC_INTRO = ord("]")
ST_FINAL = ord("\\")
CSI_FINAL_MIN = 0x40
CSI_FINAL_MAX = 0x7E
MAX_UTF8_LEN = 4


def _sequence_end(buf: bytes, start: int) -> int | None:
    """Return the offset just past the escape sequence at `start`, or None while it is still open."""
    size = len(buf)
    if start + 1 >= size:
        return None
    intro = buf[start + 1]

    if intro == CSI_INTRO:
        for idx in range(start + 2, size):
            if CSI_FINAL_MIN <= buf[idx] <= CSI_FINAL_MAX:
                return idx + 1
        return None

    if intro == OSC_INTRO:
        idx = start + 2
        while idx < size:
            byte = buf[idx]
            if byte == BEL:
                return idx + 1
            if byte == ESC:
                if idx + 1 >= size:
                    return None
                if buf[idx + 1] == ST_FINAL:
                    return idx + 2
                # Any other ESC aborts the OSC and begins a new sequence.
                return idx
            idx += 1
        return None

    return start + 2


def open_escape_offset(buf: bytes) -> int | None:
    idx = buf.find(ESC)
    while idx != -1:
        end = _sequence_end(buf, idx)
        if end is None:
            return idx
        idx = buf.find(ESC, end)
    return None


def incomplete_utf8_offset(buf: bytes) -> int | None:
    size = len(buf)
    for idx in range(size - 1, max(size - MAX_UTF8_LEN, 0) - 1, -1):
        byte = buf[idx]
        if byte & 0x80 == 0:
            return None
        if byte & 0xC0 != 0xC0:
            continue
        if byte & 0xE0 == 0xC0:
            expected = 2
        elif byte & 0xF0 == 0xE0:
            expected = 3
        elif byte & 0xF8 == 0xF0:
            expected = 4
        else:
            expected = 1
        if idx + expected > size:
            return idx
        return None
    return None


def split_safe(held: bytes, data: bytes) -> tuple[bytes, bytes]:
    """Split `held + data` into (safe_to_emit, remainder)."""
    buf = held + data
    if not buf:
        return b"", b""

    boundary = open_escape_offset(buf)
    if boundary is None:
        boundary = incomplete_utf8_offset(buf)
    if boundary is None:
        return buf, b""
    return buf[:boundary], buf[boundary:]


class EscapeSegmenter:
    """Holds partial bytes between writes. Not thread-safe; callers serialize access."""

    def __init__(self) -> None:
        self._held = b""

    def feed(self, data: bytes) -> tuple[bytes, bytes]:
        safe, self._held = split_safe(self._held, bytes(data))
        return safe, self._held

    def held_byte_count(self) -> int:
        return len(self._held)

    def force_flush(self) -> bytes:
        held, self._held = self._held, b""
        return held
