from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, Iterator

from caststream.asciinema import CastEvent, CastHeader, StreamRecord, parse_event, parse_header
from caststream.errors import MalformedRecordError, StreamExhaustedError


class StreamReader:
    """
    Pull decoder for a cast stream.

    The first `next()` returns the header record, later calls return one
    event record each, and the end of the source yields a single `end`
    record. A malformed line ends decoding for good: the error is raised
    once and every later call raises StreamExhaustedError.
    """

    def __init__(self, source: IO | Iterable) -> None:
        self._lines = iter(source)
        self._line_number = 0
        self._header: CastHeader | None = None
        self._finished = False

    @property
    def header(self) -> CastHeader | None:
        return self._header

    def _next_line(self) -> str | None:
        for raw in self._lines:
            self._line_number += 1
            line = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else raw
            line = line.strip()
            if line:
                return line
        return None

    def next(self) -> StreamRecord:
        if self._finished:
            raise StreamExhaustedError("cast stream already fully consumed")

        try:
            line = self._next_line()
            if self._header is None:
                if line is None:
                    raise MalformedRecordError("missing header", self._line_number or None)
                self._header = parse_header(line, self._line_number)
                return StreamRecord(type="header", header=self._header)

            if line is None:
                self._finished = True
                return StreamRecord(type="end")
            return StreamRecord(type="event", event=parse_event(line, self._line_number))
        except MalformedRecordError:
            self._finished = True
            raise

    def __iter__(self) -> Iterator[StreamRecord]:
        while True:
            record = self.next()
            if record.is_end:
                return
            yield record

    def events(self) -> Iterator[CastEvent]:
        for record in self:
            if record.event is not None:
                yield record.event


def read_cast(path: str | Path) -> tuple[CastHeader, list[CastEvent]]:
    with open(path, "rb") as handle:
        reader = StreamReader(handle)
        events = list(reader.events())
    if reader.header is None:
        raise MalformedRecordError(f"missing header in {path}")
    return reader.header, events
