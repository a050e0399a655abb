from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, BinaryIO

from caststream.asciinema import (
    CastHeader,
    EventKind,
    decode_bytes,
    encode_line,
    format_event,
    format_header,
    positive_int,
    validate_header,
)
from caststream.config import EncoderSettings
from caststream.errors import CastError, ClosedSessionError, InvalidConfigurationError, SinkWriteError
from caststream.segmenter import EscapeSegmenter


logger = logging.getLogger(__name__)

SEGMENTED_KINDS = (EventKind.OUTPUT, EventKind.INPUT)


def sync_sink(sink: Any) -> bool:
    """Durably sync `sink` if it supports it. Returns False when it does not."""
    sync = getattr(sink, "sync", None)
    if callable(sync):
        sync()
        return True
    fileno = getattr(sink, "fileno", None)
    if not callable(fileno):
        return False
    try:
        fd = fileno()
    except (OSError, ValueError):
        # In-memory streams expose fileno() but have no descriptor.
        return False
    os.fsync(fd)
    return True


class StreamWriter:
    """
    Appends a cast stream to a byte sink.

    Output and input bytes pass through one EscapeSegmenter per kind so an
    event never ends inside a UTF-8 code point or an escape sequence. Held
    bytes are force-flushed by a debounced timer after
    `settings.flush_delay_sec`, and durable syncs are coalesced by a second
    timer. A single lock serializes the writer thread and both timers.
    """

    def __init__(
        self,
        sink: BinaryIO,
        header: CastHeader,
        settings: EncoderSettings | None = None,
        *,
        close_sink: bool = True,
    ) -> None:
        validate_header(header)
        self.sink = sink
        self.header = header
        self.settings = settings or EncoderSettings()
        self.close_sink = close_sink

        self.start_wall = time.time()
        self.start_time = time.monotonic()
        self.last_activity = self.start_time

        self._lock = threading.Lock()
        self._closed = False
        self._segmenters = {kind: EscapeSegmenter() for kind in SEGMENTED_KINDS}
        self._flush_timer: threading.Timer | None = None
        self._flush_generation = 0
        self._sync_timer: threading.Timer | None = None
        self._sync_generation = 0
        self._sync_needed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __enter__(self) -> "StreamWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def write_header(self) -> None:
        with self._lock:
            if self._closed:
                raise ClosedSessionError()
            if not self.header.timestamp:
                self.header.timestamp = int(self.start_wall)
            line = format_header(self.header)
            self._write_line(line)
            self._flush_sink()

    def write_output(self, data: bytes) -> None:
        self._write_event(EventKind.OUTPUT, data)

    def write_input(self, data: bytes) -> None:
        self._write_event(EventKind.INPUT, data)

    def write_resize(self, cols: int, rows: int) -> None:
        token = f"{positive_int('cols', cols)}x{positive_int('rows', rows)}"
        self._write_direct(EventKind.RESIZE, token)

    def write_marker(self, label: str = "") -> None:
        if not isinstance(label, str):
            raise InvalidConfigurationError(f"marker label must be a string, got {label!r}")
        self._write_direct(EventKind.MARKER, label)

    def held_byte_count(self) -> int:
        with self._lock:
            return sum(seg.held_byte_count() for seg in self._segmenters.values())

    def _write_event(self, kind: EventKind, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise ClosedSessionError()
            self.last_activity = time.monotonic()

            segmenter = self._segmenters[kind]
            safe, held = segmenter.feed(data)
            if not safe:
                if held:
                    self._schedule_flush()
                return

            self._emit(kind, decode_bytes(safe))
            if held:
                self._schedule_flush()
            self._schedule_sync()

    def _write_direct(self, kind: EventKind, text: str) -> None:
        with self._lock:
            if self._closed:
                raise ClosedSessionError()
            self.last_activity = time.monotonic()
            self._emit(kind, text)
            self._schedule_sync()

    def _emit(self, kind: EventKind, text: str) -> None:
        elapsed = time.monotonic() - self.start_time
        self._write_line(format_event(elapsed, kind, text))
        self._flush_sink()

    def _write_line(self, line: str) -> None:
        payload = encode_line(line)
        try:
            self.sink.write(payload)
        except (OSError, TypeError, ValueError) as exc:
            raise SinkWriteError(f"failed to write cast line: {exc}") from exc

    def _flush_sink(self) -> None:
        flush = getattr(self.sink, "flush", None)
        if not callable(flush):
            return
        try:
            flush()
        except (OSError, ValueError) as exc:
            raise SinkWriteError(f"failed to flush sink: {exc}") from exc

    def _drain_held(self) -> bool:
        emitted = False
        for kind, segmenter in self._segmenters.items():
            pending = segmenter.force_flush()
            if pending:
                self._emit(kind, decode_bytes(pending))
                emitted = True
        return emitted

    def _schedule_flush(self) -> None:
        if self._flush_timer is not None:
            self._flush_timer.cancel()
        self._flush_generation += 1
        timer = threading.Timer(self.settings.flush_delay_sec, self._on_flush_timer, args=(self._flush_generation,))
        timer.daemon = True
        self._flush_timer = timer
        logger.debug("flush scheduled in %.3fs", self.settings.flush_delay_sec)
        timer.start()

    def _on_flush_timer(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._flush_generation:
                return
            self._flush_timer = None
            try:
                emitted = self._drain_held()
            except CastError as exc:
                logger.warning("forced flush failed: %s", exc)
                return
            if emitted:
                self._schedule_sync()

    def _schedule_sync(self) -> None:
        if not self.settings.sync_enabled:
            return
        self._sync_needed = True
        if self._sync_timer is not None:
            self._sync_timer.cancel()
        self._sync_generation += 1
        timer = threading.Timer(self.settings.sync_delay_sec, self._on_sync_timer, args=(self._sync_generation,))
        timer.daemon = True
        self._sync_timer = timer
        timer.start()

    def _on_sync_timer(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._sync_generation:
                return
            self._sync_timer = None
            self._sync_pending()

    def _sync_pending(self) -> None:
        if not self._sync_needed:
            return
        try:
            sync_sink(self.sink)
        except (OSError, ValueError) as exc:
            logger.warning("failed to sync cast sink: %s", exc)
        self._sync_needed = False

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return

            for timer in (self._flush_timer, self._sync_timer):
                if timer is not None:
                    timer.cancel()
            self._flush_timer = None
            self._sync_timer = None

            try:
                if self._drain_held() and self.settings.sync_enabled:
                    self._sync_needed = True
            except CastError as exc:
                logger.warning("failed to write final cast event: %s", exc)
            self._sync_pending()

            self._closed = True
            if not self.close_sink:
                return
            close = getattr(self.sink, "close", None)
            if callable(close):
                try:
                    close()
                except OSError as exc:
                    raise SinkWriteError(f"failed to close sink: {exc}") from exc
