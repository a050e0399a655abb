from __future__ import annotations

"""
Shared pytest fixtures for the caststream suite.

Writers built by `make_writer` use a long flush delay by default so that
boundary tests see exactly what the segmenter emits, without a background
forced flush racing the assertions. Timer behaviour is covered separately
with short delays.
"""

import pytest

from caststream.asciinema import build_header
from caststream.config import EncoderSettings
from caststream.writer import StreamWriter
from tests.support.io import MemorySink


QUIET_SETTINGS = EncoderSettings(flush_delay_sec=60.0, sync_delay_sec=60.0)


@pytest.fixture
def header():
    return build_header(width=80, height=24, timestamp=1700000000)


@pytest.fixture
def make_writer(header):
    writers: list[StreamWriter] = []

    def _make(sink=None, settings: EncoderSettings = QUIET_SETTINGS, **kwargs) -> tuple[StreamWriter, object]:
        sink = sink if sink is not None else MemorySink()
        writer = StreamWriter(sink, kwargs.pop("cast_header", header), settings, **kwargs)
        writers.append(writer)
        return writer, sink

    yield _make
    for writer in writers:
        writer.close()
