from __future__ import annotations

import io

import pytest

from caststream.asciinema import EventKind
from caststream.errors import MalformedRecordError, StreamExhaustedError
from caststream.reader import StreamReader, read_cast


pytestmark = pytest.mark.unit


HEADER = '{"version": 2, "width": 80, "height": 24, "timestamp": 1700000000, "env": {"TERM": "xterm"}}\n'


def _reader(text: str) -> StreamReader:
    return StreamReader(io.BytesIO(text.encode("utf-8")))


def test_header_then_events_then_end() -> None:
    reader = _reader(HEADER + '[0.5,"o","hi"]\n[1.5,"i","ls\\n"]\n')

    first = reader.next()
    assert first.type == "header"
    assert first.header.width == 80
    assert first.header.env == {"TERM": "xterm"}

    output = reader.next()
    assert output.type == "event"
    assert output.event.kind is EventKind.OUTPUT
    assert output.event.data == "hi"

    typed_input = reader.next().event
    assert typed_input.time == 1.5
    assert typed_input.kind is EventKind.INPUT
    assert typed_input.data == "ls\n"

    assert reader.next().is_end


def test_next_after_end_fails_explicitly() -> None:
    reader = _reader(HEADER)
    assert reader.next().type == "header"
    assert reader.next().type == "end"
    with pytest.raises(StreamExhaustedError):
        reader.next()


def test_wrong_arity_is_malformed_and_terminal() -> None:
    reader = _reader(HEADER + '[1.5,"i"]\n[2.0,"o","later"]\n')
    reader.next()
    with pytest.raises(MalformedRecordError, match="line 2"):
        reader.next()
    with pytest.raises(StreamExhaustedError):
        reader.next()


def test_invalid_header_json_is_malformed() -> None:
    reader = _reader('{"version": 2,\n')
    with pytest.raises(MalformedRecordError, match="header"):
        reader.next()


def test_empty_source_has_no_header() -> None:
    with pytest.raises(MalformedRecordError, match="missing header"):
        _reader("").next()


def test_blank_lines_are_skipped() -> None:
    reader = _reader(HEADER + "\n\n" + '[0.1,"r","100x40"]\n\n')
    records = list(reader)
    assert [record.type for record in records] == ["header", "event"]
    assert records[1].event.data == "100x40"


def test_text_sources_and_line_lists_are_accepted() -> None:
    assert list(StreamReader(io.StringIO(HEADER + '[0,"m","mark"]\n')))[1].event.kind is EventKind.MARKER
    assert list(StreamReader([HEADER, '[0,"o","x"]']))[1].event.data == "x"


def test_integer_times_decode_as_float() -> None:
    reader = _reader(HEADER + '[3,"o","x"]\n')
    event = list(reader.events())[0]
    assert event.time == 3.0
    assert isinstance(event.time, float)


def test_read_cast_loads_whole_file(tmp_path) -> None:
    path = tmp_path / "demo.cast"
    path.write_text(HEADER + '[0.1,"o","a"]\n[0.2,"o","b"]\n', encoding="utf-8")
    header, events = read_cast(path)
    assert header.timestamp == 1700000000
    assert "".join(event.data for event in events) == "ab"


def test_non_finite_event_time_is_malformed() -> None:
    reader = _reader(HEADER + '[NaN,"o","x"]\n')
    reader.next()
    with pytest.raises(MalformedRecordError, match="invalid event time"):
        reader.next()
