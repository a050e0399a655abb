from caststream.asciinema import CastEvent, CastHeader, EventKind, StreamRecord, build_header
from caststream.config import EncoderSettings, load_config, settings_from_env
from caststream.errors import (
    CastError,
    ClosedSessionError,
    EncodeError,
    InvalidConfigurationError,
    MalformedRecordError,
    SinkWriteError,
    StreamExhaustedError,
)
from caststream.reader import StreamReader, read_cast
from caststream.segmenter import EscapeSegmenter, split_safe
from caststream.writer import StreamWriter

__all__ = [
    "CastError",
    "CastEvent",
    "CastHeader",
    "ClosedSessionError",
    "EncodeError",
    "EncoderSettings",
    "EscapeSegmenter",
    "EventKind",
    "InvalidConfigurationError",
    "MalformedRecordError",
    "SinkWriteError",
    "StreamExhaustedError",
    "StreamReader",
    "StreamRecord",
    "StreamWriter",
    "build_header",
    "load_config",
    "read_cast",
    "settings_from_env",
    "split_safe",
]
