from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass, field
from typing import Any

from caststream.errors import EncodeError, InvalidConfigurationError, MalformedRecordError


CAST_VERSION = 2
TIME_PRECISION = 6


class EventKind(str, enum.Enum):
    OUTPUT = "o"
    INPUT = "i"
    RESIZE = "r"
    MARKER = "m"


@dataclass
class CastHeader:
    width: int
    height: int
    version: int = CAST_VERSION
    timestamp: int | None = None
    command: str | None = None
    title: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        header: dict[str, Any] = {
            "version": int(self.version),
            "width": int(self.width),
            "height": int(self.height),
        }
        if self.timestamp:
            header["timestamp"] = int(self.timestamp)
        if self.command:
            header["command"] = self.command
        if self.title:
            header["title"] = self.title
        if self.env:
            header["env"] = dict(self.env)
        return header


@dataclass(frozen=True)
class CastEvent:
    time: float
    kind: EventKind
    data: str


@dataclass(frozen=True)
class StreamRecord:
    type: str
    header: CastHeader | None = None
    event: CastEvent | None = None

    @property
    def is_end(self) -> bool:
        return self.type == "end"


def _finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # json.loads accepts NaN and Infinity, which are not JSON.
    return not isinstance(value, float) or math.isfinite(value)


def positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise InvalidConfigurationError(f"{name} must be > 0, got {number}")
    return number


def build_header(
    width: int,
    height: int,
    timestamp: int | None = None,
    command: str | None = None,
    title: str | None = None,
    env: dict | None = None,
    version: int = CAST_VERSION,
) -> CastHeader:
    clean_env: dict[str, str] = {}
    for key, value in (env or {}).items():
        if not isinstance(key, str) or not key:
            raise InvalidConfigurationError(f"env keys must be non-empty strings, got {key!r}")
        clean_env[key] = str(value)
    return CastHeader(
        width=positive_int("width", width),
        height=positive_int("height", height),
        version=positive_int("version", version),
        timestamp=int(timestamp) if timestamp else None,
        command=command or None,
        title=title or None,
        env=clean_env,
    )


def validate_header(header: CastHeader) -> None:
    """Reject a header that would serialize into a line the decoder refuses."""
    for name in ("width", "height", "version"):
        value = getattr(header, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
        positive_int(name, value)
    timestamp = header.timestamp
    if timestamp is not None and not _finite_number(timestamp):
        raise InvalidConfigurationError(f"timestamp must be a finite number, got {timestamp!r}")
    for name in ("command", "title"):
        value = getattr(header, name)
        if value is not None and not isinstance(value, str):
            raise InvalidConfigurationError(f"{name} must be a string, got {value!r}")
    if not isinstance(header.env, dict):
        raise InvalidConfigurationError(f"env must be a mapping, got {header.env!r}")
    for key, value in header.env.items():
        if not isinstance(key, str) or not key:
            raise InvalidConfigurationError(f"env keys must be non-empty strings, got {key!r}")
        if not isinstance(value, str):
            raise InvalidConfigurationError(f"env value for {key} must be a string, got {value!r}")


def decode_bytes(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


def format_header(header: CastHeader) -> str:
    try:
        return json.dumps(header.to_dict(), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"failed to encode header: {exc}") from exc


def format_event(offset_seconds: float, kind: EventKind | str, data: str) -> str:
    token = kind.value if isinstance(kind, EventKind) else str(kind)
    entry = [round(max(float(offset_seconds), 0.0), TIME_PRECISION), token, data]
    try:
        return json.dumps(entry, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"failed to encode {token!r} event: {exc}") from exc


def encode_line(line: str) -> bytes:
    try:
        return (line + "\n").encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodeError(f"cast line is not valid UTF-8: {exc}") from exc


def parse_header(line: str, line_number: int | None = None) -> CastHeader:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"invalid header JSON: {exc}", line_number) from exc
    if not isinstance(payload, dict):
        raise MalformedRecordError("header must be a JSON object", line_number)

    env = payload.get("env") or {}
    if not isinstance(env, dict) or not all(isinstance(v, str) for v in env.values()):
        raise MalformedRecordError("header env must map strings to strings", line_number)
    for key in ("command", "title"):
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise MalformedRecordError(f"header {key} must be a string", line_number)
    timestamp = payload.get("timestamp")
    if timestamp is not None and not _finite_number(timestamp):
        raise MalformedRecordError("header timestamp must be a finite number", line_number)

    try:
        return build_header(
            width=_strict_int(payload.get("width")),
            height=_strict_int(payload.get("height")),
            timestamp=timestamp,
            command=payload.get("command"),
            title=payload.get("title"),
            env=env,
            version=_strict_int(payload.get("version", CAST_VERSION)),
        )
    except InvalidConfigurationError as exc:
        raise MalformedRecordError(f"invalid header: {exc}", line_number) from exc


def _strict_int(value: Any) -> int | None:
    # Strings and fractional floats are rejected rather than coerced.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def parse_event(line: str, line_number: int | None = None) -> CastEvent:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"invalid event JSON: {exc}", line_number) from exc
    if not isinstance(payload, list) or len(payload) != 3:
        raise MalformedRecordError("event must be a 3 element array", line_number)

    offset, token, data = payload
    if not _finite_number(offset):
        raise MalformedRecordError(f"invalid event time {offset!r}", line_number)
    if offset < 0:
        raise MalformedRecordError(f"negative event time {offset}", line_number)
    if not isinstance(token, str):
        raise MalformedRecordError("invalid event type", line_number)
    if not isinstance(data, str):
        raise MalformedRecordError("invalid event data", line_number)
    try:
        kind = EventKind(token)
    except ValueError as exc:
        raise MalformedRecordError(f"unknown event type {token!r}", line_number) from exc
    return CastEvent(time=float(offset), kind=kind, data=data)
