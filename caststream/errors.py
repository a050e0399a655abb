from __future__ import annotations


class CastError(Exception):
    """Base class for every error raised by caststream."""


class ClosedSessionError(CastError):
    def __init__(self, message: str = "stream writer closed") -> None:
        super().__init__(message)


class EncodeError(CastError):
    pass


class SinkWriteError(CastError):
    pass


class MalformedRecordError(CastError):
    def __init__(self, message: str, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class StreamExhaustedError(CastError):
    pass


class InvalidConfigurationError(CastError, ValueError):
    pass
