"""Failure kinds and the tagged result returned by fallible operations."""
from enum import Enum
from typing import Any, NamedTuple, Optional


class ErrorKind(Enum):
    IO_ERROR = "E_IO"
    TRUNCATED_READ = "E_TRUNCATED"
    INVALID_MODE = "E_MODE"
    DIMENSION_MISMATCH = "E_DIMENSIONS"
    CAPACITY_ERROR = "E_CAPACITY"
    DECODE_ERROR = "E_DECODE"


ERRORS = {
    ErrorKind.IO_ERROR: "Cannot access splash file",
    ErrorKind.TRUNCATED_READ: "Cannot read splash data",
    ErrorKind.INVALID_MODE: "Invalid bitmap mode in splash header",
    ErrorKind.DIMENSION_MISMATCH: "Substitute picture has different dimensions",
    ErrorKind.CAPACITY_ERROR: "Substitute picture does not fit in the image",
    ErrorKind.DECODE_ERROR: "Invalid bitmap encoding",
}


class Failure(NamedTuple):
    kind: ErrorKind
    detail: str = ""

    @property
    def message(self) -> str:
        text = ERRORS[self.kind]
        return f"{text} ({self.detail})" if self.detail else text


class Result(NamedTuple):
    value: Any = None
    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(value=None) -> Result:
    return Result(value, None)


def failure(kind: ErrorKind, detail: str = "") -> Result:
    return Result(None, Failure(kind, detail))
